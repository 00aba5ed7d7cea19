# domain/request.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from domain.errors import RequestBuildError

DEFAULT_TIMEOUT_SEC = 30.0

HeaderDict = Dict[str, str]


@dataclass(frozen=True)
class RequestBody:
    data: Union[bytes, str]

    @classmethod
    def from_bytes(cls, data: bytes) -> "RequestBody":
        return cls(bytes(data))

    @classmethod
    def from_text(cls, data: str) -> "RequestBody":
        return cls(str(data))

    @property
    def is_text(self) -> bool:
        return isinstance(self.data, str)


@dataclass(frozen=True)
class MultipartForm:
    texts: Tuple[Tuple[str, str], ...] = ()
    files: Tuple[Tuple[str, bytes], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "texts", tuple((str(n), str(v)) for n, v in self.texts))
        object.__setattr__(self, "files", tuple((str(n), bytes(v)) for n, v in self.files))

    def to_parts(self) -> List[Tuple[str, Tuple[None, Union[str, bytes]]]]:
        """
        Shape accepted by requests' ``files=``. A ``None`` filename keeps text
        fields as plain form parts, byte fields become parts without a filename.
        """
        parts: List[Tuple[str, Tuple[None, Union[str, bytes]]]] = []
        for name, value in self.texts:
            parts.append((name, (None, value)))
        for name, value in self.files:
            parts.append((name, (None, value)))
        return parts

    def __len__(self) -> int:
        return len(self.texts) + len(self.files)


def parse_headers(text: Optional[str] = None) -> HeaderDict:
    """
    Parse a blob of ``Name: value`` lines into a header dict.

    Each line is split at its first colon, so values may contain colons.
    Empty lines and lines without a colon are skipped. Later duplicates win.
    """
    headers: HeaderDict = {}
    if not text:
        return headers
    for line in text.splitlines():
        if not line or ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        if not key:
            continue
        headers[key] = value.strip()
    return headers


def _check_timeout(seconds: Optional[float]) -> None:
    if seconds is not None and not seconds > 0:
        raise RequestBuildError(f"Timeout must be positive, got {seconds!r}")


@dataclass(frozen=True)
class HttpRequest:
    """
    Immutable description of one HTTP call plus control metadata.

    Built fluently::

        HttpRequest("GET", "https://example.com/robots.txt")
            .with_status_codes([200])
            .with_timeout(10)
            .build()

    When ``skip_to`` is set the descriptor is a routing directive only and the
    worker never sends it.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout: Optional[float] = DEFAULT_TIMEOUT_SEC
    body: Optional[RequestBody] = None
    multipart: Optional[MultipartForm] = None
    status_codes: Optional[Tuple[int, ...]] = None
    proxy: Optional[str] = None
    user_agent: Optional[str] = None
    compression: bool = True
    skip_to: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", str(self.method).upper())
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers or {})))
        _check_timeout(self.timeout)

    def with_headers(self, headers: Union[Mapping[str, str], str]) -> "HttpRequest":
        if isinstance(headers, str):
            headers = parse_headers(headers)
        return replace(self, headers=dict(headers))

    def with_header(self, name: str, value: str) -> "HttpRequest":
        merged = dict(self.headers)
        merged[name] = value
        return replace(self, headers=merged)

    def with_timeout(self, seconds: Optional[float]) -> "HttpRequest":
        return replace(self, timeout=seconds)

    def with_body(self, body: Union[RequestBody, bytes, str]) -> "HttpRequest":
        if self.multipart is not None:
            raise RequestBuildError("A request cannot carry both a body and a multipart form")
        if not isinstance(body, RequestBody):
            body = RequestBody(body)
        return replace(self, body=body)

    def with_multipart(self, form: MultipartForm) -> "HttpRequest":
        if self.body is not None:
            raise RequestBuildError("A request cannot carry both a body and a multipart form")
        return replace(self, multipart=form)

    def with_status_codes(self, codes: Iterable[int]) -> "HttpRequest":
        return replace(self, status_codes=tuple(int(c) for c in codes))

    def with_proxy(self, proxy: Optional[str]) -> "HttpRequest":
        return replace(self, proxy=proxy)

    def with_user_agent(self, user_agent: Optional[str]) -> "HttpRequest":
        return replace(self, user_agent=user_agent)

    def compressed(self) -> "HttpRequest":
        return replace(self, compression=True)

    def no_compression(self) -> "HttpRequest":
        return replace(self, compression=False)

    def with_skip_to(self, step_name: Optional[str]) -> "HttpRequest":
        return replace(self, skip_to=step_name)

    def build(self) -> "HttpRequest":
        if not self.method:
            raise RequestBuildError("Request method is required")
        if self.body is not None and self.multipart is not None:
            raise RequestBuildError("A request cannot carry both a body and a multipart form")
        return self

    @property
    def is_skipped(self) -> bool:
        return self.skip_to is not None

    def is_compressed(self) -> bool:
        return self.compression

    def effective_timeout(self) -> float:
        return DEFAULT_TIMEOUT_SEC if self.timeout is None else float(self.timeout)

    @classmethod
    def skip(cls, step_name: str) -> "HttpRequest":
        """A pure routing descriptor that jumps to ``step_name``."""
        return cls("GET", "/", skip_to=step_name)
