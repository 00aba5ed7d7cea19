# application/context.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Type

from bs4 import BeautifulSoup
from pydantic import TypeAdapter, ValidationError

from application.ports.http_requester import HttpRequester, PreparedCall
from domain.errors import DecodeError, NoBodyError, RequestBuildError
from domain.request import HttpRequest


def _placeholder_request() -> HttpRequest:
    return HttpRequest("GET", "/")


@dataclass
class ExecutionContext:
    """
    Mutable state shared by one worker's sequential step invocations.

    Steps read the captured response and route the workflow from their
    callbacks by setting ``next_step``.
    """

    http_requester: HttpRequester = field(default_factory=HttpRequester)
    request: HttpRequest = field(default_factory=_placeholder_request)
    request_handle: Optional[PreparedCall] = None
    current_step: Optional[str] = None
    next_step: Optional[str] = None
    status_codes: Optional[Tuple[int, ...]] = None
    response_body: Optional[bytes] = None
    time_elapsed: int = 0  # ms

    def set_current_step(self, name: str) -> None:
        self.current_step = name

    def set_next_step(self, name: str) -> None:
        self.next_step = name

    def clear_next_step(self) -> None:
        self.next_step = None

    def set_time_elapsed(self, ms: int) -> None:
        self.time_elapsed = int(ms)

    def time_elapsed_as_string(self) -> str:
        return f"{self.time_elapsed} ms"

    def set_status_codes(self, codes: Optional[Tuple[int, ...]]) -> None:
        self.status_codes = tuple(codes) if codes is not None else None

    def set_response_body(self, body: bytes) -> None:
        self.response_body = bytes(body)

    @property
    def url(self) -> str:
        return self.request.url

    def body_bytes(self) -> bytes:
        if self.response_body is None:
            raise NoBodyError()
        return self.response_body

    def body_text(self) -> str:
        return self.body_bytes().decode("utf-8", errors="replace")

    def body_json(self, type_: Optional[Type[Any]] = None) -> Any:
        """
        Decode the body as JSON. With ``type_`` the document is validated into
        that type (a pydantic model, dataclass, TypedDict, ``list[int]``...).
        """
        raw = self.body_bytes()
        if type_ is None:
            try:
                return json.loads(raw)
            except ValueError as exc:
                raise DecodeError(f"Response body is not valid JSON: {exc}") from exc
        try:
            return TypeAdapter(type_).validate_json(raw)
        except ValidationError as exc:
            raise DecodeError(f"Response body does not match {type_!r}: {exc}") from exc

    def body_html(self) -> BeautifulSoup:
        # bytes let bs4 honour a <meta charset> over the utf-8 default
        return BeautifulSoup(self.body_bytes(), "lxml")

    def update_from_request(self, req: HttpRequest) -> None:
        """
        Apply the request's client overrides and acceptance policy, then build
        its send-ready handle. On failure ``request_handle`` is left unset.
        """
        self.http_requester.configure(req.proxy, req.user_agent, req.is_compressed())
        self.status_codes = req.status_codes

        self.discard_request_handle()
        try:
            self.request_handle = self.http_requester.build_request(req)
        except RequestBuildError:
            self.request_handle = None
            raise

        self.request = req

    def take_request_handle(self) -> Optional[PreparedCall]:
        handle, self.request_handle = self.request_handle, None
        return handle

    def discard_request_handle(self) -> None:
        handle = self.take_request_handle()
        if handle is not None:
            handle.close()
