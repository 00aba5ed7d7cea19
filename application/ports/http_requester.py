# application/ports/http_requester.py
from __future__ import annotations

import json
import socket
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

import requests
from requests.cookies import RequestsCookieJar, create_cookie
from urllib3.exceptions import HTTPError as Urllib3HTTPError
from urllib3.exceptions import LocationParseError, TimeoutError as Urllib3TimeoutError
from urllib3.util import parse_url

from domain.client_settings import ClientSettings
from domain.errors import ClientBuildError, RequestBuildError, StepTimeoutError, TransportError
from domain.request import HttpRequest

PROXY_SCHEMES = {"http", "https", "socks4", "socks4a", "socks5", "socks5h"}
BODY_CHUNK_SIZE = 64 * 1024


class SharedCookieJar(RequestsCookieJar):
    """
    Cookie jar shared by every client an HttpRequester builds.

    CookieJar already guards add/extract with its RLock; snapshots and
    imports take the same lock so callbacks running on other threads see a
    consistent view.
    """

    def snapshot(self) -> List[Dict[str, Any]]:
        with self._cookies_lock:
            cookies = list(iter(self))
        out: List[Dict[str, Any]] = []
        for c in cookies:
            out.append(
                {
                    "name": c.name,
                    "value": c.value,
                    "domain": c.domain,
                    "path": c.path,
                    "secure": bool(c.secure),
                    "expires": c.expires,
                    "http_only": c.has_nonstandard_attr("HttpOnly") or c.has_nonstandard_attr("httponly"),
                }
            )
        return out

    def load(self, items: List[Dict[str, Any]]) -> None:
        with self._cookies_lock:
            for item in items:
                rest = {"HttpOnly": None} if item.get("http_only") else {}
                self.set_cookie(
                    create_cookie(
                        name=item["name"],
                        value=item.get("value", ""),
                        domain=item.get("domain", ""),
                        path=item.get("path", "/"),
                        secure=bool(item.get("secure", False)),
                        expires=item.get("expires"),
                        rest=rest,
                    )
                )


@dataclass
class PreparedCall:
    """A send-ready request bound to the client that will send it."""

    session: requests.Session
    request: requests.PreparedRequest
    timeout: float
    deadline: Optional[float] = None  # time.monotonic() value, set by send()

    @property
    def method(self) -> str:
        return self.request.method or ""

    @property
    def url(self) -> str:
        return self.request.url or ""

    def close(self) -> None:
        self.session.close()


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, (requests.exceptions.Timeout, Urllib3TimeoutError, socket.timeout)):
        return True
    # a read timeout while streaming the body arrives as ConnectionError(ReadTimeoutError)
    return any(isinstance(arg, Urllib3TimeoutError) for arg in getattr(exc, "args", ()))


def _validate_proxy(proxy: str) -> None:
    try:
        parsed = parse_url(proxy)
    except LocationParseError as exc:
        raise ClientBuildError(f"Invalid proxy URL: {proxy!r}") from exc
    if parsed.scheme not in PROXY_SCHEMES or not parsed.host:
        raise ClientBuildError(f"Invalid proxy URL: {proxy!r}")


def _validate_headers(headers: Mapping[str, Any]) -> None:
    # http.client sends names as ascii and values as latin-1
    for name, value in headers.items():
        try:
            name.encode("ascii")
            if isinstance(value, str):
                value.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise RequestBuildError(f"Header {name!r} cannot be sent: {exc}") from exc


class HttpRequester:
    """
    Builds a fresh ``requests.Session`` for every request so proxy, user agent
    and compression changes always take effect, while every session shares one
    cookie jar.

    ``defaults`` fill in proxy and user agent when a request does not set
    them; ``settings`` holds the values for the next build.
    """

    def __init__(self, defaults: Optional[ClientSettings] = None, cookie_jar: Optional[SharedCookieJar] = None):
        self.defaults = defaults or ClientSettings()
        self.settings = replace(self.defaults)
        self._cookies = cookie_jar if cookie_jar is not None else SharedCookieJar()

    @property
    def cookies(self) -> SharedCookieJar:
        return self._cookies

    def configure(self, proxy: Optional[str], user_agent: Optional[str], compression: bool) -> ClientSettings:
        self.settings.set_proxy(proxy if proxy is not None else self.defaults.proxy)
        self.settings.set_user_agent(user_agent if user_agent is not None else self.defaults.user_agent)
        self.settings.set_compression(compression)
        return self.settings

    def build_client(self) -> requests.Session:
        settings = self.settings
        if settings.proxy:
            _validate_proxy(settings.proxy)

        session = requests.Session()
        # proxy and credentials come from settings only, never from the environment
        session.trust_env = False
        session.cookies = self._cookies
        if not settings.is_compressed():
            session.headers["Accept-Encoding"] = "identity"
        if settings.user_agent:
            session.headers["User-Agent"] = settings.user_agent
        if settings.proxy:
            session.proxies = {"http": settings.proxy, "https": settings.proxy}
        return session

    def build_request(self, req: HttpRequest) -> PreparedCall:
        session = self.build_client()

        data = None
        if req.body is not None:
            data = req.body.data.encode("utf-8") if req.body.is_text else req.body.data
        files = req.multipart.to_parts() if req.multipart is not None else None

        try:
            prepared = session.prepare_request(
                requests.Request(
                    method=req.method,
                    url=req.url,
                    headers=dict(req.headers),
                    data=data,
                    files=files,
                )
            )
            _validate_headers(prepared.headers)
        except RequestBuildError:
            session.close()
            raise
        except (requests.exceptions.RequestException, ValueError, TypeError) as exc:
            session.close()
            raise RequestBuildError(f"Unable to build request: {exc}") from exc

        return PreparedCall(session=session, request=prepared, timeout=req.effective_timeout())

    def send(self, call: PreparedCall) -> requests.Response:
        """
        Send and wait for the response headers. Starts the call's deadline,
        which ``read_body`` keeps enforcing while the body streams in.
        """
        call.deadline = time.monotonic() + call.timeout
        try:
            response = call.session.send(call.request, timeout=call.timeout, stream=True, allow_redirects=True)
        except requests.exceptions.RequestException as exc:
            if _is_timeout(exc):
                raise StepTimeoutError(f"Request timed out after {call.timeout}s: {exc}") from exc
            raise TransportError(str(exc)) from exc

        if time.monotonic() >= call.deadline:
            response.close()
            raise StepTimeoutError(f"Request timed out after {call.timeout}s")
        return response

    def read_body(self, response: requests.Response, deadline: Optional[float] = None) -> bytes:
        """
        Read the whole body. With ``deadline`` the read fails with
        StepTimeoutError once ``time.monotonic()`` passes it, even while bytes
        keep trickling in; a single read is bounded by the socket timeout.
        """
        chunks: List[bytes] = []
        try:
            while True:
                if deadline is not None and time.monotonic() >= deadline:
                    raise StepTimeoutError("Timed out reading response body")
                chunk = response.raw.read1(BODY_CHUNK_SIZE, decode_content=True)
                if not chunk:
                    break
                chunks.append(chunk)
        except (requests.exceptions.RequestException, Urllib3HTTPError, OSError) as exc:
            if _is_timeout(exc):
                raise StepTimeoutError(f"Timed out reading response body: {exc}") from exc
            raise TransportError(str(exc)) from exc
        finally:
            response.close()
        return b"".join(chunks)

    def snapshot_cookies(self) -> List[Dict[str, Any]]:
        return self._cookies.snapshot()

    def export_cookies(self) -> bytes:
        return json.dumps(self._cookies.snapshot(), ensure_ascii=False).encode("utf-8")

    def import_cookies(self, data: bytes) -> int:
        items = json.loads(data.decode("utf-8") if isinstance(data, bytes) else data)
        if not isinstance(items, list):
            raise ValueError("Cookie export must be a JSON list")
        self._cookies.load(items)
        return len(items)
