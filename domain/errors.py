# domain/errors.py
from __future__ import annotations

from typing import List, Optional, Sequence


class StepError(Exception):
    """Base class for every failure surfaced by a worker."""


class StepNotFound(StepError):
    def __init__(self, name: str):
        super().__init__(f"Step not found: {name}")
        self.name = name


class RequestBuildError(StepError):
    """The descriptor could not be turned into a send-ready request."""


class ClientBuildError(RequestBuildError):
    """The transport rejected the client configuration (e.g. a bad proxy URL)."""


class TransportError(StepError):
    def __init__(self, detail: str):
        super().__init__(f"Transport error: {detail}")
        self.detail = detail


class StepTimeoutError(StepError):
    def __init__(self, detail: str = "Request timed out"):
        super().__init__(detail)
        self.detail = detail


class StatusCodeNotFound(StepError):
    def __init__(self, actual_code: int, expected_codes: Optional[Sequence[int]] = None):
        self.actual_code = actual_code
        self.expected_codes: List[int] = list(expected_codes or [])
        super().__init__(
            f"Unexpected status code {actual_code}. Expected one of: {self.expected_codes}"
        )


class NoBodyError(StepError):
    def __init__(self) -> None:
        super().__init__("No body has been set from the request.")


class DecodeError(StepError):
    """The captured body is not valid for the requested structure."""
