# domain/steps/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from domain.errors import StepError
from domain.request import HttpRequest

if TYPE_CHECKING:
    from application.context import ExecutionContext


class Step(ABC):
    """
    A named unit of workflow behavior.

    ``name`` is the registry key; subclasses usually set it as a class
    attribute. The worker calls exactly one of the three outcome callbacks
    per attempted request, so all of them must be implemented even if they
    do nothing.
    """

    name: str = ""

    @abstractmethod
    def on_request(self) -> HttpRequest: ...

    @abstractmethod
    def on_success(self, ctx: "ExecutionContext") -> None: ...

    @abstractmethod
    def on_error(self, ctx: "ExecutionContext", error: StepError) -> None: ...

    @abstractmethod
    def on_timeout(self, ctx: "ExecutionContext") -> None: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
