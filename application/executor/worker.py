# application/executor/worker.py
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, NoReturn, Optional, Sequence

from application.context import ExecutionContext
from application.executor.step_registry import StepRegistry
from application.ports.logger import LoggerPort, NullLogger
from application.services.cookie_diff import diff_cookies
from application.services.redactor import mask_headers, mask_proxy
from domain.errors import (
    RequestBuildError,
    StatusCodeNotFound,
    StepError,
    StepNotFound,
    StepTimeoutError,
    TransportError,
)
from domain.steps.base import Step

DEFAULT_MAX_STEPS = 100


def is_status_accepted(status: int, codes: Optional[Sequence[int]]) -> bool:
    """
    A non-empty code list is an exact allow-list. An empty list and no list
    both fall back to the 2xx range.
    """
    if codes:
        return status in codes
    return 200 <= status < 300


@dataclass(frozen=True)
class ExecutionResult:
    ok: bool
    failed_step: Optional[str] = None
    error_message: Optional[str] = None
    error: Optional[StepError] = None
    steps_run: List[str] = field(default_factory=list)


class Worker:
    """
    Runs one named step at a time against a single ExecutionContext.

    A worker is one logical session: it owns its context (and so its cookie
    jar). Several workers may share one StepRegistry.
    """

    def __init__(
        self,
        registry: Optional[StepRegistry] = None,
        context: Optional[ExecutionContext] = None,
        logger: Optional[LoggerPort] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
    ):
        self._registry = registry if registry is not None else StepRegistry()
        self._ctx = context if context is not None else ExecutionContext()
        self.worker_id = uuid.uuid4().hex
        self._logger = (logger or NullLogger()).bind(worker_id=self.worker_id)
        self._max_steps = max_steps

    @property
    def context(self) -> ExecutionContext:
        return self._ctx

    @property
    def steps(self) -> StepRegistry:
        return self._registry

    def add_step(self, step: Step) -> None:
        self._registry.insert(step)

    def add_steps(self, steps: Iterable[Step]) -> None:
        self._registry.insert_many(steps)

    def try_step(self, name: str) -> Optional[str]:
        """
        Execute the step registered as ``name`` once.

        Returns the context's ``next_step`` afterwards (``None`` when the step
        did not route anywhere). Every failure is raised as a StepError after
        exactly one of ``on_error``/``on_timeout`` has run; StepNotFound and
        RequestBuildError run no callback.
        """
        step = self._registry.get(name)
        if step is None:
            self._logger.error("step.not_found", step=name)
            raise StepNotFound(name)

        try:
            req = step.on_request()
        except RequestBuildError as exc:
            self._logger.error("step.build_failed", step=name, error=str(exc))
            raise

        if req.is_skipped:
            self._ctx.set_next_step(req.skip_to)
            self._logger.info("step.skip", step=name, skip_to=req.skip_to)
            return self._ctx.next_step

        ctx = self._ctx
        try:
            ctx.update_from_request(req)
        except RequestBuildError as exc:
            self._logger.error("step.build_failed", step=name, error=str(exc))
            raise

        ctx.set_current_step(name)
        call = ctx.take_request_handle()
        requester = ctx.http_requester

        self._logger.info(
            "step.start",
            step=name,
            method=req.method,
            url=call.url,
            timeout_sec=call.timeout,
            status_codes=list(ctx.status_codes) if ctx.status_codes is not None else None,
        )
        self._logger.debug(
            "step.request",
            step=name,
            headers=mask_headers(call.request.headers),
            proxy=mask_proxy(requester.settings.proxy),
            compression=requester.settings.is_compressed(),
        )

        cookies_before = requester.snapshot_cookies()
        t0 = time.perf_counter()
        try:
            try:
                response = requester.send(call)
            except (StepTimeoutError, TransportError) as exc:
                self._record_elapsed(t0)
                self._fail(step, name, exc)

            self._record_elapsed(t0)

            status = response.status_code
            if not is_status_accepted(status, ctx.status_codes):
                response.close()
                self._fail(step, name, StatusCodeNotFound(status, ctx.status_codes))

            try:
                body = requester.read_body(response, call.deadline)
            except (StepTimeoutError, TransportError) as exc:
                self._fail(step, name, exc)
        finally:
            call.close()

        self._log_cookie_changes(name, cookies_before, requester.snapshot_cookies())

        ctx.set_response_body(body)
        ctx.clear_next_step()
        step.on_success(ctx)

        self._logger.info(
            "step.end",
            step=name,
            ok=True,
            status=status,
            elapsed_ms=ctx.time_elapsed,
            body_len=len(body),
            next_step=ctx.next_step,
        )
        return ctx.next_step

    def run(self, start_step: str, max_steps: Optional[int] = None) -> ExecutionResult:
        """
        Follow ``next_step`` from ``start_step`` until a step leaves it empty.

        Stops at the first error; nothing is retried. ``max_steps`` bounds
        step cycles.
        """
        limit = max_steps if max_steps is not None else self._max_steps
        logger = self._logger.bind(run_id=uuid.uuid4().hex)
        steps_run: List[str] = []

        logger.info("run.start", start_step=start_step, max_steps=limit)
        name: Optional[str] = start_step
        while name is not None:
            if len(steps_run) >= limit:
                logger.error("run.max_steps_exceeded", step=name, max_steps=limit)
                return ExecutionResult(
                    ok=False,
                    failed_step=name,
                    error_message=f"Max steps exceeded: {limit}",
                    steps_run=steps_run,
                )
            steps_run.append(name)
            try:
                name = self.try_step(name)
            except StepError as exc:
                logger.error("run.failed", step=name, error_type=type(exc).__name__, error=str(exc))
                return ExecutionResult(
                    ok=False,
                    failed_step=name,
                    error_message=str(exc),
                    error=exc,
                    steps_run=steps_run,
                )

        logger.info("run.end", ok=True, steps=len(steps_run))
        return ExecutionResult(ok=True, steps_run=steps_run)

    def _record_elapsed(self, t0: float) -> None:
        self._ctx.set_time_elapsed(int((time.perf_counter() - t0) * 1000))

    def _fail(self, step: Step, name: str, error: StepError) -> NoReturn:
        timed_out = isinstance(error, StepTimeoutError)
        callback = "on_timeout" if timed_out else "on_error"
        event = "step.timeout" if timed_out else "step.failed"
        self._logger.error(
            event,
            step=name,
            error_type=type(error).__name__,
            error=str(error),
            elapsed_ms=self._ctx.time_elapsed,
        )
        try:
            if timed_out:
                step.on_timeout(self._ctx)
            else:
                step.on_error(self._ctx, error)
        except Exception as cb_exc:
            self._logger.error("step.callback_failed", step=name, callback=callback, error=str(cb_exc))
            raise error
        raise error

    def _log_cookie_changes(self, name: str, before, after) -> None:
        diff = diff_cookies(before, after)
        if diff.empty:
            return
        self._logger.debug(
            "step.cookies",
            step=name,
            added=sorted(diff.added),
            removed=sorted(diff.removed),
            changed=sorted(diff.changed),
        )
