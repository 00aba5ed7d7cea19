# infrastructure/bootstrap.py
from __future__ import annotations

from typing import Iterable, Optional

from application.context import ExecutionContext
from application.executor.step_registry import StepRegistry
from application.executor.worker import Worker
from application.ports.http_requester import HttpRequester
from application.ports.logger import LoggerPort
from domain.steps.base import Step
from infrastructure.config.settings import WorkerSettings, load_settings
from infrastructure.logging.composite_logger import CompositeLogger
from infrastructure.logging.console_logger import ConsoleLogger
from infrastructure.logging.log_setup import setup_console_logging
from infrastructure.logging.loguru_logger import LoguruLogger


def default_logger(settings: WorkerSettings) -> LoggerPort:
    """Loguru, plus JSON lines on stdout when ``console_log`` is set."""
    if not settings.console_log:
        return LoguruLogger()
    return CompositeLogger([LoguruLogger(), ConsoleLogger(min_level=settings.log_level)])


def build_worker(
    steps: Iterable[Step] = (),
    registry: Optional[StepRegistry] = None,
    settings: Optional[WorkerSettings] = None,
    logger: Optional[LoggerPort] = None,
    configure_logging: bool = False,
) -> Worker:
    """
    Wire a worker with its own context and cookie jar. Pass the same
    ``registry`` to several calls to run independent sessions over one set
    of steps.
    """
    settings = settings or load_settings()
    if configure_logging:
        setup_console_logging(level=settings.log_level)

    if registry is None:
        registry = StepRegistry()
    registry.insert_many(steps)

    ctx = ExecutionContext(http_requester=HttpRequester(defaults=settings.client_defaults()))
    return Worker(
        registry=registry,
        context=ctx,
        logger=logger or default_logger(settings),
        max_steps=settings.max_steps,
    )
