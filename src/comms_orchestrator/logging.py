"""
structlog setup for the orchestrator and the tool gateway.

Events carry the trace, company and project of whatever webhook, batch or
tool call is being handled. Set them with ``logging_context``; every log
line emitted inside the block picks them up. ``LOG_JSON=true`` switches the
console renderer for JSON lines.
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Generator

import structlog
from structlog.types import Processor

from .config import config

_CONTEXT: dict[str, ContextVar[str | None]] = {
    name: ContextVar(name, default=None) for name in ('trace_id', 'company_id', 'project_id')
}

# Fields a log call may set explicitly without being overwritten
_OVERRIDABLE = frozenset({'project_id'})


def get_trace_id() -> str | None:
    return _CONTEXT['trace_id'].get()


def get_company_id() -> str | None:
    return _CONTEXT['company_id'].get()


def get_project_id() -> str | None:
    return _CONTEXT['project_id'].get()


def add_context_info(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Copy the active trace/company/project ids onto the event."""
    for name, var in _CONTEXT.items():
        value = var.get()
        if not value:
            continue
        if name in _OVERRIDABLE:
            event_dict.setdefault(name, value)
        else:
            event_dict[name] = value
    return event_dict


def configure_logging(json_output: bool | None = None, log_level: str | None = None) -> None:
    """
    (Re)configure structlog.

    Args:
        json_output: JSON lines when true, coloured console output otherwise;
            defaults to ``config.LOG_JSON``
        log_level: Level name; defaults to ``config.LOG_LEVEL``
    """
    if json_output is None:
        json_output = config.LOG_JSON
    level_num = getattr(logging, (log_level or config.LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(format='%(message)s', stream=sys.stdout, level=level_num)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_info,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def logging_context(
    trace_id: str | None = None,
    company_id: str | None = None,
    project_id: str | None = None,
) -> Generator[None, None, None]:
    """
    Bind ids for the duration of a block; None leaves the outer value in place.

    Usage:
        with logging_context(trace_id=webhook_id):
            with logging_context(project_id=project.id):
                logger.info('updater.started')
    """
    values = {'trace_id': trace_id, 'company_id': company_id, 'project_id': project_id}
    tokens = [_CONTEXT[name].set(value) for name, value in values.items() if value is not None]
    try:
        yield
    finally:
        for token in reversed(tokens):
            token.var.reset(token)


class PipelineTimer:
    """
    Wall-clock durations of the updater stages, in milliseconds.

    A stage that raises is still recorded.
    """

    def __init__(self):
        self.start_time = time.perf_counter()
        self.stages: dict[str, float] = {}

    @contextmanager
    def stage(self, name: str) -> Generator[None, None, None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            self.stages[name] = (time.perf_counter() - started) * 1000

    @property
    def total_ms(self) -> float:
        return (time.perf_counter() - self.start_time) * 1000

    def summary(self) -> dict[str, Any]:
        return {
            'total_ms': round(self.total_ms, 2),
            'stages': {name: round(ms, 2) for name, ms in self.stages.items()},
        }


configure_logging()
