"""structlog setup shared by the API and the download script.

``configure_logging()`` runs once from :func:`wikistats.api.main.create_app`
and once from ``scripts/download_revisions.py``.  Application modules log
through the stdlib (``logging.getLogger(__name__)``); the middleware in
``api/main.py`` uses structlog with key/value events.  Both end up in the
same root handler and the same renderer.

Records carry ``timestamp``, ``level``, ``logger``, ``event`` and, while a
request is being served, ``request_id``.

``log_format`` picks the renderer:

- ``"json"``: one JSON object per line
- ``"console"``: structlog's coloured development output
- ``"auto"``: console at ``DEBUG``, JSON otherwise
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

import structlog
from structlog.types import EventDict, WrappedLogger

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
"""Request ID set by the HTTP middleware; read by :func:`_inject_request_id`."""

_MAX_VALUE_CHARS: int = 1000
"""Longest string value kept intact in a record.

Upstream error bodies and raw revision dicts end up in messages; a
misbehaving upstream can make those arbitrarily large.
"""

_UNCLIPPED_KEYS: frozenset[str] = frozenset({"exception", "stack"})

_NOISY_LOGGERS: tuple[str, ...] = ("uvicorn.access", "httpx", "httpcore")
"""Loggers held at WARNING outside DEBUG.  The client logs each page itself."""

LOG_FORMATS: frozenset[str] = frozenset({"auto", "json", "console"})


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------


def _clip_long_values(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Truncate string values longer than :data:`_MAX_VALUE_CHARS`.

    Tracebacks are left alone.  A clipped value ends with ``...(+N chars)``.
    """
    for key, value in event_dict.items():
        if key in _UNCLIPPED_KEYS or not isinstance(value, str):
            continue
        if len(value) > _MAX_VALUE_CHARS:
            extra = len(value) - _MAX_VALUE_CHARS
            event_dict[key] = f"{value[:_MAX_VALUE_CHARS]}...(+{extra} chars)"
    return event_dict


def _inject_request_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Add the current request ID to the event dict when one is set.

    Stdlib records never see structlog's bound contextvars, so the engine's
    page logs get their ``request_id`` from here.
    """
    rid = request_id_var.get()
    if rid is not None and "request_id" not in event_dict:
        event_dict["request_id"] = rid
    return event_dict


# ---------------------------------------------------------------------------
# Public configuration entry-point
# ---------------------------------------------------------------------------


def configure_logging(log_level: str = "INFO", log_format: str = "auto") -> None:
    """Route stdlib and structlog records through one stdout handler.

    Safe to call repeatedly: existing root handlers are replaced.

    Args:
        log_level: Logging verbosity string.  Case-insensitive.
        log_format: ``"auto"``, ``"json"`` or ``"console"``.  Unknown values
            behave like ``"auto"``.
    """
    level_upper = log_level.upper()
    numeric_level = getattr(logging, level_upper, logging.INFO)
    is_debug = level_upper == "DEBUG"
    fmt = log_format.lower() if log_format.lower() in LOG_FORMATS else "auto"
    use_console = fmt == "console" or (fmt == "auto" and is_debug)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _inject_request_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _clip_long_values,
    ]

    if use_console:
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if is_debug else logging.WARNING)

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
