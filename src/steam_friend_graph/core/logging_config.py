"""structlog setup shared by the server, the CLI and the tests.

``configure_logging()`` is called from ``api/main.py``.  Afterwards both
logging front-ends render through the same structlog pipeline::

    logging.getLogger(__name__).info("resolved %d profiles", n)
    structlog.get_logger(__name__).info("graph_built", nodes=n)

Records emitted while a WebSocket connection is served carry its
``connection_id`` (see :data:`connection_id_var`).  The Steam Web API key is
never rendered: any event key that names a credential is redacted.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

connection_id_var: ContextVar[str | None] = ContextVar("connection_id", default=None)
"""ID of the WebSocket connection (or HTTP request) currently being served."""

REDACTED = "[REDACTED]"

_CREDENTIAL_FRAGMENTS: tuple[str, ...] = (
    "api_key",
    "steam_key",
    "password",
    "secret",
    "token",
    "authorization",
)

# The Steam query parameter is literally ``key``; ``keys`` or ``cache_key``
# must stay readable.
_CREDENTIAL_NAMES: frozenset[str] = frozenset({"key"})

_QUIET_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "uvicorn.access")


def _names_credential(name: str) -> bool:
    lowered = name.lower()
    return lowered in _CREDENTIAL_NAMES or any(f in lowered for f in _CREDENTIAL_FRAGMENTS)


def _redact_credentials(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Blank out credential values, including inside one level of nested dicts.

    A ``params={"key": ..., "steamid": ...}`` field keeps ``steamid`` and
    loses ``key``.  Nested dicts are copied; the caller's dict is untouched.
    """
    for name, value in list(event_dict.items()):
        if _names_credential(name):
            event_dict[name] = REDACTED
        elif isinstance(value, dict) and any(_names_credential(str(k)) for k in value):
            event_dict[name] = {
                k: REDACTED if _names_credential(str(k)) else v for k, v in value.items()
            }
    return event_dict


def _add_connection_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Fill ``connection_id`` from the ContextVar when nothing bound it."""
    connection_id = connection_id_var.get()
    if connection_id is not None:
        event_dict.setdefault("connection_id", connection_id)
    return event_dict


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        _add_connection_id,
        _redact_credentials,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(log_level: str = "INFO") -> None:
    """Route stdlib and structlog records to stdout at *log_level*.

    ``DEBUG`` renders coloured console lines; every other level renders one
    JSON object per line with ``event``, ``level`` (lower case), ``logger``,
    ``timestamp`` and, inside a connection, ``connection_id``.

    Safe to call repeatedly: the root logger ends up with exactly one handler.

    Args:
        log_level: ``DEBUG``, ``INFO``, ``WARNING``, ``ERROR`` or
            ``CRITICAL`` (any case).  Unknown names fall back to ``INFO``.
    """
    level_name = log_level.upper()
    debug = level_name == "DEBUG"
    pre_chain = _pre_chain()

    renderer: Processor = (
        structlog.dev.ConsoleRenderer(colors=True)
        if debug
        else structlog.processors.JSONRenderer()
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # httpx logs full request URLs, key parameter included.
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
