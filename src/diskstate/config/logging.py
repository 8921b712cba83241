"""structlog rendering for diskstate's log records.

diskstate modules log through ``logging.getLogger(__name__)`` and configure
nothing on import. Applications that want those records rendered call
:func:`configure_logging` once at startup:

- Console (default): key/value lines, colored when the stream is a TTY
- JSON (``log_json=True``): one JSON object per line

The handler is attached to the ``diskstate`` logger only, so the
application's own root handlers are left alone.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

from diskstate.config.settings import DiskSettings

LOGGER_NAME = "diskstate"

_HANDLER_FLAG = "_diskstate_handler"


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool, stream: TextIO) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    isatty = getattr(stream, "isatty", None)
    return structlog.dev.ConsoleRenderer(colors=bool(isatty and isatty()))


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stream: TextIO | None = None,
) -> logging.Handler:
    """Route diskstate's records through structlog's ProcessorFormatter.

    Calling it again replaces the previous handler instead of stacking.

    Args:
        verbose: Emit DEBUG records (saves, loads, removals). When False,
            only WARNING and above.
        log_json: Use the JSON renderer instead of the console renderer.
        stream: Output stream, ``sys.stderr`` by default.

    Returns:
        The installed handler.
    """
    out = stream if stream is not None else sys.stderr
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(log_json, out),
        ],
    )
    handler = logging.StreamHandler(out)
    handler.setFormatter(formatter)
    setattr(handler, _HANDLER_FLAG, True)

    logger = logging.getLogger(LOGGER_NAME)
    for old in [h for h in logger.handlers if getattr(h, _HANDLER_FLAG, False)]:
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False

    logging.getLogger("pluggy").setLevel(logging.WARNING)
    return handler


def configure_from_settings(settings: DiskSettings) -> logging.Handler:
    """Apply the ``verbose`` / ``log_json`` flags carried by *settings*."""
    return configure_logging(verbose=settings.verbose, log_json=settings.log_json)
