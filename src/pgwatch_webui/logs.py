"""Log routing for the web UI server.

Everything the process logs ends up on one stderr handler:

- ``pgwatch_webui.*`` structlog events (``asset_served``, ``asset_not_found``,
  ``listener_started``...) at INFO, or DEBUG with ``--verbose``.
- uvicorn's ``uvicorn.error`` records (startup, protocol errors) at the same
  level. The server runs uvicorn with ``log_config=None`` so these arrive as
  plain stdlib records and are rendered by the same formatter.
- ``uvicorn.access`` is held at WARNING; the static handler already logs one
  event per served asset, so per-request access lines would repeat it.
"""

from __future__ import annotations

import logging
import sys

import structlog

PACKAGE_LOGGER = 'pgwatch_webui'
SERVER_LOGGERS = ('uvicorn', 'uvicorn.error')
ACCESS_LOGGER = 'uvicorn.access'

_PRE_CHAIN: tuple[structlog.types.Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt='iso'),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
)


def _renderer(log_json: bool) -> structlog.types.Processor:  # noqa: FBT001
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _stderr_handler(log_json: bool) -> logging.Handler:  # noqa: FBT001
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=list(_PRE_CHAIN),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(log_json),
        ],
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    return handler


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Send structlog events and uvicorn records to a single stderr handler.

    Args:
        verbose: Log server and package events at DEBUG instead of INFO.
        log_json: Render one JSON object per line instead of console output.
    """
    structlog.configure(
        processors=[*_PRE_CHAIN, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(_stderr_handler(log_json))
    root_logger.setLevel(logging.WARNING)

    level = logging.DEBUG if verbose else logging.INFO
    for name in (PACKAGE_LOGGER, *SERVER_LOGGERS):
        logging.getLogger(name).setLevel(level)
    logging.getLogger(ACCESS_LOGGER).setLevel(logging.WARNING)
