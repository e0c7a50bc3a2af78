"""structlog output for processes that embed archgraph.

archgraph modules log through stdlib ``logging`` and emit a few structlog
events (``graph.build``). :func:`configure_logging` renders both through
one structlog formatter attached to the ``archgraph`` logger only, so the
host application's root logger and handlers are left as they were.

Output goes to stderr as colored console lines, or JSON lines with
``log_json``. :class:`~archgraph.infrastructure.project.Project` applies
it when its settings ask for ``verbose`` or ``log_json``.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, TextIO

import structlog

if TYPE_CHECKING:
    from archgraph.config.settings import ArchGraphSettings

PACKAGE_LOGGER = "archgraph"
HANDLER_NAME = "archgraph-structlog"


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stream: TextIO | None = None,
) -> logging.Handler:
    """Route archgraph's log records through structlog.

    Calling it again replaces the handler installed by the previous call.

    Args:
        verbose: Emit DEBUG and above. When False, WARNING and above.
        log_json: Render JSON lines instead of console output.
        stream: Where to write; stderr by default.

    Returns:
        The handler now attached to the ``archgraph`` logger.
    """
    shared = _shared_processors()
    renderer: structlog.types.Processor
    out = stream if stream is not None else sys.stderr
    if log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=out.isatty())

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(out)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    package = logging.getLogger(PACKAGE_LOGGER)
    for existing in [h for h in package.handlers if h.get_name() == HANDLER_NAME]:
        package.removeHandler(existing)
    package.addHandler(handler)
    package.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package.propagate = False
    return handler


def configure_from_settings(settings: ArchGraphSettings) -> logging.Handler | None:
    """Apply ``verbose``/``log_json`` from *settings*.

    Leaves logging untouched, returning None, when neither flag is set.
    """
    if not (settings.verbose or settings.log_json):
        return None
    return configure_logging(verbose=settings.verbose, log_json=settings.log_json)
