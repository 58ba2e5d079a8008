"""Process logging for ``vibetree start``.

Each line carries the project whose hook event is being handled, read from
:data:`log_source` when the line is formatted.  Lines logged outside a
dispatch are tagged ``app``.
"""

import contextvars
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from vibetree.paths import log_path

log_source: contextvars.ContextVar[str] = contextvars.ContextVar("log_source", default="app")


class SourceFormatter(logging.Formatter):
    def __init__(self):
        super().__init__(
            "%(asctime)s [%(source)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        record.source = log_source.get()
        return super().format(record)


def configure_logging(
    vt_home: Path | None = None,
    *,
    level: int = logging.INFO,
    console: bool = True,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> None:
    """Attach the vibetree handlers to the root logger.

    Writes ``vibetree.log`` under *vt_home* (rotated) and, with *console*,
    stderr.  Does nothing if the handlers are already attached.
    """
    root = logging.getLogger()
    if any(isinstance(h.formatter, SourceFormatter) for h in root.handlers):
        return

    handlers: list[logging.Handler] = []
    if vt_home is not None:
        vt_home.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_path(vt_home), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8",
        ))
    if console:
        handlers.append(logging.StreamHandler())

    formatter = SourceFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)
