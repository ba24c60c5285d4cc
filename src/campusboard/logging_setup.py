"""Process-wide logging configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from campusboard.config.schema import LoggingConfig

_PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_STRUCTURED_FORMAT = (
    "ts=%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)r"
)


def configure_logging(config: LoggingConfig) -> None:
    """Attach handlers to the ``campusboard`` logger.

    Safe to call more than once; previously installed handlers are
    replaced.
    """
    root = logging.getLogger("campusboard")
    root.setLevel(config.level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    fmt = logging.Formatter(_STRUCTURED_FORMAT if config.structured else _PLAIN_FORMAT)

    stream = logging.StreamHandler()
    stream.setFormatter(fmt)
    root.addHandler(stream)

    if config.file:
        path = Path(config.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    root.propagate = False
