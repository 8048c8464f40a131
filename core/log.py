"""
Logging helpers.

Components log through named loggers and print as ``[Component] message``,
with a timestamp when verbose output is on.
"""
import logging
import sys
from typing import Optional


ROOT_LOGGER = "threadchat"


class ComponentFormatter(logging.Formatter):
    """Formats records as ``[Component] message``."""

    def __init__(self, with_time: bool = False):
        fmt = "[%(component)s] %(message)s"
        if with_time:
            fmt = "[%(asctime)s] " + fmt
        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        record.component = record.name.rsplit('.', 1)[-1]
        return super().format(record)


def get_logger(component: str) -> logging.Logger:
    """Return the logger for a component, e.g. ``get_logger("NodeStore")``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


def configure(verbose: bool = False, stream: Optional[object] = None) -> logging.Logger:
    """
    Install a stream handler on the package root logger.

    Safe to call more than once; the previous handler is replaced.
    """
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)  # type: ignore[arg-type]
    handler.setFormatter(ComponentFormatter(with_time=verbose))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.propagate = False
    return root
