import logging
import sys
from typing import Optional

PACKAGE_LOGGER_NAME = "cms_content_compiler"


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int) -> None:
        super().__init__()
        self._max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self._max_level


def configure_split_stream_logging(
    *,
    level: int = logging.INFO,
    stderr_level: int = logging.WARNING,
    formatter: Optional[logging.Formatter] = None,
) -> None:
    """Configure root logging:

    - DEBUG/INFO go to stdout
    - WARNING/ERROR/CRITICAL go to stderr

    Compiler progress stays on stdout so that diagnostics remain visible when a
    build tool swallows it.
    """

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    if formatter is None:
        formatter = logging.Formatter("%(message)s")

    if stderr_level < logging.DEBUG:
        stderr_level = logging.DEBUG

    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(_MaxLevelFilter(stderr_level - 1))
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setLevel(stderr_level)
    stderr_handler.setFormatter(formatter)

    root.addHandler(stdout_handler)
    root.addHandler(stderr_handler)


def set_silent(silent: bool) -> None:
    """Mute (or restore) every logger below the package logger."""
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    package_logger.setLevel(logging.CRITICAL + 1 if silent else logging.NOTSET)


def indent(level: int, text: str) -> str:
    return "\n".join(f"{' ' * level}{line}" for line in text.split("\n"))
