"""Root logger wiring for the schemadesk client.

Diagnostics are written to stderr and, when ``logging.file`` is set,
to a UTF-8 log file as well.
"""

import logging
import sys
from typing import Optional, Union

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DEFAULT_LOG_FILE = None

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def resolve_log_level(level: Union[int, str, None]) -> int:
    """Maps a level name ('debug', 'WARNING') or number to a logging level."""
    if isinstance(level, int):
        return level
    if not level:
        return DEFAULT_LOG_LEVEL
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else DEFAULT_LOG_LEVEL


def _attach(root: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def setup_logging(
    log_level: Union[int, str] = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = DEFAULT_LOG_FILE
) -> None:
    """Replaces the root logger's handlers with stderr and optional file output.

    Args:
        log_level: Minimum level, as a number or a name such as 'debug'.
        log_format: Format string shared by every handler.
        log_file: Path of an extra log file; unwritable paths are reported and skipped.
    """
    level = resolve_log_level(log_level)
    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    formatter = logging.Formatter(log_format)
    # stdout is reserved for command output
    _attach(root, logging.StreamHandler(sys.stderr), level, formatter)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
        except OSError as e:
            root.error(f"Cannot write log file {log_file}: {e}")
        else:
            _attach(root, file_handler, level, formatter)
            root.debug(f"Writing logs to {log_file}")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root.debug(f"Root logger set to {logging.getLevelName(level)}")
