import logging
import os
import sys
from typing import Dict, Optional

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

# Third-party loggers that drown out service logs at DEBUG
QUIET_LOGGERS: Dict[str, int] = {
    "sqlalchemy.engine": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "urllib3": logging.WARNING,
    "redis": logging.WARNING,
}

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[1;91m",
    "CRITICAL": "\033[1;95m",
}
RESET = "\033[0m"


def colors_enabled(requested: bool, stream=sys.stdout) -> bool:
    """NO_COLOR wins over FORCE_COLOR; otherwise only colour a real terminal"""
    if not requested or os.environ.get("NO_COLOR", "").lower() in ("1", "true", "yes"):
        return False
    if os.environ.get("FORCE_COLOR", "").lower() in ("1", "true", "yes"):
        return True
    return os.environ.get("TERM") != "dumb" and hasattr(stream, "isatty") and stream.isatty()


class LevelColorFormatter(logging.Formatter):
    """Colours the level name; the rest of the line stays plain so log shippers can parse it"""

    def __init__(self, fmt: str = DEFAULT_FORMAT, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        original = record.levelname
        color = LEVEL_COLORS.get(original)
        if color:
            record.levelname = f"{color}{original}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logging(
    log_level: Optional[str] = None,
    format_string: Optional[str] = None,
    force_configure: bool = False,
    use_colors: bool = True
) -> None:
    """
    Configure the root logger once per process.

    Repeated calls are no-ops unless force_configure is set, so the API
    and the maintenance scripts can both call this on import.
    """
    root_logger = logging.getLogger()
    if root_logger.handlers and not force_configure:
        return

    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LevelColorFormatter(format_string or DEFAULT_FORMAT, colors_enabled(use_colors)))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, quiet_level))

    root_logger.debug(f"Logging configured at {level_name}")


def get_logger(name: str) -> logging.Logger:
    """
    Module logger that propagates to the root handler.
    """
    logger = logging.getLogger(name)
    logger.handlers = []
    logger.propagate = True
    return logger
