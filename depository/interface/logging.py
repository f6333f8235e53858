import enum
import logging
from collections.abc import Iterable

from depository import APP_NAME

# The logger name tells the configuration loader apart from the statistics engine
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LogLevel(str, enum.Enum):
    """Valid log levels, matched case-insensitively."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def _missing_(cls, value: object) -> "LogLevel | None":
        if isinstance(value, str):
            return cls.__members__.get(value.upper())
        return None


def setup_logging(
    level: LogLevel | str = LogLevel.INFO, additional_modules: Iterable[str] = ()
) -> logging.Handler:
    """Send the records of the Depository loggers to stderr.

    Every module logs through a child of the application logger (depository.core.config,
    depository.core.statistics, ...), so setting up the application logger covers all of them.
    Loggers that already have a handler keep it.

    :param level: the lowest level to report, e.g. LogLevel.DEBUG or "debug"
    :param additional_modules: names of other loggers to set up the same way
    :return: the handler attached to loggers that had none
    """
    level = LogLevel(level)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for module in [APP_NAME, *additional_modules]:
        logger = logging.getLogger(module)
        logger.setLevel(level.value)

        if not logger.hasHandlers():
            logger.addHandler(handler)

    return handler
