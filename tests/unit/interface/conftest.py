import logging
from collections.abc import Generator

import pytest


@pytest.fixture
def app_logger() -> Generator[logging.Logger, None, None]:
    """Return the application logger detached from the root logger, restore it afterwards."""
    logger = logging.getLogger("depository")
    extra_logger = logging.getLogger("pydantic")
    saved = (logger.level, logger.handlers[:], logger.propagate, extra_logger.level)

    # pytest attaches its own handlers to the root logger
    logger.propagate = False
    logger.handlers = []
    yield logger

    level, logger.handlers, logger.propagate, extra_level = saved
    logger.setLevel(level)
    extra_logger.setLevel(extra_level)
