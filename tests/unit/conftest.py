# SPDX-License-Identifier: GPL-3.0-only
import datetime
from collections.abc import Generator
from pathlib import Path

import pytest

import depository.core.config as config_module


@pytest.fixture(autouse=True)
def reset_config_snapshot() -> Generator[None, None, None]:
    """Reset the published configuration before and after a test."""
    config_module.snapshot = None
    yield
    config_module.snapshot = None


@pytest.fixture
def data_dir() -> Path:
    """Return Path object for the directory that stores unit test data."""
    return Path(__file__).parent / "data"


@pytest.fixture
def today() -> datetime.date:
    return datetime.date(2024, 5, 17)
