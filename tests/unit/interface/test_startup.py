import logging
from pathlib import Path

import pytest

import depository.core.config as config_module
from depository.core.config import get_config
from depository.core.errors import InvalidDirective
from depository.interface.startup import start


def test_start_with_defaults(app_logger: logging.Logger) -> None:
    snapshot = start()

    assert snapshot.version == 1
    assert get_config() is snapshot.configuration
    assert list(snapshot.configuration.repositories) == ["releases", "snapshots", "private"]
    assert app_logger.level == logging.INFO
    assert len(app_logger.handlers) == 1


def test_start_with_file(app_logger: logging.Logger, data_dir: Path) -> None:
    snapshot = start(data_dir / "depository.yaml", log_level="debug")

    assert snapshot.version == 1
    assert get_config().id == "maven-example"
    assert app_logger.level == logging.DEBUG


def test_start_with_invalid_file_publishes_nothing(
    app_logger: logging.Logger, tmp_path: Path
) -> None:
    config_path = tmp_path / "depository.yaml"
    config_path.write_text("repositories: {releases: {storageProvider: ftp somewhere}}")

    with pytest.raises(InvalidDirective, match="Unknown storage provider 'ftp'"):
        start(config_path)

    assert config_module.snapshot is None
