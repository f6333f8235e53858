import logging
from pathlib import Path

from depository.core.config import ConfigurationSnapshot, get_snapshot, set_config
from depository.interface.logging import LogLevel, setup_logging

log = logging.getLogger(__name__)


def start(
    config_path: Path | None = None, log_level: LogLevel | str = LogLevel.INFO
) -> ConfigurationSnapshot:
    """Set up logging and publish the configuration the instance starts with.

    :param config_path: the YAML configuration file, the defaults are used if not given
    :param log_level: the lowest level to report
    :raise BaseError: if the configuration cannot be loaded, nothing is published then
    """
    setup_logging(log_level)

    if config_path is None:
        log.info("No configuration file given, using the defaults")
        snapshot = get_snapshot()
    else:
        log.info("Loading configuration from %s", config_path)
        snapshot = set_config(config_path)

    configuration = snapshot.configuration
    log.info(
        "Serving %d repositories under '%s': %s",
        len(configuration.repositories),
        configuration.base_path,
        ", ".join(configuration.repositories),
    )
    return snapshot
