import datetime
import enum
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

import pydantic
import yaml
from pydantic import ValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import ErrorDetails
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)
from typing_extensions import Self

from depository import APP_NAME
from depository.core.errors import InvalidDirective, InvalidInput, UnexpectedFormat
from depository.core.models.repository import RepositoryConfiguration, default_repositories

log = logging.getLogger(__name__)
snapshot: "ConfigurationSnapshot | None" = None
_publish_lock = threading.Lock()


class _SettingsBlock(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ResolvedRequestsInterval(str, enum.Enum):
    """How often recorded requests are divided into separate groups."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    def __str__(self) -> str:
        return self.value

    def bucket(self, day: datetime.date) -> datetime.date:
        """Return the first day of the group the given day belongs to."""
        if self == ResolvedRequestsInterval.WEEKLY:
            return day - datetime.timedelta(days=day.weekday())
        if self == ResolvedRequestsInterval.MONTHLY:
            return day.replace(day=1)
        if self == ResolvedRequestsInterval.YEARLY:
            return day.replace(month=1, day=1)
        return day


class StatisticsSettings(_SettingsBlock):
    """Statistics module configuration.

    With higher precision you get more detailed timestamps, but a bigger database. Public
    instances should not use the daily interval.
    """

    resolved_requests_interval: ResolvedRequestsInterval = ResolvedRequestsInterval.MONTHLY


class AccessTokenType(str, enum.Enum):
    """Lifetime of an access token created for an LDAP user."""

    PERSISTENT = "PERSISTENT"
    TEMPORARY = "TEMPORARY"


class LdapSettings(_SettingsBlock):
    """LDAP authenticator configuration."""

    enabled: bool = False
    hostname: str = "ldap.domain.com"
    port: int = pydantic.Field(default=389, ge=1, le=65535)
    base_dn: str = "dc=company,dc=com"
    # needs permissions to read all LDAP entries
    search_user_dn: str = "cn=depository,ou=admins,dc=domain,dc=com"
    search_user_password: str = "depository-admin-secret"
    user_attribute: str = "cn"
    user_filter: str = "(&(objectClass=person)(ou=Maven Users))"
    user_type: AccessTokenType = AccessTokenType.PERSISTENT


class Configuration(BaseSettings):
    """Settings shared by the whole instance, including the repositories it hosts.

    A configuration object is never modified. Reloading the configuration publishes an
    entirely new object, see publish_config().
    """

    model_config = SettingsConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    # Repository id used in Maven repository configuration
    id: str = "depository-repository"
    title: str = "Depository Repository"
    description: str = "Public Maven repository hosted through the Depository"
    organization_website: str = "https://depository.dev"
    organization_logo: str = "https://depository.dev/logo.png"
    # The Internet Content Provider License (also known as Bei'An), required by web
    # services operating in China
    icp_license: str = ""
    frontend: bool = True
    swagger: bool = False
    base_path: str = "/"

    repositories: Mapping[str, RepositoryConfiguration] = pydantic.Field(
        default_factory=default_repositories, validate_default=True
    )

    statistics: StatisticsSettings = StatisticsSettings()
    ldap: LdapSettings = LdapSettings()

    # The header which carries the origin ip behind a reverse proxy, e.g.
    # X-Forwarded-For (nginx), CF-Connecting-IP (Cloudflare), X-Real-IP
    forwarded_ip: str = "X-Forwarded-For"

    @pydantic.field_validator("base_path")
    @classmethod
    def _normalize_base_path(cls, base_path: str) -> str:
        """Make sure a non-empty base path starts and ends with a slash."""
        if not base_path:
            return base_path
        if not base_path.startswith("/"):
            base_path = f"/{base_path}"
        if not base_path.endswith("/"):
            base_path += "/"
        return base_path

    @pydantic.field_validator("repositories", mode="after")
    @classmethod
    def _freeze_repositories(
        cls, repositories: Mapping[str, RepositoryConfiguration]
    ) -> Mapping[str, RepositoryConfiguration]:
        """Make the repositories read-only, a published configuration is never changed in place."""
        return MappingProxyType(dict(repositories))

    @pydantic.field_serializer("repositories")
    def _serialize_repositories(
        self, repositories: Mapping[str, RepositoryConfiguration]
    ) -> dict[str, RepositoryConfiguration]:
        return dict(repositories)

    @pydantic.model_validator(mode="after")
    def _parse_directives(self) -> Self:
        """Parse the directives of all repositories, fail on the first invalid one."""
        for name, repository in self.repositories.items():
            try:
                repository.validate_directives()
            except InvalidDirective as e:
                e.repository = name
                raise

        for name, repository in self.repositories.items():
            for alias in repository.local_aliases:
                if alias == name:
                    log.warning("Repository '%s' lists itself as a proxied repository", name)
                elif alias not in self.repositories:
                    log.warning(
                        "Repository '%s' proxies an unknown local repository '%s'", name, alias
                    )

        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Control allowed settings sources and priority.

        Priority (highest to lowest): init_settings (for programmatic/test overrides),
        configuration file.

        https://docs.pydantic.dev/2.11/concepts/pydantic_settings/#customise-settings-sources
        """
        return (
            init_settings,
            YamlConfigSettingsSource(settings_cls),  # The path from yaml_file in model_config
        )


def create_file_config_class(config_path: Path) -> type[Configuration]:
    """Return a subclass of Configuration that reads the given YAML file.

    This is necessary because the path of the YAML file is not known ahead of time:
    https://github.com/pydantic/pydantic-settings/issues/259
    """

    class FileConfiguration(Configuration):
        """A subclass of Configuration that uses the YAML file input."""

        model_config = SettingsConfigDict(
            extra="forbid",
            frozen=True,
            alias_generator=to_camel,
            populate_by_name=True,
            yaml_file=config_path,
        )

    return FileConfiguration


def _present_config_error(validation_error: ValidationError) -> str:
    """Format validation errors for configuration sources"""
    errors = validation_error.errors()
    n_errors = len(errors)

    def show_error(error: ErrorDetails) -> str:
        location = " -> ".join(map(str, error["loc"]))
        message = error["msg"]
        return f"{location}: {message}"

    formatted_errors = "\n".join(show_error(e) for e in errors)

    return (
        f"{n_errors} validation error{'s' if n_errors > 1 else ''} in {APP_NAME.capitalize()} "
        f"configuration:\n{formatted_errors}"
    )


def _load_yaml(text: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise UnexpectedFormat(f"Configuration is not valid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise UnexpectedFormat(
            f"Configuration must be a mapping of settings, got {type(data).__name__}"
        )
    return data


def parse_configuration(text: str) -> Configuration:
    """Deserialize and validate a configuration document.

    :param text: the configuration in YAML (or JSON) format
    :raise UnexpectedFormat: if the text cannot be read as a mapping
    :raise InvalidInput: if any of the settings is not valid
    :raise InvalidDirective: if any of the storage or proxy directives is not valid
    """
    try:
        configuration = Configuration.model_validate(_load_yaml(text))
    except ValidationError as e:
        raise InvalidInput(_present_config_error(e)) from e

    log.debug("Loaded configuration with repositories: %s", ", ".join(configuration.repositories))
    return configuration


def load_configuration(path: Path) -> Configuration:
    """Read and validate a configuration file, see parse_configuration()."""
    # Only checks that the file holds a mapping, the settings are validated by the file source
    _load_yaml(path.read_text())

    # Workaround for https://github.com/pydantic/pydantic-settings/issues/259
    file_config_class = create_file_config_class(path)
    try:
        configuration = file_config_class()
    except ValidationError as e:
        raise InvalidInput(_present_config_error(e)) from e

    log.debug("Loaded configuration from %s", path)
    return configuration


@dataclass(frozen=True)
class ConfigurationSnapshot:
    """A published version of the configuration."""

    version: int
    configuration: Configuration


def publish_config(configuration: Configuration) -> ConfigurationSnapshot:
    """Replace the current configuration with a new one.

    Readers see either the old or the new snapshot, never a mix of both.
    """
    global snapshot

    with _publish_lock:
        version = snapshot.version + 1 if snapshot else 1
        new_snapshot = ConfigurationSnapshot(version, configuration)
        snapshot = new_snapshot

    log.info("Published configuration version %d", version)
    return new_snapshot


def get_snapshot() -> ConfigurationSnapshot:
    """Get the current configuration snapshot, publish the defaults if there is none."""
    global snapshot

    current = snapshot
    if current is not None:
        return current

    with _publish_lock:
        if snapshot is None:
            try:
                snapshot = ConfigurationSnapshot(1, Configuration())
            except ValidationError as e:
                raise InvalidInput(_present_config_error(e)) from e
        return snapshot


def get_config() -> Configuration:
    """Get the current configuration."""
    return get_snapshot().configuration


def set_config(path: Path) -> ConfigurationSnapshot:
    """Load the configuration from a file and publish it."""
    return publish_config(load_configuration(path))
