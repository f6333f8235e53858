import enum
import logging
from functools import cached_property
from typing import Any

import pydantic
from pydantic.alias_generators import to_camel

from depository.core.directives import parse_proxy_entry, parse_storage_directive
from depository.core.models.directives import LocalAlias, ProxyEntry, StorageDirective

log = logging.getLogger(__name__)

DEFAULT_STORAGE_PROVIDER = "fs --quota 100%"


class RepositoryVisibility(str, enum.Enum):
    """Who can see and download the content of a repository."""

    PUBLIC = "public"
    HIDDEN = "hidden"
    PRIVATE = "private"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def _missing_(cls, value: object) -> "RepositoryVisibility | None":
        # accept PUBLIC, Public, ...
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return None


class RepositoryConfiguration(pydantic.BaseModel):
    """Settings of a single named repository.

    The model is immutable. To change a repository, build a replacement with ``replace()`` and
    publish a new configuration document that contains it.
    """

    model_config = pydantic.ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    visibility: RepositoryVisibility = RepositoryVisibility.PUBLIC
    redeployment: bool = False
    # -1 preserves all builds of a snapshot version
    preserved: int = pydantic.Field(default=-1, ge=-1)
    storage_provider: str = DEFAULT_STORAGE_PROVIDER
    proxied: tuple[str, ...] = ()

    @pydantic.field_validator("proxied", mode="before")
    @classmethod
    def _proxied_as_list(cls, value: Any) -> Any:
        """Accept a single entry as a shorthand for a list with one entry."""
        if isinstance(value, str):
            return (value,)
        return value

    @cached_property
    def storage(self) -> StorageDirective:
        """Return the parsed storage directive.

        :raise InvalidDirective: if the storage provider directive is not valid
        """
        return parse_storage_directive(self.storage_provider)

    @cached_property
    def proxies(self) -> tuple[ProxyEntry, ...]:
        """Return the parsed proxied repositories, in the order of precedence.

        :raise InvalidDirective: if any of the entries is not valid
        """
        return tuple(parse_proxy_entry(entry) for entry in self.proxied)

    @property
    def local_aliases(self) -> list[str]:
        """Return the names of the repositories mirrored by this one."""
        return [entry.repository_name for entry in self.proxies if isinstance(entry, LocalAlias)]

    def replace(self, **changes: Any) -> "RepositoryConfiguration":
        """Return a validated copy of this repository with some of the settings changed."""
        return type(self).model_validate({**self.model_dump(), **changes})

    def validate_directives(self) -> None:
        """Parse all directives of this repository, fail on the first invalid one."""
        log.debug("Parsing storage directive %r", self.storage_provider)
        self.storage  # noqa: B018
        self.proxies  # noqa: B018


def default_repositories() -> dict[str, RepositoryConfiguration]:
    """Return the repositories available in a fresh installation."""
    return {
        "releases": RepositoryConfiguration(),
        "snapshots": RepositoryConfiguration(),
        "private": RepositoryConfiguration(visibility=RepositoryVisibility.PRIVATE),
    }
