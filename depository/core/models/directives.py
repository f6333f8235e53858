from pathlib import Path
from typing import Annotated, Literal, Union

import pydantic

DEFAULT_REPOSITORIES_ROOT = Path("repositories")


class _DirectiveBase(pydantic.BaseModel, extra="forbid", frozen=True):
    """Common base of all parsed directives."""


class FileSystemStorage(_DirectiveBase):
    """Local file system (disk) storage provider settings."""

    type: Literal["fs"] = "fs"
    quota: str = "100%"
    mount: str = ""

    def mount_path(self, repository_name: str, root: Path = DEFAULT_REPOSITORIES_ROOT) -> Path:
        """Return the directory holding the data of the given repository.

        Without an explicit --mount, each repository lives in its own subdirectory of the root.
        """
        if self.mount:
            return Path(self.mount)
        return root / repository_name


class S3Storage(_DirectiveBase):
    """Amazon S3 storage provider settings.

    Empty optional values mean "use the defaults of the S3 client".
    """

    type: Literal["s3"] = "s3"
    bucket: str
    endpoint: str = ""
    access_key: str = ""
    secret_key: str = ""
    region: str = ""


StorageDirective = Annotated[
    Union[FileSystemStorage, S3Storage],
    pydantic.Field(discriminator="type"),
]


class HostDirective(_DirectiveBase):
    """An entry representing one proxied remote host and its configuration."""

    type: Literal["host"] = "host"
    url: str
    store: bool = False
    connect_timeout: int = 3
    read_timeout: int = 15
    authorization: str | None = None
    allowed_groups: frozenset[str] = frozenset()
    proxy: str = ""

    def allows(self, group: str) -> bool:
        """Check if artifacts of the given group may be requested from this host."""
        if not self.allowed_groups:
            return True
        return any(group.startswith(prefix) for prefix in self.allowed_groups)


class LocalAlias(_DirectiveBase):
    """A proxy entry which mirrors another repository of the same instance."""

    type: Literal["local"] = "local"
    repository_name: str


ProxyEntry = Annotated[
    Union[HostDirective, LocalAlias],
    pydantic.Field(discriminator="type"),
]
