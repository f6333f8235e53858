# SPDX-License-Identifier: GPL-3.0-only
import textwrap
from typing import ClassVar

from depository import APP_NAME

_argument_not_specified = "__argument_not_specified__"


class BaseError(Exception):
    """Root of the error hierarchy. Don't raise this directly, use more specific error types."""

    is_invalid_usage: ClassVar[bool] = False
    default_solution: ClassVar[str | None] = None

    def __init__(
        self,
        reason: str,
        *,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize BaseError.

        :param reason: explain what went wrong
        :param solution: politely suggest a potential solution to the user
        """
        super().__init__(reason)
        if solution == _argument_not_specified:
            self.solution = self.default_solution
        else:
            self.solution = solution

    def friendly_msg(self) -> str:
        """Return the user-friendly representation of this error."""
        msg = str(self)
        if self.solution:
            msg += f"\n{textwrap.indent(self.solution, prefix='  ')}"
        return msg


class UsageError(BaseError):
    """Generic error for "Depository was configured incorrectly." Prefer more specific errors."""

    is_invalid_usage: ClassVar[bool] = True


class InvalidInput(UsageError):
    """User input was invalid."""


class UnexpectedFormat(UsageError):
    """The configuration text could not be read (e.g. broken YAML)."""

    default_solution = (
        "Please check if the format of your configuration file is correct.\n"
        f"If yes, please let the maintainers know that {APP_NAME} doesn't handle it properly."
    )


class InvalidDirective(InvalidInput):
    """A storage or proxy directive could not be parsed.

    The directive text is always known when the error is raised. The name of the repository
    the directive belongs to is attached later, by the configuration loader.
    """

    default_solution = (
        "Please check the syntax of the directive, e.g.\n"
        "  storageProvider: fs --quota 50GB\n"
        "  storageProvider: s3 bucket-name --region eu-central-1\n"
        "  proxied: [https://repo.maven.apache.org/maven2 --store, local-repository-name]"
    )

    def __init__(
        self,
        reason: str,
        *,
        directive: str,
        repository: str | None = None,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize InvalidDirective.

        :param reason: explain what is wrong with the directive
        :param directive: the raw directive text
        :param repository: name of the repository which declares the directive
        :param solution: politely suggest a potential solution to the user
        """
        super().__init__(reason, solution=solution)
        self.reason = reason
        self.directive = directive
        self.repository = repository

    def __str__(self) -> str:
        location = f"repository {self.repository!r}, " if self.repository else ""
        return f"{self.reason} ({location}directive {self.directive!r})"


class MalformedDirective(InvalidDirective):
    """The directive is empty or cannot be split into tokens (e.g. unbalanced quotes)."""


class UnknownStorageProvider(InvalidDirective):
    """The storage directive starts with a keyword that names no known provider."""

    def __init__(
        self,
        provider: str,
        *,
        directive: str,
        supported: list[str],
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize UnknownStorageProvider.

        :param provider: the unrecognized keyword, empty if the directive has none
        :param directive: the raw directive text
        :param supported: keywords of the known providers
        :param solution: politely suggest a potential solution to the user
        """
        quoted = ", ".join(f"'{keyword}'" for keyword in sorted(supported))
        if provider:
            reason = f"Unknown storage provider '{provider}', supported providers: {quoted}"
        else:
            reason = f"Missing storage provider, supported providers: {quoted}"
        super().__init__(reason, directive=directive, solution=solution)
        self.provider = provider


class UnknownFlag(InvalidDirective):
    """The directive uses a flag its grammar does not define."""

    def __init__(
        self,
        flag: str,
        *,
        directive: str,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize UnknownFlag.

        :param flag: the unrecognized flag, as written
        :param directive: the raw directive text
        :param solution: politely suggest a potential solution to the user
        """
        super().__init__(f"Unknown flag '{flag}'", directive=directive, solution=solution)
        self.flag = flag


class MissingFlagValue(InvalidDirective):
    """A flag which requires a value was given without one."""

    def __init__(
        self,
        flag: str,
        *,
        directive: str,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize MissingFlagValue.

        :param flag: the flag, as written
        :param directive: the raw directive text
        :param solution: politely suggest a potential solution to the user
        """
        reason = f"Flag '{flag}' requires a value"
        super().__init__(reason, directive=directive, solution=solution)
        self.flag = flag


class MissingParameter(InvalidDirective):
    """A required positional parameter was not given."""

    def __init__(
        self,
        parameter: str,
        *,
        directive: str,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize MissingParameter.

        :param parameter: label of the missing parameter, e.g. <bucket-name>
        :param directive: the raw directive text
        :param solution: politely suggest a potential solution to the user
        """
        reason = f"Missing required parameter {parameter}"
        super().__init__(reason, directive=directive, solution=solution)
        self.parameter = parameter


class UnexpectedParameter(InvalidDirective):
    """The directive has more positional parameters than its grammar accepts."""

    def __init__(
        self,
        value: str,
        *,
        directive: str,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize UnexpectedParameter.

        :param value: the surplus token
        :param directive: the raw directive text
        :param solution: politely suggest a potential solution to the user
        """
        reason = f"Unexpected parameter '{value}'"
        super().__init__(reason, directive=directive, solution=solution)
        self.value = value


class InvalidFlagValue(InvalidDirective):
    """A flag value could not be converted to the type the flag expects."""

    def __init__(
        self,
        flag: str,
        value: str,
        expected: str,
        *,
        directive: str,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize InvalidFlagValue.

        :param flag: the flag, as written
        :param value: the rejected value
        :param expected: human readable description of accepted values
        :param solution: politely suggest a potential solution to the user
        """
        reason = f"Invalid value '{value}' for flag '{flag}', expected {expected}"
        super().__init__(reason, directive=directive, solution=solution)
        self.flag = flag
        self.value = value


class InvalidQuotaFormat(InvalidFlagValue):
    """A storage quota matches neither the percentage nor the size format."""

    default_solution = "Supported quota formats: 90%, 500MB, 10GB (units: B, KB, MB, GB, TB)"

    def __init__(
        self,
        flag: str,
        value: str,
        *,
        directive: str,
        solution: str | None = _argument_not_specified,
    ) -> None:
        """Initialize InvalidQuotaFormat.

        :param flag: the flag, as written
        :param value: the rejected quota
        :param directive: the raw directive text
        :param solution: politely suggest a potential solution to the user
        """
        super().__init__(
            flag,
            value,
            "a percentage or a size with unit",
            directive=directive,
            solution=solution,
        )
