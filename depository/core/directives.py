"""This module parses storage and proxy directives into typed settings.

A directive is a single line in the style of a command invocation::

    fs --quota 50GB
    s3 bucket-name --endpoint custom.endpoint.com --region eu-central-1
    https://repo.maven.apache.org/maven2 --store --connectTimeout=5 --allow com.example
    local-repository-name

Each directive family has an explicit table of grammars. A grammar names the model to build,
its positional parameters and its flags.

A token starting with a dash is read as a flag, unless it is a negative number. A value that
itself starts with a dash must be given inline, e.g. `--secret-key=-abc`.
"""

import logging
import re
import shlex
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

import pydantic

from depository.core.errors import (
    InvalidFlagValue,
    InvalidQuotaFormat,
    MalformedDirective,
    MissingFlagValue,
    MissingParameter,
    UnexpectedParameter,
    UnknownFlag,
    UnknownStorageProvider,
)
from depository.core.models.directives import (
    FileSystemStorage,
    HostDirective,
    LocalAlias,
    ProxyEntry,
    S3Storage,
    StorageDirective,
)

log = logging.getLogger(__name__)

# 90%, 500MB, 10GB, 1.5TB
QUOTA_FORMAT = re.compile(r"\d+(\.\d+)?(%|B|KB|MB|GB|TB)")

# Anything that starts with a URL scheme, e.g. https://, http://, file://
URL_SCHEME = re.compile(r"[a-zA-Z][a-zA-Z0-9+.-]*://")

# Negative numbers are values (rejected later by the converter), not flags
NEGATIVE_NUMBER = re.compile(r"-\d+")

FlagKind = Literal["bool", "value", "list"]
Converter = Callable[[str, str, str], Any]


def _as_string(flag: str, value: str, directive: str) -> str:  # noqa: ARG001
    return value


def _as_positive_int(flag: str, value: str, directive: str) -> int:
    if not (value.isascii() and value.isdigit()) or int(value) <= 0:
        raise InvalidFlagValue(flag, value, "a positive integer", directive=directive)
    return int(value)


def _as_quota(flag: str, value: str, directive: str) -> str:
    if not QUOTA_FORMAT.fullmatch(value):
        raise InvalidQuotaFormat(flag, value, directive=directive)
    return value


def _as_bool(flag: str, value: str, directive: str) -> bool:
    if value.lower() not in ("true", "false"):
        raise InvalidFlagValue(flag, value, "'true' or 'false'", directive=directive)
    return value.lower() == "true"


@dataclass(frozen=True)
class Flag:
    """A flag accepted by a directive grammar.

    :param field: name of the model field the flag sets
    :param names: canonical long name first, then aliases
    :param kind: "bool" takes no value, "value" takes exactly one, "list" takes any number
    :param convert: turns the raw value into the field value, raising on invalid input
    """

    field: str
    names: tuple[str, ...]
    kind: FlagKind = "value"
    convert: Converter = _as_string

    @property
    def name(self) -> str:
        """Return the canonical name of the flag."""
        return self.names[0]


@dataclass(frozen=True)
class Parameter:
    """A positional parameter accepted by a directive grammar."""

    field: str
    label: str


@dataclass(frozen=True)
class Grammar:
    """The syntax of a single kind of directive."""

    model: type[pydantic.BaseModel]
    parameters: tuple[Parameter, ...] = ()
    flags: tuple[Flag, ...] = ()

    def find_flag(self, name: str) -> Flag | None:
        """Find a flag by its canonical name or any of its aliases."""
        for flag in self.flags:
            if name in flag.names:
                return flag
        return None


FS_GRAMMAR = Grammar(
    model=FileSystemStorage,
    flags=(
        Flag("quota", ("--quota", "-q"), convert=_as_quota),
        Flag("mount", ("--mount", "-m")),
    ),
)

S3_GRAMMAR = Grammar(
    model=S3Storage,
    parameters=(Parameter("bucket", "<bucket-name>"),),
    flags=(
        Flag("endpoint", ("--endpoint", "-e")),
        Flag("access_key", ("--access-key", "-a")),
        Flag("secret_key", ("--secret-key", "-s")),
        Flag("region", ("--region", "-r")),
    ),
)

HOST_GRAMMAR = Grammar(
    model=HostDirective,
    parameters=(Parameter("url", "<url>"),),
    flags=(
        Flag("store", ("--store",), kind="bool", convert=_as_bool),
        Flag("connect_timeout", ("--connectTimeout",), convert=_as_positive_int),
        Flag("read_timeout", ("--readTimeout",), convert=_as_positive_int),
        Flag("authorization", ("--authorization", "--auth")),
        Flag("allowed_groups", ("--allow", "--allowGroup"), kind="list"),
        Flag("proxy", ("--proxy",)),
    ),
)

LOCAL_ALIAS_GRAMMAR = Grammar(
    model=LocalAlias,
    parameters=(Parameter("repository_name", "<repository-name>"),),
)

# Supported storage providers. Register a new provider by adding its model to the
# StorageDirective union and its grammar here.
STORAGE_PROVIDERS: dict[str, Grammar] = {
    "fs": FS_GRAMMAR,
    "s3": S3_GRAMMAR,
}


def tokenize(directive: str) -> list[str]:
    """Split a directive on whitespace, keeping quoted substrings together."""
    try:
        tokens = shlex.split(directive)
    except ValueError as e:
        raise MalformedDirective(f"Cannot tokenize directive: {e}", directive=directive) from e

    if not tokens:
        raise MalformedDirective("Directive is empty", directive=directive)

    return tokens


def _looks_like_flag(token: str) -> bool:
    return token.startswith("-") and len(token) > 1 and not NEGATIVE_NUMBER.fullmatch(token)


def parse_arguments(grammar: Grammar, arguments: Sequence[str], directive: str) -> dict[str, Any]:
    """Match the arguments of a directive against a grammar.

    :param grammar: the grammar of the directive
    :param arguments: tokens of the directive, without the leading keyword (if any)
    :param directive: the raw directive text, used for error reporting
    :return: field values for the grammar's model; omitted flags are not included
    """
    values: dict[str, Any] = {}
    positionals: list[str] = []

    i = 0
    while i < len(arguments):
        token = arguments[i]
        i += 1

        if not _looks_like_flag(token):
            positionals.append(token)
            continue

        name, separator, inline_value = token.partition("=")
        flag = grammar.find_flag(name)
        if flag is None:
            raise UnknownFlag(name, directive=directive)

        if flag.kind == "bool":
            values[flag.field] = flag.convert(name, inline_value, directive) if separator else True
        elif flag.kind == "value":
            if separator:
                value = inline_value
            elif i < len(arguments) and not _looks_like_flag(arguments[i]):
                value = arguments[i]
                i += 1
            else:
                value = ""

            if not value:
                raise MissingFlagValue(name, directive=directive)
            # the last occurrence wins
            values[flag.field] = flag.convert(name, value, directive)
        else:
            collected = values.setdefault(flag.field, [])
            if separator and inline_value:
                collected.append(flag.convert(name, inline_value, directive))
            while i < len(arguments) and not _looks_like_flag(arguments[i]):
                collected.append(flag.convert(name, arguments[i], directive))
                i += 1

    for parameter in grammar.parameters:
        if not positionals:
            raise MissingParameter(parameter.label, directive=directive)
        values[parameter.field] = positionals.pop(0)

    if positionals:
        raise UnexpectedParameter(positionals[0], directive=directive)

    return values


def _build(grammar: Grammar, arguments: Sequence[str], directive: str) -> Any:
    values = parse_arguments(grammar, arguments, directive)
    return grammar.model.model_validate(values)


def parse_storage_directive(directive: str) -> StorageDirective:
    """Parse a storage directive, e.g. 'fs --quota 50GB' or 's3 bucket-name --region r'.

    :raise InvalidDirective: if the directive is not valid
    """
    if not directive.strip():
        raise UnknownStorageProvider(
            "", directive=directive, supported=list(STORAGE_PROVIDERS)
        )

    keyword, *arguments = tokenize(directive)

    grammar = STORAGE_PROVIDERS.get(keyword)
    if grammar is None:
        raise UnknownStorageProvider(
            keyword, directive=directive, supported=list(STORAGE_PROVIDERS)
        )

    return _build(grammar, arguments, directive)


def is_host_directive(token: str) -> bool:
    """Check if the first token of a proxy entry names a remote host."""
    return URL_SCHEME.match(token) is not None


def parse_proxy_entry(directive: str) -> ProxyEntry:
    """Parse a proxied repository entry.

    An entry starting with a URL is a remote host with optional flags. Anything else is a
    reference to another repository configured on this instance.

    :raise InvalidDirective: if the entry is not valid
    """
    tokens = tokenize(directive)

    if is_host_directive(tokens[0]):
        return _build(HOST_GRAMMAR, tokens, directive)

    log.debug("Proxy entry %r does not start with a URL, treating it as a local alias", directive)
    return _build(LOCAL_ALIAS_GRAMMAR, tokens, directive)
