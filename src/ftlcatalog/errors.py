"""Exception hierarchy for locale graphs, catalogs, bundles and config.

Construction-time problems (invalid locale declarations, unreadable or
malformed resources, bad configuration) are exceptions and abort the
current initialization. Static validation findings are not exceptions;
see ``ftlcatalog.validation``. Runtime resolution gaps are reported as
``Translation`` values; ``TranslationError`` is only raised by the
explicit ``try_translate`` entry points.

Python 3.13+.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from .locales import LocaleId
    from .translator import TranslationFailure

__all__ = [
    "CatalogError",
    "ConfigError",
    "ConfigFileError",
    "CycleError",
    "DuplicateFunctionError",
    "DuplicateLocaleError",
    "DuplicateMessageError",
    "EmptyLocalesError",
    "GlobalNamedResourceError",
    "InvalidLocaleError",
    "L10nError",
    "LocaleDirectoryError",
    "LocaleGraphError",
    "MissingLocalesError",
    "MissingPathError",
    "ParseError",
    "ResourceNotFoundError",
    "ResourceReadError",
    "SyntaxIssue",
    "TranslationError",
    "UnknownFallbackError",
    "UsageFeedError",
]


def _join_locales(locales: Iterable[LocaleId], sep: str = ", ") -> str:
    return sep.join(str(locale) for locale in locales)


class L10nError(Exception):
    """Base exception for all ftlcatalog errors."""


# ============================================================================
# LOCALE GRAPH (configuration errors)
# ============================================================================


class LocaleGraphError(L10nError):
    """Invalid locale declarations. Fatal: aborts initialization."""


class InvalidLocaleError(LocaleGraphError):
    """A string could not be parsed as a locale identifier.

    Attributes:
        value: The rejected input
        reason: Parser explanation
    """

    def __init__(self, value: str, reason: str = "") -> None:
        self.value = value
        self.reason = reason
        msg = f"invalid locale identifier {value!r}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class CycleError(LocaleGraphError):
    """A fallback chain revisits a locale.

    Attributes:
        chain: Visited locales, ending with the repeated one
    """

    def __init__(self, chain: tuple[LocaleId, ...]) -> None:
        self.chain = chain
        msg = f"infinite fallback loop detected: ({_join_locales(chain, ' -> ')})"
        super().__init__(msg)


class UnknownFallbackError(LocaleGraphError):
    """A fallback target is not itself a declared locale (strict mode only)."""

    def __init__(self, locale: LocaleId, fallback: LocaleId) -> None:
        self.locale = locale
        self.fallback = fallback
        msg = f'fallback "{fallback}" of locale "{locale}" is not a declared locale'
        super().__init__(msg)


class DuplicateLocaleError(LocaleGraphError):
    """The same main locale is declared twice."""

    def __init__(self, locale: LocaleId) -> None:
        self.locale = locale
        msg = f"main locale duplicate: {locale}"
        super().__init__(msg)


class EmptyLocalesError(LocaleGraphError):
    """No locale was declared or discovered."""

    def __init__(self) -> None:
        super().__init__("no locales declared")


# ============================================================================
# CATALOG AND BUNDLES (resource errors)
# ============================================================================


class CatalogError(L10nError):
    """Resource loading or bundle composition failure. Fatal."""


class ResourceReadError(CatalogError):
    """A resource path (root directory or file) cannot be read."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        msg = f"impossible to read path `{path}` ({reason})"
        super().__init__(msg)


@dataclass(frozen=True, slots=True)
class SyntaxIssue:
    """One syntax problem inside a resource file.

    Attributes:
        line: 1-based line number
        column: 1-based column number
        code: Parser annotation code (e.g., 'E0003')
        message: Parser explanation
    """

    line: int
    column: int
    code: str
    message: str

    def __str__(self) -> str:
        return f"{self.line}:{self.column} [{self.code}] {self.message}"


class ParseError(CatalogError):
    """A resource file has malformed syntax.

    Attributes:
        path: Resource file path
        details: Syntax problems in source order
    """

    def __init__(self, path: Path, details: tuple[SyntaxIssue, ...]) -> None:
        self.path = path
        self.details = details
        lines = "\n  - ".join(str(issue) for issue in details)
        msg = f"parsing errors in `{path}`:\n  - {lines}"
        super().__init__(msg)


class GlobalNamedResourceError(CatalogError):
    """A file directly under the resource root lacks the unnamed prefix."""

    def __init__(self, path: Path) -> None:
        self.path = path
        msg = f'named resource "{path}" cannot be global, please prefix file name with `_`'
        super().__init__(msg)


class LocaleDirectoryError(CatalogError):
    """Discovery mode found a directory that is not a locale identifier."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        msg = (
            f"impossible to parse directory `{name}` as a language identifier "
            f"(error: {reason})"
        )
        super().__init__(msg)


class MissingLocalesError(CatalogError):
    """Mandatory locales have no directory under the resource root."""

    def __init__(self, locales: tuple[LocaleId, ...]) -> None:
        self.locales = locales
        noun = "directory" if len(locales) == 1 else "directories"
        msg = f"missing mandatory locale {noun}: {_join_locales(locales)}"
        super().__init__(msg)


class DuplicateMessageError(CatalogError):
    """The formatting engine rejected a resource for duplicate entries.

    Attributes:
        locale: Locale of the bundle being built
        resource: Named resource of the bundle being built
        ids: Conflicting message or term identifiers
        source_path: File that introduced the conflict
    """

    def __init__(
        self,
        locale: LocaleId,
        resource: str,
        ids: tuple[str, ...],
        source_path: str | None = None,
    ) -> None:
        self.locale = locale
        self.resource = resource
        self.ids = ids
        self.source_path = source_path
        where = f" in `{source_path}`" if source_path else ""
        msg = (
            f'duplicate entries {", ".join(ids)}{where} while building resource '
            f'"{resource}" for locale "{locale}"'
        )
        super().__init__(msg)


class ResourceNotFoundError(L10nError):
    """A locale does not provide the requested named resource.

    Recoverable: fallback walks skip locales raising this.
    """

    def __init__(self, locale: LocaleId, resource: str) -> None:
        self.locale = locale
        self.resource = resource
        msg = f'resource "{resource}" does not exist for locale "{locale}"'
        super().__init__(msg)


# ============================================================================
# RUNTIME
# ============================================================================


class DuplicateFunctionError(L10nError):
    """A function name was registered twice."""

    def __init__(self, name: str) -> None:
        self.name = name
        msg = f"function duplicate: {name}"
        super().__init__(msg)


class TranslationError(L10nError):
    """Explicit translation request could not be satisfied.

    Attributes:
        failure: Why resolution failed
        locale: Requested locale
        resource: Requested named resource
        key: Requested message key
    """

    def __init__(
        self,
        failure: TranslationFailure,
        locale: str,
        resource: str,
        key: str,
    ) -> None:
        self.failure = failure
        self.locale = locale
        self.resource = resource
        self.key = key
        msg = f'{failure.describe()}: "{key}" in resource "{resource}" for locale "{locale}"'
        super().__init__(msg)


# ============================================================================
# CONFIGURATION
# ============================================================================


class ConfigError(L10nError):
    """Configuration file could not be used."""


class ConfigFileError(ConfigError):
    """Configuration file is unreadable or malformed."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        msg = f'error reading configuration file "{path}": {reason}'
        super().__init__(msg)


class MissingPathError(ConfigError):
    """Selected path environment is not configured."""

    def __init__(self, environment: str) -> None:
        self.environment = environment
        msg = f'l10n path for environment "{environment}" is not set in the configuration'
        super().__init__(msg)


class UsageFeedError(L10nError):
    """Usage feed file is unreadable or malformed."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        msg = f'invalid usage feed "{source}": {reason}'
        super().__init__(msg)
