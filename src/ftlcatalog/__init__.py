"""ftlcatalog - Fluent resource catalogs with locale fallback and static validation.

Loads a directory tree of .ftl resources, composes per-(locale, resource)
bundles, resolves messages along locale fallback chains at runtime, and
validates message usages against every mandatory locale ahead of time.

Public API:
    LocaleGraph - Locale fallback forest (declared or discovered)
    ResourceCatalog - Global unnamed, locale unnamed and named resources
    BundleBuilder - Single-flight cache of merged FluentBundles
    Translator - Runtime formatting with fallback and placeholders
    Message - Resource/key handle with default arguments
    Validator / validate - Static usage validation
    MessageUsage / load_usages - Validator inputs
    load_config - ``[l10n]`` TOML configuration

Exceptions:
    L10nError - Base exception class
    LocaleGraphError - Invalid locale declarations
    CatalogError - Resource tree cannot be loaded
    TranslationError - Message cannot be resolved (try_translate)
    ConfigError - Configuration file cannot be used

Submodules:
    ftlcatalog.analysis - Required arguments and function references
    ftlcatalog.cli - ``ftlcatalog`` command line tool
"""

from .bundles import BundleBuilder, BundleKey
from .catalog import Resource, ResourceCatalog, ResourceScope, ScopeKind
from .config import Config, load_config
from .errors import (
    CatalogError,
    ConfigError,
    DuplicateMessageError,
    L10nError,
    LocaleGraphError,
    ResourceNotFoundError,
    TranslationError,
)
from .locales import LocaleDeclaration, LocaleGraph, LocaleId
from .message import UNEXPECTED_MESSAGE, Message
from .translator import Translation, TranslationFailure, Translator, placeholder
from .usage import ALL_LOCALES, MessageUsage, load_usages
from .validation import Finding, FindingKind, Severity, ValidationReport, Validator, validate

# Version information - Auto-populated from package metadata
try:
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as _get_version
except ImportError as e:
    raise RuntimeError("importlib.metadata unavailable - Python version too old? " + str(e)) from e

try:
    __version__ = _get_version("ftlcatalog")
except PackageNotFoundError:
    # Development mode: package not installed yet
    __version__ = "0.0.0+dev"

__all__ = [
    "ALL_LOCALES",
    "UNEXPECTED_MESSAGE",
    "BundleBuilder",
    "BundleKey",
    "CatalogError",
    "Config",
    "ConfigError",
    "DuplicateMessageError",
    "Finding",
    "FindingKind",
    "L10nError",
    "LocaleDeclaration",
    "LocaleGraph",
    "LocaleGraphError",
    "LocaleId",
    "Message",
    "MessageUsage",
    "Resource",
    "ResourceCatalog",
    "ResourceNotFoundError",
    "ResourceScope",
    "ScopeKind",
    "Severity",
    "Translation",
    "TranslationError",
    "TranslationFailure",
    "Translator",
    "ValidationReport",
    "Validator",
    "__version__",
    "load_config",
    "load_usages",
    "placeholder",
    "validate",
]
