"""Configuration file loading.

The catalog location and the locale declarations live in the ``[l10n]``
table of a TOML file::

    [l10n]
    paths = { default = "$ROOT/l10n", release = "/var/lib/app/l10n" }
    locales = [
        "en",
        { main = "en-GB", fallback = "en" },
        { main = "en-CA", fallback = "en-GB" },
    ]

Lookup order for the file:

1. ``L10N_CONFIG_FILE`` (absolute, or relative to the project root)
2. ``l10n.toml`` in the project root
3. ``config.toml`` in the project root

No file means defaults: path ``l10n`` and locale discovery from the
directory names. ``$ROOT`` at the start of a path stands for the
directory holding the configuration file. ``L10N_PATH_ENV`` selects a
named path environment.

Python 3.13+.
"""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigFileError, InvalidLocaleError, MissingPathError
from .locales import LocaleDeclaration, LocaleGraph

__all__ = [
    "CONFIG_FILE_ENV",
    "CONFIG_FILE_NAMES",
    "DEFAULT_PATH",
    "PATH_ENV",
    "Config",
    "Paths",
    "find_config_file",
    "load_config",
    "parse_config",
    "read_config",
]

logger = logging.getLogger("ftlcatalog.config")

CONFIG_FILE_ENV = "L10N_CONFIG_FILE"
PATH_ENV = "L10N_PATH_ENV"
CONFIG_FILE_NAMES = ("l10n.toml", "config.toml")
DEFAULT_PATH = Path("l10n")
ROOT_VARIABLE = "$ROOT"


@dataclass(frozen=True, slots=True)
class Paths:
    """Resource root directories.

    Attributes:
        default: Root used when no environment is selected
        environments: Named alternative roots
    """

    default: Path = DEFAULT_PATH
    environments: Mapping[str, Path] = field(default_factory=dict)

    def get(self, environment: str | None = None) -> Path:
        """Root for ``environment``, the default root for None.

        Raises:
            MissingPathError: The environment is not configured
        """
        if environment is None:
            return self.default
        try:
            return self.environments[environment]
        except KeyError:
            raise MissingPathError(environment) from None


@dataclass(frozen=True, slots=True)
class Config:
    """Parsed ``[l10n]`` configuration.

    Attributes:
        paths: Resource root directories
        locales: Declared locales, None for discovery mode
        source: File the configuration was read from, None for defaults
    """

    paths: Paths = field(default_factory=Paths)
    locales: tuple[LocaleDeclaration, ...] | None = None
    source: Path | None = None

    def resolve_path(self, environment: str | None = None) -> Path:
        """Resource root, honoring ``L10N_PATH_ENV`` when no environment is given.

        Raises:
            MissingPathError: The selected environment is not configured
        """
        if environment is None:
            environment = os.environ.get(PATH_ENV) or None
        return self.paths.get(environment)

    def locale_graph(self, *, strict_fallbacks: bool = False) -> LocaleGraph | None:
        """Graph of the declared locales, None in discovery mode.

        Raises:
            LocaleGraphError: The declarations are invalid
        """
        if self.locales is None:
            return None
        return LocaleGraph.from_declarations(self.locales, strict_fallbacks=strict_fallbacks)


def find_config_file(root: Path | str | None = None) -> Path | None:
    """Locate the configuration file for a project root (default: cwd).

    Raises:
        ConfigFileError: ``L10N_CONFIG_FILE`` names a missing file
    """
    base = Path.cwd() if root is None else Path(root)
    explicit = os.environ.get(CONFIG_FILE_ENV)
    if explicit:
        path = Path(explicit)
        if not path.is_absolute():
            path = base / path
        if not path.is_file():
            raise ConfigFileError(path, f"file named by {CONFIG_FILE_ENV} does not exist")
        return path.resolve()

    for name in CONFIG_FILE_NAMES:
        path = base / name
        if path.is_file():
            return path.resolve()
    return None


def load_config(root: Path | str | None = None) -> Config:
    """Find and parse the configuration, or return defaults when there is none.

    Raises:
        ConfigFileError: The file is unreadable or malformed
    """
    path = find_config_file(root)
    if path is None:
        logger.debug("No configuration file found, using defaults")
        return Config()
    return read_config(path)


def read_config(path: Path | str) -> Config:
    """Parse one configuration file.

    Raises:
        ConfigFileError: The file is unreadable or malformed
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigFileError(path, str(exc)) from exc
    config = parse_config(text, path)
    logger.info("Loaded configuration from %s", path)
    return config


def parse_config(text: str, path: Path | str = "<string>") -> Config:
    """Parse configuration TOML.

    Args:
        text: TOML document with an ``[l10n]`` table
        path: Location of the document; ``$ROOT`` expands to its directory

    Raises:
        ConfigFileError: Invalid TOML, missing table or invalid values
    """
    source = Path(path)
    try:
        document = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigFileError(source, str(exc)) from exc

    table = document.get("l10n")
    if not isinstance(table, dict):
        raise ConfigFileError(source, "missing [l10n] table")

    if "path" in table and "paths" in table:
        raise ConfigFileError(source, "`path` and `paths` are mutually exclusive")
    raw_paths = table.get("paths", table.get("path"))
    paths = _parse_paths(raw_paths, source)

    locales: tuple[LocaleDeclaration, ...] | None = None
    raw_locales = table.get("locales")
    if raw_locales is not None:
        if not isinstance(raw_locales, list):
            raise ConfigFileError(source, "`locales` must be an array")
        try:
            locales = tuple(LocaleDeclaration.coerce(item) for item in raw_locales)
        except InvalidLocaleError as exc:
            raise ConfigFileError(source, str(exc)) from exc

    return Config(paths=paths, locales=locales, source=source)


def _parse_paths(raw: object, source: Path) -> Paths:
    match raw:
        case None:
            return Paths()
        case str():
            return Paths(default=_expand_root(raw, source))
        case dict():
            if "default" not in raw:
                raise ConfigFileError(source, "missing `default` key in `paths`")
            expanded: dict[str, Path] = {}
            for name, value in raw.items():
                if not isinstance(value, str):
                    raise ConfigFileError(source, f"path for environment {name!r} must be a string")
                expanded[name] = _expand_root(value, source)
            default = expanded.pop("default")
            return Paths(default=default, environments=expanded)
        case _:
            raise ConfigFileError(source, "`path` must be a string or a table")


def _expand_root(value: str, source: Path) -> Path:
    if not value.startswith(ROOT_VARIABLE):
        return Path(value)
    rest = value.removeprefix(ROOT_VARIABLE).lstrip("/\\")
    return source.parent / rest if rest else source.parent
