"""Resource catalog: classifies and parses every FTL file under a root.

Directory layout::

    l10n/
        _brand.ftl            global unnamed (applies to every locale)
        en/
            _terms.ftl        unnamed for en (applies to every named resource)
            home.ftl          named resource "home"
            nested/
                _terms.ftl    unnamed for en, applies below nested/
                about.ftl     named resource "nested/about"
        en-GB/
            home.ftl

Files directly under the root must start with an underscore. Only
``.ftl`` files are resources; dot-prefixed entries are ignored.

The catalog is built once, then immutable and safe to share.

Python 3.13+.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path, PurePosixPath
from types import MappingProxyType

from ftllexengine.syntax import parse
from ftllexengine.syntax.ast import Junk, Message, Resource as SyntaxTree, Term
from ftllexengine.syntax.position import column_offset, line_offset

from .errors import (
    GlobalNamedResourceError,
    InvalidLocaleError,
    LocaleDirectoryError,
    MissingLocalesError,
    ParseError,
    ResourceReadError,
    SyntaxIssue,
)
from .locales import LocaleGraph, LocaleId
from .types import ResourceName

__all__ = [
    "LocaleResources",
    "Resource",
    "ResourceCatalog",
    "ResourceScope",
    "ScopeKind",
    "parse_resource",
]

logger = logging.getLogger("ftlcatalog.catalog")

RESOURCE_SUFFIX = ".ftl"
UNNAMED_PREFIX = "_"


class ScopeKind(StrEnum):
    """Where a resource applies."""

    GLOBAL_UNNAMED = "global-unnamed"
    LOCALE_UNNAMED = "locale-unnamed"
    NAMED = "named"


@dataclass(frozen=True, slots=True)
class ResourceScope:
    """Scope of a resource file, derived from its path.

    Attributes:
        kind: Scope kind
        locale: Owning locale (None for global unnamed)
        name: Resource name for NAMED; for LOCALE_UNNAMED the directory
            (relative to the locale directory, '' for its root) it applies to
    """

    kind: ScopeKind
    locale: LocaleId | None = None
    name: str = ""

    @classmethod
    def global_unnamed(cls) -> ResourceScope:
        return cls(ScopeKind.GLOBAL_UNNAMED)

    @classmethod
    def locale_unnamed(cls, locale: LocaleId, directory: str = "") -> ResourceScope:
        return cls(ScopeKind.LOCALE_UNNAMED, locale, directory)

    @classmethod
    def named(cls, locale: LocaleId, name: ResourceName) -> ResourceScope:
        return cls(ScopeKind.NAMED, locale, name)

    def applies_to(self, name: ResourceName) -> bool:
        """Whether this unnamed scope contributes to the named resource."""
        match self.kind:
            case ScopeKind.GLOBAL_UNNAMED:
                return True
            case ScopeKind.LOCALE_UNNAMED:
                return not self.name or PurePosixPath(self.name) in PurePosixPath(name).parents
            case ScopeKind.NAMED:
                return self.name == name


@dataclass(frozen=True, slots=True)
class Resource:
    """Parsed resource file.

    Attributes:
        scope: Where the resource applies
        path: File the resource was read from
        source: FTL source text (handed to the formatting engine)
        tree: Parsed syntax tree
    """

    scope: ResourceScope
    path: Path
    source: str
    tree: SyntaxTree = field(repr=False, compare=False)

    @property
    def messages(self) -> dict[str, Message]:
        """Messages by id, in source order."""
        return {
            entry.id.name: entry for entry in self.tree.entries if isinstance(entry, Message)
        }

    @property
    def terms(self) -> dict[str, Term]:
        """Terms by id (without the leading dash), in source order."""
        return {entry.id.name: entry for entry in self.tree.entries if isinstance(entry, Term)}


def parse_resource(path: Path, scope: ResourceScope) -> Resource:
    """Read and parse one resource file.

    Raises:
        ResourceReadError: File cannot be read as UTF-8
        ParseError: File contains syntax errors
    """
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ResourceReadError(path, str(exc)) from exc

    tree = parse(source)
    issues = tuple(
        issue
        for entry in tree.entries
        if isinstance(entry, Junk)
        for issue in _junk_issues(source, entry)
    )
    if issues:
        raise ParseError(path, issues)

    logger.debug("Parsed %s resource %s (%d entries)", scope.kind, path, len(tree.entries))
    return Resource(scope=scope, path=path, source=source, tree=tree)


def _junk_issues(source: str, junk: Junk) -> list[SyntaxIssue]:
    junk_start = junk.span.start if junk.span else 0
    if not junk.annotations:
        return [
            SyntaxIssue(
                line=line_offset(source, junk_start) + 1,
                column=column_offset(source, junk_start) + 1,
                code="junk",
                message=f"unparsed content {junk.content[:40]!r}",
            )
        ]
    issues = []
    for annotation in junk.annotations:
        position = annotation.span.start if annotation.span else junk_start
        issues.append(
            SyntaxIssue(
                line=line_offset(source, position) + 1,
                column=column_offset(source, position) + 1,
                code=annotation.code,
                message=annotation.message,
            )
        )
    return issues


@dataclass(frozen=True, slots=True)
class LocaleResources:
    """Resources of one locale directory.

    Attributes:
        locale: Locale the directory belongs to
        unnamed: Unnamed resources, shallow directories first, then by name
        named: Named resources by name
    """

    locale: LocaleId
    unnamed: tuple[Resource, ...] = ()
    named: Mapping[ResourceName, Resource] = field(default_factory=dict)

    def unnamed_for(self, name: ResourceName) -> tuple[Resource, ...]:
        """Unnamed resources contributing to the named resource ``name``."""
        return tuple(resource for resource in self.unnamed if resource.scope.applies_to(name))


class ResourceCatalog:
    """Immutable index of parsed resources per locale.

    Example:
        >>> catalog = ResourceCatalog.load("l10n", graph)  # doctest: +SKIP
        >>> catalog.named("en", "home").messages.keys()  # doctest: +SKIP
        dict_keys(['welcome', 'state'])
    """

    __slots__ = ("_global_unnamed", "_graph", "_locales", "_root")

    def __init__(
        self,
        graph: LocaleGraph,
        global_unnamed: tuple[Resource, ...],
        locales: Mapping[LocaleId, LocaleResources],
        root: Path | None = None,
    ) -> None:
        self._graph = graph
        self._global_unnamed = global_unnamed
        self._locales: Mapping[LocaleId, LocaleResources] = MappingProxyType(dict(locales))
        self._root = root

    @classmethod
    def load(cls, root: Path | str, graph: LocaleGraph | None = None) -> ResourceCatalog:
        """Walk a resource root and parse every resource.

        Args:
            root: Resource root directory
            graph: Declared locale graph; None enables discovery mode, where
                every locale directory becomes a locale

        Returns:
            ResourceCatalog (``catalog.graph`` holds the discovered graph in
            discovery mode)

        Raises:
            ResourceReadError: Root or a file cannot be read
            GlobalNamedResourceError: A root-level file lacks the `_` prefix
            LocaleDirectoryError: Discovery mode found a non-locale directory
            MissingLocalesError: A mandatory locale has no directory
            ParseError: A resource has syntax errors
        """
        root_path = Path(root)
        if not root_path.is_dir():
            reason = "not a directory" if root_path.exists() else "no such directory"
            raise ResourceReadError(root_path, reason)

        global_unnamed: list[Resource] = []
        directories: dict[LocaleId, Path] = {}
        for entry in _list_directory(root_path):
            if entry.is_dir():
                locale = _locale_directory(entry, graph)
                if locale is None:
                    continue
                if locale in directories:
                    msg = f"same locale as `{directories[locale].name}`"
                    raise LocaleDirectoryError(entry.name, msg)
                directories[locale] = entry
            elif entry.suffix == RESOURCE_SUFFIX:
                if not entry.stem.startswith(UNNAMED_PREFIX):
                    raise GlobalNamedResourceError(entry)
                global_unnamed.append(parse_resource(entry, ResourceScope.global_unnamed()))

        if graph is None:
            graph = LocaleGraph.discover(directories)
        else:
            missing = tuple(sorted(graph.mandatory_locales.difference(directories)))
            if missing:
                raise MissingLocalesError(missing)

        locales = {
            locale: _load_locale_directory(locale, path)
            for locale, path in sorted(directories.items())
        }
        catalog = cls(graph, tuple(global_unnamed), locales, root_path)
        logger.info(
            "Catalog loaded from %s: %d locales, %d global resources, %d named resources",
            root_path,
            len(locales),
            len(global_unnamed),
            len(catalog.resource_names()),
        )
        return catalog

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def graph(self) -> LocaleGraph:
        return self._graph

    @property
    def root(self) -> Path | None:
        return self._root

    @property
    def global_unnamed(self) -> tuple[Resource, ...]:
        return self._global_unnamed

    @property
    def locales(self) -> frozenset[LocaleId]:
        """Locales with a directory in the catalog."""
        return frozenset(self._locales)

    def resources(self, locale: LocaleId | str) -> LocaleResources:
        """Resources of locale; empty when the locale has no directory."""
        locale_id = LocaleId.coerce(locale)
        return self._locales.get(locale_id) or LocaleResources(locale_id)

    def named(self, locale: LocaleId | str, name: ResourceName) -> Resource | None:
        """Named resource of a locale, or None."""
        return self.resources(locale).named.get(name)

    def has_resource(self, locale: LocaleId | str, name: ResourceName) -> bool:
        return self.named(locale, name) is not None

    def unnamed_for(self, locale: LocaleId | str, name: ResourceName) -> tuple[Resource, ...]:
        """Locale unnamed resources contributing to ``name``, outermost first."""
        return self.resources(locale).unnamed_for(name)

    def layers(self, locale: LocaleId | str, name: ResourceName) -> tuple[Resource, ...]:
        """Resources composing the bundle of (locale, name), lowest layer first.

        Global unnamed, then the locale's unnamed resources for ``name``,
        then the named resource. Empty when the locale lacks ``name``.
        """
        named = self.named(locale, name)
        if named is None:
            return ()
        return (*self._global_unnamed, *self.unnamed_for(locale, name), named)

    def terms(self, locale: LocaleId | str, name: ResourceName) -> dict[str, Term]:
        """Terms visible in the bundle of (locale, name); upper layers win."""
        terms: dict[str, Term] = {}
        for resource in self.layers(locale, name):
            terms.update(resource.terms)
        return terms

    def resource_names(self) -> frozenset[ResourceName]:
        """Every named resource name across all locales."""
        return frozenset(
            name for resources in self._locales.values() for name in resources.named
        )

    def locales_with(self, name: ResourceName) -> frozenset[LocaleId]:
        """Locales providing the named resource ``name``."""
        return frozenset(
            locale for locale, resources in self._locales.items() if name in resources.named
        )

    def iter_resources(self) -> Iterator[Resource]:
        """Every resource: global first, then per locale unnamed and named."""
        yield from self._global_unnamed
        for locale in sorted(self._locales):
            resources = self._locales[locale]
            yield from resources.unnamed
            for name in sorted(resources.named):
                yield resources.named[name]


def _list_directory(path: Path) -> list[Path]:
    try:
        entries = sorted(path.iterdir())
    except OSError as exc:
        raise ResourceReadError(path, str(exc)) from exc
    return [entry for entry in entries if not entry.name.startswith(".")]


def _locale_directory(entry: Path, graph: LocaleGraph | None) -> LocaleId | None:
    try:
        locale = LocaleId.parse(entry.name)
    except InvalidLocaleError as exc:
        if graph is None:
            raise LocaleDirectoryError(entry.name, exc.reason) from exc
        logger.debug("Skipping directory %s: not a locale", entry)
        return None
    if graph is not None and locale not in graph.all_locales:
        logger.debug("Skipping directory %s: locale %s not declared", entry, locale)
        return None
    return locale


def _load_locale_directory(locale: LocaleId, path: Path) -> LocaleResources:
    unnamed: list[tuple[int, Resource]] = []
    named: dict[ResourceName, Resource] = {}

    def walk(directory: Path, relative: PurePosixPath) -> None:
        for entry in _list_directory(directory):
            if entry.is_dir():
                walk(entry, relative / entry.name)
            elif entry.suffix == RESOURCE_SUFFIX:
                prefix = "" if relative == PurePosixPath() else str(relative)
                if entry.stem.startswith(UNNAMED_PREFIX):
                    scope = ResourceScope.locale_unnamed(locale, prefix)
                    unnamed.append((len(relative.parts), parse_resource(entry, scope)))
                else:
                    name = str(relative / entry.stem)
                    named[name] = parse_resource(entry, ResourceScope.named(locale, name))

    walk(path, PurePosixPath())
    unnamed.sort(key=lambda item: item[0])
    return LocaleResources(
        locale=locale,
        unnamed=tuple(resource for _, resource in unnamed),
        named=MappingProxyType(named),
    )
