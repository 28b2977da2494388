"""Locale identifiers and the locale fallback graph.

A LocaleGraph is a forest of locales where each locale has at most one
fallback edge. Following fallback edges from any node terminates at a
node without fallback; such terminal nodes are *mandatory*: they must
provide every resource the application needs, because nothing is behind
them.

Two construction modes exist:

- Declared: an ordered list of bare locales or (main, fallback) pairs.
  A fallback target never declared as a main locale becomes a
  fallback-only terminal: reachable while resolving, never requestable.
- Discovered: locale names found on disk. Each locale falls back to the
  nearest existing ancestor obtained by dropping the rightmost subtag
  (variant, then region, then script).

The graph is immutable once built and safe to share between threads.

Python 3.13+.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from babel.core import parse_locale

from .errors import (
    CycleError,
    DuplicateLocaleError,
    EmptyLocalesError,
    InvalidLocaleError,
    UnknownFallbackError,
)

__all__ = [
    "LocaleDeclaration",
    "LocaleGraph",
    "LocaleId",
    "LocaleInput",
    "LocaleNode",
]

logger = logging.getLogger("ftlcatalog.locales")

# BCP 47 primary language subtags are 2-3 letters (ISO 639) or 5-8 letters
# (registered); 4 letters is reserved.
_MIN_LANGUAGE_LENGTH = 2
_MAX_LANGUAGE_LENGTH = 8
_RESERVED_LANGUAGE_LENGTH = 4


@dataclass(frozen=True, slots=True)
class LocaleId:
    """Normalized locale identifier.

    Equality is exact on the normalized subtags. Casing follows BCP 47
    conventions: lowercase language, titlecase script, uppercase region,
    lowercase variant.

    Attributes:
        language: Primary language subtag ('en')
        script: Optional script subtag ('Latn')
        region: Optional region subtag ('GB', '419')
        variant: Optional variant subtag ('valencia')

    Example:
        >>> LocaleId.parse("en_gb")
        LocaleId('en-GB')
        >>> str(LocaleId.parse("sr-latn-rs"))
        'sr-Latn-RS'
    """

    language: str
    script: str | None = None
    region: str | None = None
    variant: str | None = None

    @classmethod
    def parse(cls, value: str) -> LocaleId:
        """Parse a BCP 47 or POSIX style identifier.

        Args:
            value: Identifier such as 'en-GB', 'en_GB' or 'zh-Hans-CN'

        Returns:
            Normalized LocaleId

        Raises:
            InvalidLocaleError: If value is not a locale identifier
        """
        text = value.strip().replace("_", "-")
        if not text or "." in text or "@" in text:
            raise InvalidLocaleError(value, "expected language[-Script][-REGION][-variant]")
        try:
            parts = parse_locale(text, sep="-")
        except ValueError as exc:
            raise InvalidLocaleError(value, str(exc)) from exc

        language, region, script, variant = parts[:4]
        if (
            not _MIN_LANGUAGE_LENGTH <= len(language) <= _MAX_LANGUAGE_LENGTH
            or len(language) == _RESERVED_LANGUAGE_LENGTH
        ):
            raise InvalidLocaleError(value, f"bad language subtag {language!r}")
        return cls(
            language=language,
            script=script,
            region=region,
            variant=variant.lower() if variant else None,
        )

    @classmethod
    def coerce(cls, value: LocaleId | str) -> LocaleId:
        """Return value unchanged if already a LocaleId, else parse it."""
        if isinstance(value, LocaleId):
            return value
        return cls.parse(value)

    @property
    def subtags(self) -> tuple[str, ...]:
        """Present subtags in canonical order."""
        return tuple(
            tag
            for tag in (self.language, self.script, self.region, self.variant)
            if tag is not None
        )

    def truncations(self) -> tuple[LocaleId, ...]:
        """Ancestors obtained by dropping the rightmost subtag repeatedly.

        Most specific first: 'en-Latn-GB-oxendict' yields 'en-Latn-GB',
        'en-Latn', 'en'.
        """
        ancestors: list[LocaleId] = []
        script, region, variant = self.script, self.region, self.variant
        while variant or region or script:
            if variant:
                variant = None
            elif region:
                region = None
            else:
                script = None
            ancestors.append(LocaleId(self.language, script, region, variant))
        return tuple(ancestors)

    def __str__(self) -> str:
        return "-".join(self.subtags)

    def __repr__(self) -> str:
        return f"LocaleId({str(self)!r})"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, LocaleId):
            return NotImplemented
        return self.subtags < other.subtags


type LocaleInput = (
    LocaleDeclaration
    | LocaleId
    | str
    | tuple[LocaleId | str, LocaleId | str | None]
    | Mapping[str, str | None]
)
"""Accepted shapes for one locale declaration."""


@dataclass(frozen=True, slots=True)
class LocaleDeclaration:
    """One configured locale: a main locale and its optional fallback."""

    main: LocaleId
    fallback: LocaleId | None = None

    @classmethod
    def coerce(cls, value: LocaleInput) -> LocaleDeclaration:
        """Build a declaration from any supported input shape.

        Accepts a LocaleDeclaration, a bare locale (LocaleId or string), a
        ``(main, fallback)`` pair, or a mapping with ``main`` and optional
        ``fallback`` keys (the configuration file form).

        Raises:
            InvalidLocaleError: If a locale does not parse or the mapping
                lacks ``main``
        """
        match value:
            case LocaleDeclaration():
                return value
            case LocaleId() | str():
                return cls(LocaleId.coerce(value))
            case (main, fallback):
                return cls(
                    LocaleId.coerce(main),
                    LocaleId.coerce(fallback) if fallback is not None else None,
                )
            case Mapping():
                main = value.get("main")
                if not isinstance(main, str):
                    raise InvalidLocaleError(repr(dict(value)), "missing `main` locale")
                fallback = value.get("fallback")
                return cls(
                    LocaleId.parse(main),
                    LocaleId.parse(fallback) if fallback is not None else None,
                )
            case _:
                raise InvalidLocaleError(repr(value), "unsupported declaration shape")


@dataclass(frozen=True, slots=True)
class LocaleNode:
    """Locale in the fallback graph.

    Attributes:
        id: Locale identifier
        fallback: Next locale to try, None for a terminal node
        is_mandatory: True for terminal nodes
        is_main: False for fallback-only targets that cannot be requested
    """

    id: LocaleId
    fallback: LocaleId | None
    is_mandatory: bool
    is_main: bool = True


class LocaleGraph:
    """Immutable locale fallback forest.

    Use ``from_declarations`` or ``discover`` to build one.

    Thread Safety:
        Read-only after construction; no locking required.

    Example:
        >>> graph = LocaleGraph.from_declarations(
        ...     ["en", ("en-GB", "en"), ("en-CA", "en-GB")]
        ... )
        >>> [str(locale) for locale in graph.resolution_route("en-CA")]
        ['en-CA', 'en-GB', 'en']
        >>> sorted(str(locale) for locale in graph.mandatory_locales)
        ['en']
    """

    __slots__ = ("_nodes",)

    def __init__(self, nodes: Iterable[LocaleNode]) -> None:
        self._nodes: Mapping[LocaleId, LocaleNode] = MappingProxyType(
            {node.id: node for node in nodes}
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_declarations(
        cls,
        declarations: Iterable[LocaleInput],
        *,
        strict_fallbacks: bool = False,
    ) -> LocaleGraph:
        """Build a graph from explicit locale declarations.

        Args:
            declarations: Bare locales or (main, fallback) pairs, in order
            strict_fallbacks: Reject fallback targets that are not declared
                as main locales instead of treating them as fallback-only
                terminals

        Returns:
            Validated LocaleGraph

        Raises:
            InvalidLocaleError: A locale does not parse
            EmptyLocalesError: No declarations
            DuplicateLocaleError: A main locale is declared twice
            UnknownFallbackError: Undeclared fallback with strict_fallbacks
            CycleError: A fallback chain loops
        """
        mains: dict[LocaleId, LocaleDeclaration] = {}
        for raw in declarations:
            declaration = LocaleDeclaration.coerce(raw)
            if declaration.main in mains:
                raise DuplicateLocaleError(declaration.main)
            mains[declaration.main] = declaration

        if not mains:
            raise EmptyLocalesError

        fallback_only: dict[LocaleId, None] = {}
        for declaration in mains.values():
            fallback = declaration.fallback
            if fallback is None or fallback in mains:
                continue
            if strict_fallbacks:
                raise UnknownFallbackError(declaration.main, fallback)
            fallback_only[fallback] = None

        for declaration in mains.values():
            cls._check_chain(declaration, mains)

        nodes = [
            LocaleNode(
                id=declaration.main,
                fallback=declaration.fallback,
                is_mandatory=declaration.fallback is None,
            )
            for declaration in mains.values()
        ]
        nodes.extend(
            LocaleNode(id=locale, fallback=None, is_mandatory=True, is_main=False)
            for locale in fallback_only
        )
        graph = cls(nodes)
        logger.info(
            "Locale graph built: %d main, %d fallback-only, mandatory: %s",
            len(mains),
            len(fallback_only),
            ", ".join(str(locale) for locale in sorted(graph.mandatory_locales)),
        )
        return graph

    @staticmethod
    def _check_chain(
        declaration: LocaleDeclaration, mains: Mapping[LocaleId, LocaleDeclaration]
    ) -> None:
        visited = [declaration.main]
        current = declaration.fallback
        while current is not None:
            if current in visited:
                visited.append(current)
                raise CycleError(tuple(visited))
            visited.append(current)
            next_declaration = mains.get(current)
            current = next_declaration.fallback if next_declaration else None

    @classmethod
    def discover(cls, locales: Iterable[LocaleId | str]) -> LocaleGraph:
        """Build a graph from discovered locale names.

        Each locale falls back to its nearest existing ancestor (dropping
        the rightmost subtag first). A locale without an existing ancestor
        is a mandatory terminal.

        Raises:
            InvalidLocaleError: A locale does not parse
            EmptyLocalesError: No locales
        """
        known = {LocaleId.coerce(locale) for locale in locales}
        if not known:
            raise EmptyLocalesError

        nodes: list[LocaleNode] = []
        for locale in sorted(known):
            fallback = next(
                (ancestor for ancestor in locale.truncations() if ancestor in known),
                None,
            )
            nodes.append(
                LocaleNode(id=locale, fallback=fallback, is_mandatory=fallback is None)
            )
            logger.debug("Discovered locale %s (fallback: %s)", locale, fallback)

        graph = cls(nodes)
        logger.info(
            "Locale graph discovered: %d locales, mandatory: %s",
            len(nodes),
            ", ".join(str(locale) for locale in sorted(graph.mandatory_locales)),
        )
        return graph

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __contains__(self, locale: object) -> bool:
        if isinstance(locale, str):
            try:
                locale = LocaleId.parse(locale)
            except InvalidLocaleError:
                return False
        return locale in self._nodes

    def __iter__(self) -> Iterator[LocaleNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"LocaleGraph({', '.join(self.describe())})"

    def node(self, locale: LocaleId | str) -> LocaleNode:
        """Return the node for locale.

        Raises:
            KeyError: Locale is not part of the graph
            InvalidLocaleError: Locale string does not parse
        """
        return self._nodes[LocaleId.coerce(locale)]

    @property
    def main_locales(self) -> frozenset[LocaleId]:
        """Locales that can be requested."""
        return frozenset(node.id for node in self._nodes.values() if node.is_main)

    @property
    def all_locales(self) -> frozenset[LocaleId]:
        """Main locales plus fallback-only targets."""
        return frozenset(self._nodes)

    @property
    def mandatory_locales(self) -> frozenset[LocaleId]:
        """Terminal locales of every chain."""
        return frozenset(node.id for node in self._nodes.values() if node.is_mandatory)

    def is_main(self, locale: LocaleId | str) -> bool:
        """Return whether locale can be requested."""
        try:
            node = self._nodes.get(LocaleId.coerce(locale))
        except InvalidLocaleError:
            return False
        return node is not None and node.is_main

    def chain(self, locale: LocaleId | str) -> tuple[LocaleId, ...]:
        """Locale followed by every fallback hop, ending at its terminal.

        Raises:
            KeyError: Locale is not part of the graph
        """
        node = self.node(locale)
        hops = [node.id]
        while node.fallback is not None:
            node = self._nodes[node.fallback]
            hops.append(node.id)
        return tuple(hops)

    def resolution_route(self, locale: LocaleId | str) -> tuple[LocaleId, ...] | None:
        """Fallback chain for a requestable locale.

        Returns:
            The chain starting at locale, or None if locale is unknown,
            unparsable or only a fallback target
        """
        if not self.is_main(locale):
            return None
        return self.chain(locale)

    def terminal(self, locale: LocaleId | str) -> LocaleId:
        """Mandatory locale at the end of locale's chain."""
        return self.chain(locale)[-1]

    def expand_to_mandatory(self, locales: Iterable[LocaleId | str]) -> frozenset[LocaleId]:
        """Map each locale to its mandatory terminal.

        Raises:
            KeyError: A locale is not part of the graph
        """
        return frozenset(self.terminal(locale) for locale in locales)

    def describe(self) -> list[str]:
        """Human readable chains, one per main locale, sorted."""
        lines = []
        for locale in sorted(self.main_locales):
            lines.append(" -> ".join(str(hop) for hop in self.chain(locale)))
        return lines
