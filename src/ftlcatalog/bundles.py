"""Bundle builder: merged formatting contexts per (locale, named resource).

A bundle for key (locale, name) is a ``FluentBundle`` holding, in order:

1. global unnamed resources
2. the locale's unnamed resources applying to ``name``, outermost
   directory first
3. the named resource itself

Later resources override message and term ids of earlier ones. A file
defining the same id twice is rejected with DuplicateMessageError.
Fallback locales contribute nothing to a bundle: a term defined only in
``en/_terms.ftl`` is not visible from ``en-GB/home.ftl``, and the
validator reports such references as unresolved.

Bundles are built lazily on first request and cached for the lifetime of
the builder. Construction is single-flight: concurrent requests for one
key build it once and all observe the same bundle (or the same error),
while requests for different keys never wait on each other's builds.

Python 3.13+.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from ftllexengine import FluentBundle, FluentValue
from ftllexengine.integrity import ResourceConflictIntegrityError
from ftllexengine.runtime import FunctionRegistry
from ftllexengine.runtime.functions import create_default_registry
from ftllexengine.runtime.rwlock import RWLock

from .catalog import ResourceCatalog
from .errors import DuplicateFunctionError, DuplicateMessageError, L10nError, ResourceNotFoundError
from .locales import LocaleId
from .types import FunctionName, ResourceName

__all__ = [
    "DEFAULT_ENGINE_LOCALE",
    "BundleBuilder",
    "BundleKey",
    "FunctionSource",
]

logger = logging.getLogger("ftlcatalog.bundles")

DEFAULT_ENGINE_LOCALE = "en"
"""Locale whose formatting rules apply when Babel knows no ancestor of a locale."""

type FunctionSource = Mapping[FunctionName, Callable[..., FluentValue]] | Iterable[
    tuple[FunctionName, Callable[..., FluentValue]]
]
"""Custom FTL functions: a mapping or (name, callable) pairs."""


@dataclass(frozen=True, slots=True)
class BundleKey:
    """Cache key of a bundle."""

    locale: LocaleId
    resource: ResourceName

    def __str__(self) -> str:
        return f"{self.locale}:{self.resource}"


class _BundleSlot:
    """Compute-once cell for one BundleKey."""

    __slots__ = ("_bundle", "_done", "_error", "_lock")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False
        self._bundle: FluentBundle | None = None
        self._error: L10nError | None = None

    @property
    def done(self) -> bool:
        return self._done

    def resolve(self, build: Callable[[], FluentBundle]) -> FluentBundle:
        if not self._done:
            with self._lock:
                if not self._done:
                    try:
                        self._bundle = build()
                    except L10nError as exc:
                        self._error = exc
                    self._done = True
        if self._error is not None:
            raise self._error
        assert self._bundle is not None
        return self._bundle


class BundleBuilder:
    """Lazily builds and caches bundles from a ResourceCatalog.

    Thread Safety:
        ``get_bundle`` may be called from any number of threads. The slot
        table is guarded by a readers-writer lock (read for lookups, write
        only to insert a new slot); each slot serializes its own build.

    Example:
        >>> builder = BundleBuilder(catalog, use_isolating=False)  # doctest: +SKIP
        >>> bundle = builder.get_bundle("en", "home")  # doctest: +SKIP
        >>> bundle is builder.get_bundle("en", "home")  # doctest: +SKIP
        True
    """

    __slots__ = (
        "_build_count",
        "_catalog",
        "_count_lock",
        "_custom_functions",
        "_registry",
        "_slots",
        "_table_lock",
        "_use_isolating",
    )

    def __init__(
        self,
        catalog: ResourceCatalog,
        *,
        use_isolating: bool = True,
        functions: FunctionSource | None = None,
    ) -> None:
        """Initialize builder.

        Args:
            catalog: Resource catalog to compose bundles from
            use_isolating: Wrap placeables in Unicode bidi isolation marks
            functions: Custom FTL functions added on top of the engine
                builtins (NUMBER, DATETIME, CURRENCY)

        Raises:
            DuplicateFunctionError: A function name appears twice
        """
        self._catalog = catalog
        self._use_isolating = use_isolating
        self._registry: FunctionRegistry = create_default_registry()
        self._custom_functions: set[FunctionName] = set()
        self._slots: dict[BundleKey, _BundleSlot] = {}
        self._table_lock = RWLock()
        self._build_count = 0
        self._count_lock = threading.Lock()
        if functions is not None:
            items = functions.items() if isinstance(functions, Mapping) else functions
            for name, func in items:
                self.add_function(name, func)

    @property
    def catalog(self) -> ResourceCatalog:
        return self._catalog

    @property
    def use_isolating(self) -> bool:
        return self._use_isolating

    @property
    def function_names(self) -> frozenset[FunctionName]:
        """Builtin and custom function names available to bundles."""
        return frozenset(self._registry.list_functions())

    @property
    def custom_function_names(self) -> frozenset[FunctionName]:
        return frozenset(self._custom_functions)

    @property
    def build_count(self) -> int:
        """Number of bundle constructions performed (successful or not)."""
        return self._build_count

    def add_function(self, name: FunctionName, func: Callable[..., FluentValue]) -> None:
        """Register a custom FTL function for every bundle.

        Raises:
            DuplicateFunctionError: ``name`` was already registered
            RuntimeError: A bundle has already been requested
        """
        with self._table_lock.write():
            if self._slots:
                msg = f"cannot register function {name}: bundles have already been built"
                raise RuntimeError(msg)
            if name in self._custom_functions:
                raise DuplicateFunctionError(name)
            self._registry.register(func, ftl_name=name)
            self._custom_functions.add(name)
        logger.debug("Registered function %s", name)

    def cached_keys(self) -> frozenset[BundleKey]:
        """Keys whose construction has completed."""
        with self._table_lock.read():
            return frozenset(key for key, slot in self._slots.items() if slot.done)

    def has_bundle(self, locale: LocaleId | str, resource: ResourceName) -> bool:
        """Whether the catalog can build a bundle for the key."""
        return self._catalog.has_resource(locale, resource)

    def get_bundle(self, locale: LocaleId | str, resource: ResourceName) -> FluentBundle:
        """Return the bundle for (locale, resource), building it once.

        Args:
            locale: Locale whose own resources compose the bundle
            resource: Named resource name

        Returns:
            Cached FluentBundle (same object on every call)

        Raises:
            ResourceNotFoundError: The locale lacks the named resource
            DuplicateMessageError: A resource file defines an id twice
        """
        key = BundleKey(LocaleId.coerce(locale), resource)
        if not self._catalog.has_resource(key.locale, resource):
            raise ResourceNotFoundError(key.locale, resource)

        with self._table_lock.read():
            slot = self._slots.get(key)
        if slot is None:
            with self._table_lock.write():
                slot = self._slots.get(key)
                if slot is None:
                    slot = _BundleSlot()
                    self._slots[key] = slot
        return slot.resolve(lambda: self._build(key))

    def _build(self, key: BundleKey) -> FluentBundle:
        # Runs under the slot lock; at most once per key.
        with self._count_lock:
            self._build_count += 1
        layers = self._catalog.layers(key.locale, key.resource)
        if not layers:
            raise ResourceNotFoundError(key.locale, key.resource)

        bundle = self._create_bundle(key.locale)
        for layer in layers:
            try:
                bundle.add_resource(layer.source, source_path=str(layer.path), allow_overwrite=True)
            except ResourceConflictIntegrityError as exc:
                ids = exc.duplicate_ids or exc.shadowed_ids
                raise DuplicateMessageError(key.locale, key.resource, ids, str(layer.path)) from exc

        logger.debug("Built bundle %s from %d resources", key, len(layers))
        return bundle

    def _create_bundle(self, locale: LocaleId) -> FluentBundle:
        for candidate in (locale, *locale.truncations()):
            try:
                return FluentBundle(
                    str(candidate),
                    use_isolating=self._use_isolating,
                    functions=self._registry,
                    strict=False,
                )
            except ValueError:
                logger.debug("Formatting engine does not know locale %s", candidate)
        logger.warning(
            "No formatting rules for locale %s, using %s", locale, DEFAULT_ENGINE_LOCALE
        )
        return FluentBundle(
            DEFAULT_ENGINE_LOCALE,
            use_isolating=self._use_isolating,
            functions=self._registry,
            strict=False,
        )
