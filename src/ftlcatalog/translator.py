"""Runtime translator: resolves messages along locale fallback chains.

``translate`` walks the requested locale, then its fallback, then that
locale's fallback, until a locale has the named resource and the
message (with the requested attribute, or a value). The first match is
formatted by the engine. Engine diagnostics (missing variables,
unknown functions at runtime) travel with the result, never as
exceptions.

When no hop has the message, a Translation carrying a placeholder text
and a TranslationFailure is returned so callers can render something
visible instead of crashing.

Python 3.13+.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from ftllexengine import FluentBundle, FluentValue, FrozenFluentError
from ftllexengine.syntax.ast import Message as MessageNode

from .analysis import message_pattern, referenced_functions, required_args, split_key
from .bundles import BundleBuilder, FunctionSource
from .catalog import ResourceCatalog
from .errors import ResourceNotFoundError, TranslationError
from .locales import LocaleGraph, LocaleId
from .message import Message
from .types import ArgName, FluentArgs, FunctionName, MessageKey, ResourceName
from .validation import FindingKind, Validator

if TYPE_CHECKING:
    from .config import Config

__all__ = [
    "Translation",
    "TranslationFailure",
    "Translator",
    "placeholder",
]

logger = logging.getLogger("ftlcatalog.translator")


class TranslationFailure(StrEnum):
    """Why a translation could not be resolved, least specific first."""

    LOCALE_NOT_SUPPORTED = "locale-not-supported"
    RESOURCE_NOT_FOUND = "resource-not-found"
    MESSAGE_NOT_FOUND = "message-not-found"
    ATTRIBUTE_NOT_FOUND = "attribute-not-found"
    VALUE_NOT_FOUND = "value-not-found"

    def describe(self) -> str:
        return self.value.replace("-", " ")


_FAILURE_RANK = {failure: rank for rank, failure in enumerate(TranslationFailure)}


def placeholder(resource: ResourceName, key: MessageKey) -> str:
    """Visible stand-in text for an unresolved message.

    Example:
        >>> placeholder("home", "state.busy")
        '{home:state.busy}'
    """
    return f"{{{resource}:{key}}}"


@dataclass(frozen=True, slots=True)
class Translation:
    """Result of a translate call.

    Attributes:
        text: Formatted text, or a placeholder when not found
        locale: Locale that served the message, None when not found
        errors: Non-fatal formatting diagnostics from the engine
        failure: Why resolution failed, None on success
    """

    text: str
    locale: LocaleId | None = None
    errors: tuple[FrozenFluentError, ...] = ()
    failure: TranslationFailure | None = None

    @property
    def found(self) -> bool:
        return self.failure is None

    def __str__(self) -> str:
        return self.text


class Translator:
    """Formats messages of a catalog for requested locales.

    Thread Safety:
        All methods are safe to call concurrently; bundles are built once
        per (locale, resource) through the shared BundleBuilder.

    Example:
        >>> translator = Translator(catalog, use_isolating=False)  # doctest: +SKIP
        >>> translator.translate("en-CA", "home", "welcome", args={"first-name": "Alan"}).text
        'Welcome, Alan!'  # doctest: +SKIP
    """

    __slots__ = ("_builder", "_catalog", "_graph")

    def __init__(
        self,
        catalog: ResourceCatalog,
        *,
        builder: BundleBuilder | None = None,
        use_isolating: bool = True,
        functions: FunctionSource | None = None,
    ) -> None:
        """Initialize translator.

        Args:
            catalog: Loaded resources (its graph drives fallback)
            builder: Existing bundle builder to share; ``use_isolating`` and
                ``functions`` are ignored when given
            use_isolating: Wrap placeables in bidi isolation marks
            functions: Custom FTL functions

        Raises:
            DuplicateFunctionError: A function name appears twice
        """
        self._catalog = catalog
        self._graph = catalog.graph
        if builder is None:
            builder = BundleBuilder(catalog, use_isolating=use_isolating, functions=functions)
        self._builder = builder

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        environment: str | None = None,
        use_isolating: bool = True,
        functions: FunctionSource | None = None,
    ) -> Translator:
        """Load the catalog described by a configuration.

        Raises:
            MissingPathError: Unknown path environment
            LocaleGraphError: Invalid locale declarations
            CatalogError: Resources cannot be loaded
        """
        catalog = ResourceCatalog.load(config.resolve_path(environment), config.locale_graph())
        return cls(catalog, use_isolating=use_isolating, functions=functions)

    @property
    def catalog(self) -> ResourceCatalog:
        return self._catalog

    @property
    def graph(self) -> LocaleGraph:
        return self._graph

    @property
    def builder(self) -> BundleBuilder:
        return self._builder

    def register_function(self, name: FunctionName, func: Callable[..., FluentValue]) -> None:
        """Register a custom FTL function; only before the first translation.

        Raises:
            DuplicateFunctionError: ``name`` was already registered
            RuntimeError: Bundles were already built
        """
        self._builder.add_function(name, func)

    def translate(
        self,
        locale: LocaleId | str,
        resource: ResourceName,
        key: MessageKey,
        attribute: str | None = None,
        args: FluentArgs | None = None,
    ) -> Translation:
        """Resolve and format a message along the locale's fallback chain.

        Args:
            locale: Requested (main) locale
            resource: Named resource name
            key: Message id, or 'message.attribute' when ``attribute`` is None
            attribute: Attribute name
            args: Named arguments

        Returns:
            Translation; ``found`` is False when no hop has the message

        Raises:
            DuplicateMessageError: A resource file defines an id twice
        """
        if attribute is None:
            message_id, attribute = split_key(key)
        else:
            message_id = key
        display_key = message_id if attribute is None else f"{message_id}.{attribute}"

        route = self._graph.resolution_route(locale)
        if route is None:
            logger.warning("Locale %s is not supported", locale)
            return self._miss(resource, display_key, TranslationFailure.LOCALE_NOT_SUPPORTED)

        failure = TranslationFailure.RESOURCE_NOT_FOUND
        for hop in route:
            try:
                bundle = self._builder.get_bundle(hop, resource)
            except ResourceNotFoundError:
                logger.debug("Resource %s not available for %s", resource, hop)
                continue

            hop_failure = self._lookup(bundle, message_id, attribute)
            if hop_failure is not None:
                if _FAILURE_RANK[hop_failure] > _FAILURE_RANK[failure]:
                    failure = hop_failure
                logger.debug("%s: %s in %s for %s", hop_failure, display_key, resource, hop)
                continue

            text, errors = bundle.format_pattern(message_id, args, attribute=attribute)
            if errors:
                logger.debug(
                    "Formatting %s:%s for %s produced %d diagnostics",
                    resource,
                    display_key,
                    hop,
                    len(errors),
                )
            return Translation(text=text, locale=hop, errors=errors)

        logger.warning(
            "Message %s not found in resource %s for locale %s (%s)",
            display_key,
            resource,
            locale,
            failure,
        )
        return self._miss(resource, display_key, failure)

    def try_translate(
        self,
        locale: LocaleId | str,
        resource: ResourceName,
        key: MessageKey,
        attribute: str | None = None,
        args: FluentArgs | None = None,
    ) -> Translation:
        """Like translate, but raise when the message cannot be resolved.

        Raises:
            TranslationError: No hop of the chain has the message
        """
        translation = self.translate(locale, resource, key, attribute, args)
        if translation.failure is not None:
            shown = key if attribute is None else f"{key}.{attribute}"
            raise TranslationError(translation.failure, str(locale), resource, shown)
        return translation

    def message(
        self, resource: ResourceName, key: MessageKey, args: FluentArgs | None = None
    ) -> Message:
        """Bind a resource and key (and default args) into a Message."""
        return Message(self, resource, key, dict(args or {}))

    def required_variables(self, resource: ResourceName, key: MessageKey) -> frozenset[ArgName]:
        """Arguments a message requires across every main locale.

        Each main locale contributes the requirements of the hop that would
        serve it at runtime.
        """
        message_id, attribute = split_key(key)
        names: set[ArgName] = set()
        for locale in sorted(self._graph.main_locales):
            for hop in self._graph.chain(locale):
                try:
                    bundle = self._builder.get_bundle(hop, resource)
                except ResourceNotFoundError:
                    continue
                if self._lookup(bundle, message_id, attribute) is None:
                    names |= required_args(bundle.get_message, message_id, attribute).names
                    break
        return frozenset(names)

    def required_functions(self) -> frozenset[FunctionName]:
        """Every function referenced by any resource of the catalog."""
        return referenced_functions(self._catalog.iter_resources())

    def validator(
        self,
        *,
        functions: Iterable[FunctionName] = (),
        lenient: Iterable[FindingKind] = (),
        consistency: bool = False,
    ) -> Validator:
        """Validator sharing this translator's bundles and functions."""
        return Validator(
            self._catalog,
            builder=self._builder,
            functions=functions,
            lenient=lenient,
            consistency=consistency,
        )

    @staticmethod
    def _lookup(
        bundle: FluentBundle, message_id: str, attribute: str | None
    ) -> TranslationFailure | None:
        message: MessageNode | None = bundle.get_message(message_id)
        if message is None:
            return TranslationFailure.MESSAGE_NOT_FOUND
        if message_pattern(message, attribute) is None:
            if attribute is not None:
                return TranslationFailure.ATTRIBUTE_NOT_FOUND
            return TranslationFailure.VALUE_NOT_FOUND
        return None

    @staticmethod
    def _miss(
        resource: ResourceName, key: MessageKey, failure: TranslationFailure
    ) -> Translation:
        return Translation(text=placeholder(resource, key), failure=failure)
