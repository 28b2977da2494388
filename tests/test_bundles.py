"""Tests for bundle composition and the single-flight bundle cache.

Structure:
    - TestBundleComposition: layer order and overrides
    - TestBundleCache: idempotence and cached keys
    - TestBundleErrors: missing resources and duplicate ids
    - TestBundleFunctions: builtin and custom function registration
    - TestBundleConcurrency: one construction per key under contention

Note: use_isolating=False is used throughout so formatted output can be
compared directly.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from pathlib import Path

import pytest
from ftllexengine import FluentBundle

from ftlcatalog.bundles import DEFAULT_ENGINE_LOCALE, BundleBuilder, BundleKey
from ftlcatalog.catalog import ResourceCatalog
from ftlcatalog.errors import DuplicateFunctionError, DuplicateMessageError, ResourceNotFoundError
from ftlcatalog.locales import LocaleGraph, LocaleId

type TreeWriter = Callable[[dict[str, str]], Path]


def _identity(value: str) -> str:
    return value


def _format(bundle: FluentBundle, message_id: str, args: dict[str, object] | None = None) -> str:
    text, _errors = bundle.format_pattern(message_id, args)  # type: ignore[arg-type]
    return text


class TestBundleComposition:
    """Global unnamed, locale unnamed and named layers."""

    def test_layers_are_merged(self, catalog: ResourceCatalog) -> None:
        """Terms and messages from every layer are available."""
        builder = BundleBuilder(catalog, use_isolating=False)
        bundle = builder.get_bundle("en", "home")
        assert _format(bundle, "farewell") == "Goodbye from Acme Notes"
        assert _format(bundle, "app-name") == "Acme Notes"

    def test_bundle_holds_only_own_locale(self, catalog: ResourceCatalog) -> None:
        """A locale bundle does not include its fallback's resources."""
        builder = BundleBuilder(catalog, use_isolating=False)
        bundle = builder.get_bundle("en-GB", "home")
        assert bundle.get_message("colour") is not None
        assert bundle.get_message("welcome") is None

    def test_later_layers_override_earlier(self, write_tree: TreeWriter) -> None:
        """Named resources override unnamed definitions of the same id."""
        root = write_tree(
            {
                "_global.ftl": "title = Global\n-brand = Global",
                "en/_shared.ftl": "title = Shared",
                "en/home.ftl": "title = Named { -brand }",
            }
        )
        catalog = ResourceCatalog.load(root, LocaleGraph.from_declarations(["en"]))
        bundle = BundleBuilder(catalog, use_isolating=False).get_bundle("en", "home")
        assert _format(bundle, "title") == "Named Global"

    def test_nested_unnamed_only_for_its_directory(self, write_tree: TreeWriter) -> None:
        """Unnamed files in a subdirectory do not leak into sibling resources."""
        root = write_tree(
            {
                "en/nested/_local.ftl": "local = Local",
                "en/nested/about.ftl": "about = { local }",
                "en/home.ftl": "home = Home",
            }
        )
        catalog = ResourceCatalog.load(root, LocaleGraph.from_declarations(["en"]))
        builder = BundleBuilder(catalog, use_isolating=False)
        assert _format(builder.get_bundle("en", "nested/about"), "about") == "Local"
        assert builder.get_bundle("en", "home").get_message("local") is None

    def test_unknown_engine_locale_uses_default(self, write_tree: TreeWriter) -> None:
        """Locales without formatting rules still get a bundle."""
        root = write_tree({"qaa/home.ftl": "hello = Hello"})
        catalog = ResourceCatalog.load(root)
        bundle = BundleBuilder(catalog, use_isolating=False).get_bundle("qaa", "home")
        assert _format(bundle, "hello") == "Hello"
        assert DEFAULT_ENGINE_LOCALE == "en"


class TestBundleCache:
    """Lazy construction and caching."""

    def test_get_bundle_is_idempotent(self, catalog: ResourceCatalog) -> None:
        """The same key returns the identical bundle without rebuilding."""
        builder = BundleBuilder(catalog, use_isolating=False)
        first = builder.get_bundle("en", "home")
        second = builder.get_bundle(LocaleId.parse("en"), "home")
        assert first is second
        assert builder.build_count == 1

    def test_keys_are_independent(self, catalog: ResourceCatalog) -> None:
        """Different keys produce different bundles."""
        builder = BundleBuilder(catalog, use_isolating=False)
        home = builder.get_bundle("en", "home")
        settings = builder.get_bundle("en", "settings")
        assert home is not settings
        assert builder.build_count == 2

    def test_cached_keys(self, catalog: ResourceCatalog) -> None:
        """Only completed constructions are listed."""
        builder = BundleBuilder(catalog, use_isolating=False)
        assert builder.cached_keys() == frozenset()
        builder.get_bundle("en-GB", "home")
        assert builder.cached_keys() == frozenset({BundleKey(LocaleId.parse("en-GB"), "home")})
        assert str(BundleKey(LocaleId.parse("en-GB"), "home")) == "en-GB:home"

    def test_has_bundle(self, catalog: ResourceCatalog) -> None:
        """has_bundle reflects the catalog."""
        builder = BundleBuilder(catalog)
        assert builder.has_bundle("en", "settings")
        assert not builder.has_bundle("en-GB", "settings")


class TestBundleErrors:
    """Failures surfaced by get_bundle."""

    def test_missing_resource(self, catalog: ResourceCatalog) -> None:
        """A locale without the named resource raises ResourceNotFoundError."""
        builder = BundleBuilder(catalog)
        with pytest.raises(ResourceNotFoundError) as exc_info:
            builder.get_bundle("en-GB", "settings")
        assert exc_info.value.resource == "settings"
        assert builder.build_count == 0

    def test_duplicate_message_in_one_file(self, write_tree: TreeWriter) -> None:
        """Duplicate ids inside one resource are fatal."""
        root = write_tree({"en/home.ftl": "dup = One\ndup = Two"})
        catalog = ResourceCatalog.load(root, LocaleGraph.from_declarations(["en"]))
        builder = BundleBuilder(catalog)
        with pytest.raises(DuplicateMessageError) as exc_info:
            builder.get_bundle("en", "home")
        assert "dup" in exc_info.value.ids
        assert exc_info.value.source_path is not None
        assert exc_info.value.source_path.endswith("home.ftl")

    def test_error_is_cached(self, write_tree: TreeWriter) -> None:
        """A failed construction is not retried."""
        root = write_tree({"en/home.ftl": "dup = One\ndup = Two"})
        catalog = ResourceCatalog.load(root, LocaleGraph.from_declarations(["en"]))
        builder = BundleBuilder(catalog)
        for _ in range(3):
            with pytest.raises(DuplicateMessageError):
                builder.get_bundle("en", "home")
        assert builder.build_count == 1


class TestBundleFunctions:
    """Function registry handling."""

    def test_builtins_available(self, catalog: ResourceCatalog) -> None:
        """NUMBER, DATETIME and CURRENCY are always registered."""
        builder = BundleBuilder(catalog)
        assert {"NUMBER", "DATETIME", "CURRENCY"} <= builder.function_names
        assert builder.custom_function_names == frozenset()

    def test_custom_function(self, write_tree: TreeWriter) -> None:
        """Custom functions are callable from every bundle."""
        root = write_tree({"en/home.ftl": "shout = { UPPER($text) }"})
        catalog = ResourceCatalog.load(root, LocaleGraph.from_declarations(["en"]))

        def upper(value: str) -> str:
            return str(value).upper()

        builder = BundleBuilder(catalog, use_isolating=False, functions={"UPPER": upper})
        assert "UPPER" in builder.custom_function_names
        assert _format(builder.get_bundle("en", "home"), "shout", {"text": "hi"}) == "HI"

    def test_builtin_number_formatting(self, write_tree: TreeWriter) -> None:
        """Builtins format with the bundle locale."""
        root = write_tree({"en/home.ftl": "total = { NUMBER($amount, minimumFractionDigits: 2) }"})
        catalog = ResourceCatalog.load(root, LocaleGraph.from_declarations(["en"]))
        bundle = BundleBuilder(catalog, use_isolating=False).get_bundle("en", "home")
        assert _format(bundle, "total", {"amount": Decimal("1234.5")}) == "1,234.50"

    def test_duplicate_function_rejected(self, catalog: ResourceCatalog) -> None:
        """The same custom name cannot be registered twice."""
        with pytest.raises(DuplicateFunctionError, match="function duplicate: TIME"):
            BundleBuilder(catalog, functions=[("TIME", _identity), ("TIME", _identity)])

    def test_registration_after_build_rejected(self, catalog: ResourceCatalog) -> None:
        """Functions must be registered before the first bundle."""
        builder = BundleBuilder(catalog)
        builder.get_bundle("en", "home")
        with pytest.raises(RuntimeError, match="already been built"):
            builder.add_function("LATE", _identity)


class TestBundleConcurrency:
    """Single-flight construction."""

    def test_concurrent_requests_build_once(self, catalog: ResourceCatalog) -> None:
        """Threads racing on one key observe one bundle built once."""
        builder = BundleBuilder(catalog, use_isolating=False)
        thread_count = 16
        barrier = threading.Barrier(thread_count)

        def request(_: int) -> FluentBundle:
            barrier.wait()
            return builder.get_bundle("en", "home")

        with ThreadPoolExecutor(max_workers=thread_count) as executor:
            bundles = list(executor.map(request, range(thread_count)))

        assert builder.build_count == 1
        assert all(bundle is bundles[0] for bundle in bundles)

    def test_concurrent_requests_for_many_keys(self, catalog: ResourceCatalog) -> None:
        """Each key is built exactly once under contention."""
        builder = BundleBuilder(catalog, use_isolating=False)
        keys = [("en", "home"), ("en", "settings"), ("en-GB", "home"), ("en-CA", "home")] * 8

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(lambda key: builder.get_bundle(*key), keys))

        assert builder.build_count == 4
        assert len(builder.cached_keys()) == 4

    def test_concurrent_errors_shared(self, write_tree: TreeWriter) -> None:
        """All requesters of a failing key see the error; construction runs once."""
        root = write_tree({"en/home.ftl": "dup = One\ndup = Two"})
        catalog = ResourceCatalog.load(root, LocaleGraph.from_declarations(["en"]))
        builder = BundleBuilder(catalog)

        def request(_: int) -> bool:
            try:
                builder.get_bundle("en", "home")
            except DuplicateMessageError:
                return True
            return False

        with ThreadPoolExecutor(max_workers=8) as executor:
            outcomes = list(executor.map(request, range(8)))

        assert all(outcomes)
        assert builder.build_count == 1
