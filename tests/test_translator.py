"""Tests for runtime translation along fallback chains.

Structure:
    - TestTranslate: successful resolution and fallback
    - TestTranslationMisses: placeholder results and failure kinds
    - TestTryTranslate: raising variant
    - TestIntrospection: required variables and functions
    - TestFunctions: custom function registration
    - TestConstruction: from_config and shared validators

Note: use_isolating=False is used throughout so formatted output can be
compared directly.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from ftlcatalog.catalog import ResourceCatalog
from ftlcatalog.config import parse_config
from ftlcatalog.errors import TranslationError
from ftlcatalog.locales import LocaleGraph, LocaleId
from ftlcatalog.translator import Translation, TranslationFailure, Translator, placeholder
from ftlcatalog.usage import MessageUsage

type TreeWriter = Callable[[dict[str, str]], Path]

EN = LocaleId.parse("en")


@pytest.fixture
def translator(catalog: ResourceCatalog) -> Translator:
    return Translator(catalog, use_isolating=False)


class TestTranslate:
    """Resolution along en-CA -> en-GB -> en."""

    def test_own_locale(self, translator: Translator) -> None:
        """Messages defined for the requested locale win."""
        result = translator.translate("en-CA", "home", "farewell")
        assert result.text == "Bye, eh"
        assert result.locale == LocaleId.parse("en-CA")
        assert result.found

    def test_intermediate_fallback(self, translator: Translator) -> None:
        """The first hop defining the message is used."""
        result = translator.translate("en-CA", "home", "colour")
        assert result.text == "Colour (GB)"
        assert result.locale == LocaleId.parse("en-GB")

    def test_terminal_fallback(self, translator: Translator) -> None:
        """Messages only in the terminal locale are found."""
        result = translator.translate("en-CA", "home", "welcome", args={"first-name": "Alan"})
        assert result.text == "Welcome, Alan!"
        assert result.locale == EN
        assert str(result) == "Welcome, Alan!"

    def test_resource_missing_in_intermediate_hops(self, translator: Translator) -> None:
        """Hops without the resource are skipped."""
        result = translator.translate("en-GB", "settings", "title")
        assert result.text == "Settings"
        assert result.locale == EN

    def test_locale_object_accepted(self, translator: Translator) -> None:
        """LocaleId and string locales are equivalent."""
        assert translator.translate(EN, "home", "colour").text == "Colour"

    def test_attribute_from_key(self, translator: Translator) -> None:
        """'message.attribute' keys format the attribute."""
        result = translator.translate("en", "home", "state.busy", args={"reason": "syncing"})
        assert result.text == "Busy: syncing"

    def test_attribute_argument(self, translator: Translator) -> None:
        """The attribute may be passed separately."""
        result = translator.translate("en", "home", "state", "busy", {"reason": "saving"})
        assert result.text == "Busy: saving"

    def test_selector(self, translator: Translator) -> None:
        """Plural selection uses the serving locale."""
        assert translator.translate("en", "home", "state", args={"count": 1}).text == "One note"
        assert translator.translate("en", "home", "state", args={"count": 3}).text == "3 notes"

    def test_terms_and_references(self, translator: Translator) -> None:
        """Global terms and unnamed messages resolve inside named resources."""
        assert translator.translate("en", "home", "farewell").text == "Goodbye from Acme Notes"
        result = translator.translate(
            "en", "home", "greeting", args={"first-name": "Ada", "day": "Monday"}
        )
        assert result.text == "Welcome, Ada! Today is Monday."

    def test_missing_argument_is_a_diagnostic(self, translator: Translator) -> None:
        """Formatting problems are reported, not raised."""
        result = translator.translate("en", "home", "welcome")
        assert result.found
        assert result.errors
        assert result.text.startswith("Welcome, ")


class TestTranslationMisses:
    """Unresolvable messages produce placeholders."""

    def test_placeholder_text(self) -> None:
        """Placeholders name the resource and key."""
        assert placeholder("home", "state.busy") == "{home:state.busy}"

    def test_unsupported_locale(self, translator: Translator) -> None:
        """Locales outside the graph are not supported."""
        result = translator.translate("de", "home", "welcome")
        assert result == Translation(
            text="{home:welcome}", failure=TranslationFailure.LOCALE_NOT_SUPPORTED
        )
        assert not result.found

    def test_unparsable_locale(self, translator: Translator) -> None:
        """Garbage locale strings are treated as unsupported."""
        result = translator.translate("??", "home", "welcome")
        assert result.failure is TranslationFailure.LOCALE_NOT_SUPPORTED

    def test_fallback_only_locale_not_requestable(self, write_tree: TreeWriter) -> None:
        """Undeclared fallback targets cannot be requested directly."""
        root = write_tree({"en/home.ftl": "a = A", "en-GB/home.ftl": "a = A (GB)"})
        catalog = ResourceCatalog.load(root, LocaleGraph.from_declarations([("en-GB", "en")]))
        translator = Translator(catalog, use_isolating=False)
        assert translator.translate("en-GB", "home", "a").text == "A (GB)"
        result = translator.translate("en", "home", "a")
        assert result.failure is TranslationFailure.LOCALE_NOT_SUPPORTED

    def test_resource_not_found(self, translator: Translator) -> None:
        """Resources absent from every hop."""
        result = translator.translate("en-CA", "profile", "title")
        assert result.failure is TranslationFailure.RESOURCE_NOT_FOUND
        assert result.text == "{profile:title}"
        assert result.locale is None

    def test_message_not_found(self, translator: Translator) -> None:
        """Ids absent from every hop."""
        result = translator.translate("en-CA", "home", "nope")
        assert result.failure is TranslationFailure.MESSAGE_NOT_FOUND

    def test_most_specific_failure_reported(self, translator: Translator) -> None:
        """A hop with the message but not the attribute outranks missing messages."""
        result = translator.translate("en-CA", "home", "state.idle")
        assert result.failure is TranslationFailure.ATTRIBUTE_NOT_FOUND
        assert result.text == "{home:state.idle}"

    def test_value_not_found(self, write_tree: TreeWriter) -> None:
        """Attribute-only messages have no value."""
        root = write_tree({"en/home.ftl": "button =\n    .label = Save\n"})
        catalog = ResourceCatalog.load(root, LocaleGraph.from_declarations(["en"]))
        translator = Translator(catalog, use_isolating=False)
        result = translator.translate("en", "home", "button")
        assert result.failure is TranslationFailure.VALUE_NOT_FOUND
        assert not result.found
        assert result.text == "{home:button}"
        assert translator.translate("en", "home", "button.label").text == "Save"

    def test_failure_describe(self) -> None:
        """Failures render as words."""
        assert TranslationFailure.MESSAGE_NOT_FOUND.describe() == "message not found"


class TestTryTranslate:
    """try_translate raises on misses."""

    def test_success(self, translator: Translator) -> None:
        """Found messages are returned."""
        assert translator.try_translate("en-GB", "home", "colour").text == "Colour (GB)"

    def test_miss_raises(self, translator: Translator) -> None:
        """Misses raise TranslationError with context."""
        with pytest.raises(TranslationError) as exc_info:
            translator.try_translate("en-CA", "home", "state", "idle")
        error = exc_info.value
        assert error.failure is TranslationFailure.ATTRIBUTE_NOT_FOUND
        assert error.key == "state.idle"
        assert error.locale == "en-CA"
        assert str(error) == (
            'attribute not found: "state.idle" in resource "home" for locale "en-CA"'
        )


class TestIntrospection:
    """required_variables and required_functions."""

    def test_required_variables(self, translator: Translator) -> None:
        """Variables of the serving hop, including referenced messages."""
        assert translator.required_variables("home", "welcome") == frozenset({"first-name"})
        assert translator.required_variables("home", "greeting") == frozenset({"first-name", "day"})
        assert translator.required_variables("home", "state.busy") == frozenset({"reason"})

    def test_required_variables_union_across_main_locales(self, write_tree: TreeWriter) -> None:
        """Each main locale contributes the hop that would serve it."""
        root = write_tree(
            {
                "en/home.ftl": "hello = Hello { $name }",
                "fr/home.ftl": "hello = Bonjour { $title } { $name }",
            }
        )
        catalog = ResourceCatalog.load(root, LocaleGraph.from_declarations(["en", "fr"]))
        translator = Translator(catalog)
        assert translator.required_variables("home", "hello") == frozenset({"name", "title"})

    def test_unknown_message_requires_nothing(self, translator: Translator) -> None:
        """Unresolvable keys yield an empty set."""
        assert translator.required_variables("home", "nope") == frozenset()

    def test_required_functions(self, write_tree: TreeWriter) -> None:
        """Every referenced function is listed, builtin or not."""
        root = write_tree({"en/home.ftl": "a = { NUMBER($n) }\nb = { TIME($t) }"})
        catalog = ResourceCatalog.load(root, LocaleGraph.from_declarations(["en"]))
        assert Translator(catalog).required_functions() == frozenset({"NUMBER", "TIME"})


class TestFunctions:
    """Custom functions at runtime."""

    @pytest.fixture
    def shouting(self, write_tree: TreeWriter) -> ResourceCatalog:
        root = write_tree({"en/home.ftl": "shout = { UPPER($text) }"})
        return ResourceCatalog.load(root, LocaleGraph.from_declarations(["en"]))

    def test_register_before_use(self, shouting: ResourceCatalog) -> None:
        """Registered functions are called during formatting."""
        translator = Translator(shouting, use_isolating=False)

        def upper(value: str) -> str:
            return str(value).upper()

        translator.register_function("UPPER", upper)
        assert translator.translate("en", "home", "shout", args={"text": "hey"}).text == "HEY"

    def test_constructor_functions(self, shouting: ResourceCatalog) -> None:
        """Functions may be given at construction."""

        def upper(value: str) -> str:
            return str(value).upper()

        translator = Translator(shouting, use_isolating=False, functions={"UPPER": upper})
        assert translator.translate("en", "home", "shout", args={"text": "ok"}).text == "OK"

    def test_register_after_use_rejected(self, shouting: ResourceCatalog) -> None:
        """Registration is closed once a bundle exists."""
        translator = Translator(shouting, use_isolating=False)
        translator.translate("en", "home", "shout", args={"text": "x"})

        def upper(value: str) -> str:
            return str(value).upper()

        with pytest.raises(RuntimeError):
            translator.register_function("UPPER", upper)


class TestConstruction:
    """Alternate constructors and helpers."""

    def test_from_config(self, l10n_root: Path) -> None:
        """Configuration drives the root and the locale graph."""
        config = parse_config(
            "[l10n]\n"
            'path = "$ROOT/l10n"\n'
            'locales = ["en", { main = "en-GB", fallback = "en" }, ["en-CA", "en-GB"]]\n',
            l10n_root.parent / "l10n.toml",
        )
        translator = Translator.from_config(config, use_isolating=False)
        assert translator.graph.describe() == ["en", "en-CA -> en-GB -> en", "en-GB -> en"]
        assert translator.translate("en-CA", "home", "colour").text == "Colour (GB)"

    def test_from_config_discovery(self, l10n_root: Path) -> None:
        """Without declarations, locales come from the directory names."""
        config = parse_config('[l10n]\npath = "$ROOT/l10n"\n', l10n_root.parent / "l10n.toml")
        translator = Translator.from_config(config, use_isolating=False)
        assert translator.graph.main_locales == frozenset(
            LocaleId.parse(tag) for tag in ("en", "en-GB", "en-CA")
        )
        assert translator.translate("en-CA", "home", "colour").text == "Colour"

    def test_validator_shares_builder(self, translator: Translator) -> None:
        """Validators built by the translator reuse its bundles."""
        translator.translate("en", "home", "colour")
        validator = translator.validator()
        report = validator.validate([MessageUsage.of("home", "welcome", ["first-name"])])
        assert report.is_valid
        # en, plus the en-GB and en-CA home bundles walked for serving hops.
        assert translator.builder.build_count == 3
        translator.translate("en-CA", "home", "welcome", args={"first-name": "Grace"})
        assert translator.builder.build_count == 3

    def test_message_handle(self, translator: Translator) -> None:
        """message binds resource, key and default arguments."""
        handle = translator.message("home", "welcome", {"first-name": "Grace"})
        assert handle.translate("en-GB") == "Welcome, Grace!"
        assert handle.translator is translator
