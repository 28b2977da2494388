"""Message handles bound to a translator.

A Message pins a named resource, a key and default arguments so that
application code can pass it around and format it later for whatever
locale the current request uses::

    welcome = translator.message("home", "welcome", {"first-name": "Alan"})
    welcome.translate("en-CA")

Arguments given to ``translate`` are merged over the defaults.

Python 3.13+.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Literal

from ftllexengine import FluentValue

from .usage import ALL_LOCALES, MessageUsage

if TYPE_CHECKING:
    from .locales import LocaleId
    from .translator import Translation, Translator
    from .types import FluentArgs, MessageKey, ResourceName

__all__ = ["UNEXPECTED_MESSAGE", "Message"]

logger = logging.getLogger("ftlcatalog.message")

UNEXPECTED_MESSAGE = "Unexpected message"
"""Text shown by ``Message.translate`` when the message cannot be resolved."""


@dataclass(frozen=True, slots=True, eq=False)
class Message:
    """A (resource, key) pair with default arguments.

    Attributes:
        translator: Translator used for formatting
        resource: Named resource name
        key: Message id or 'message.attribute'
        args: Default arguments
    """

    translator: Translator
    resource: ResourceName
    key: MessageKey
    args: Mapping[str, FluentValue] = field(default_factory=dict)

    def with_args(self, **args: FluentValue) -> Message:
        """Copy with ``args`` merged over the defaults."""
        return replace(self, args={**self.args, **args})

    def merged_args(self, args: FluentArgs | None = None) -> dict[str, FluentValue]:
        if not args:
            return dict(self.args)
        return {**self.args, **args}

    def translation(self, locale: LocaleId | str, args: FluentArgs | None = None) -> Translation:
        """Full translation result, including diagnostics."""
        return self.translator.translate(
            locale, self.resource, self.key, args=self.merged_args(args)
        )

    def translate(self, locale: LocaleId | str, args: FluentArgs | None = None) -> str:
        """Format the message, or return UNEXPECTED_MESSAGE when it cannot be resolved."""
        result = self.translation(locale, args)
        if not result.found:
            logger.error(
                "Cannot translate %s:%s for %s: %s",
                self.resource,
                self.key,
                locale,
                result.failure,
            )
            return UNEXPECTED_MESSAGE
        return result.text

    def try_translate(self, locale: LocaleId | str, args: FluentArgs | None = None) -> str:
        """Format the message.

        Raises:
            TranslationError: The message cannot be resolved for ``locale``
        """
        return self.translator.try_translate(
            locale, self.resource, self.key, args=self.merged_args(args)
        ).text

    def usage(
        self,
        locales: Iterable[LocaleId | str] | Literal["all"] = ALL_LOCALES,
        incomplete: bool = False,
    ) -> MessageUsage:
        """Describe this handle as a validator input.

        The default argument names count as supplied.
        """
        return MessageUsage.of(
            self.resource, self.key, self.args, locales=locales, incomplete=incomplete
        )

    def __str__(self) -> str:
        return f"{self.resource}:{self.key}"
