"""Message usages: the static input of the validator.

A MessageUsage describes one call site: which message of which named
resource it formats, which argument names it supplies, and for which
locales it must work. Usages typically come from a call-site discovery
step that writes a JSON feed::

    [
        {"resource": "home", "key": "welcome", "args": ["first-name"]},
        {"resource": "home", "message": "state", "attribute": "busy",
         "args": ["reason"], "incomplete": true},
        {"resource": "settings", "key": "title", "locales": ["fr-CA"]}
    ]

Python 3.13+.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from .analysis import split_key
from .errors import InvalidLocaleError, UsageFeedError
from .locales import LocaleId
from .types import ArgName, MessageId, MessageKey, ResourceName

__all__ = [
    "ALL_LOCALES",
    "DeclaredLocales",
    "MessageUsage",
    "load_usages",
    "parse_usages",
]

ALL_LOCALES: Literal["all"] = "all"

type DeclaredLocales = frozenset[LocaleId] | Literal["all"]


@dataclass(frozen=True, slots=True)
class MessageUsage:
    """One call site referencing a message.

    Attributes:
        resource: Named resource name
        message: Message id
        attribute: Attribute name, None for the message value
        args: Argument names supplied by the call site
        locales: Locales the call site must support, or ``"all"``
        incomplete: The call site knowingly supplies a partial argument
            set (the rest is merged in later); skips the argument check
    """

    resource: ResourceName
    message: MessageId
    attribute: str | None = None
    args: frozenset[ArgName] = frozenset()
    locales: DeclaredLocales = ALL_LOCALES
    incomplete: bool = False

    @classmethod
    def of(
        cls,
        resource: ResourceName,
        key: MessageKey,
        args: Iterable[ArgName] = (),
        *,
        locales: Iterable[LocaleId | str] | Literal["all"] = ALL_LOCALES,
        incomplete: bool = False,
    ) -> MessageUsage:
        """Build a usage from a 'message.attribute' key.

        Raises:
            InvalidLocaleError: A declared locale does not parse
        """
        message, attribute = split_key(key)
        declared: DeclaredLocales = (
            ALL_LOCALES
            if locales == ALL_LOCALES
            else frozenset(LocaleId.coerce(locale) for locale in locales)
        )
        return cls(
            resource=resource,
            message=message,
            attribute=attribute,
            args=frozenset(args),
            locales=declared,
            incomplete=incomplete,
        )

    @property
    def key(self) -> MessageKey:
        return self.message if self.attribute is None else f"{self.message}.{self.attribute}"

    def __str__(self) -> str:
        return f"{self.resource}:{self.key}"


def parse_usages(data: object, source: str = "<data>") -> list[MessageUsage]:
    """Convert decoded JSON into usages.

    Raises:
        UsageFeedError: Data does not follow the feed format
    """
    if not isinstance(data, list):
        raise UsageFeedError(source, "expected a JSON array of usages")
    usages = []
    for index, item in enumerate(data):
        if not isinstance(item, Mapping):
            raise UsageFeedError(source, f"entry {index} is not an object")
        try:
            usages.append(_parse_usage(item))
        except (InvalidLocaleError, TypeError, ValueError) as exc:
            raise UsageFeedError(source, f"entry {index}: {exc}") from exc
    return usages


def _parse_usage(item: Mapping[str, object]) -> MessageUsage:
    resource = item.get("resource")
    if not isinstance(resource, str) or not resource:
        msg = "missing `resource`"
        raise ValueError(msg)

    key = item.get("key")
    if key is None:
        message = item.get("message")
        if not isinstance(message, str) or not message:
            msg = "missing `key` or `message`"
            raise ValueError(msg)
        attribute = item.get("attribute")
        key = message if attribute is None else f"{message}.{attribute}"
    if not isinstance(key, str):
        msg = "`key` must be a string"
        raise TypeError(msg)

    args = item.get("args", [])
    if not isinstance(args, list) or not all(isinstance(arg, str) for arg in args):
        msg = "`args` must be a list of strings"
        raise TypeError(msg)

    locales = item.get("locales", ALL_LOCALES)
    if locales != ALL_LOCALES and (
        not isinstance(locales, list) or not all(isinstance(loc, str) for loc in locales)
    ):
        msg = '`locales` must be "all" or a list of strings'
        raise TypeError(msg)

    incomplete = item.get("incomplete", False)
    if not isinstance(incomplete, bool):
        msg = "`incomplete` must be a boolean"
        raise TypeError(msg)

    return MessageUsage.of(
        resource,
        key,
        args,
        locales=locales,  # type: ignore[arg-type]
        incomplete=incomplete,
    )


def load_usages(path: Path | str) -> list[MessageUsage]:
    """Read a JSON usage feed.

    Raises:
        UsageFeedError: File unreadable, not JSON, or malformed
    """
    feed = Path(path)
    try:
        data = json.loads(feed.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise UsageFeedError(str(feed), str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise UsageFeedError(str(feed), f"invalid JSON: {exc}") from exc
    return parse_usages(data, str(feed))
