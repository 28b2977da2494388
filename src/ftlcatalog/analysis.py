"""Static analysis of parsed messages.

Extracts what a message needs from its caller (variables, selector
variables) and which FTL functions resources reference, without
formatting anything.

Required arguments follow message references transitively, so a message
``greeting = { welcome }, { $name }`` also requires the variables of
``welcome``. Term references are not followed: term parameters are
supplied by the referencing pattern, never by the caller.

Reference resolution follows both message and term references and
reports the ones a bundle cannot resolve.

Python 3.13+.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ftllexengine.syntax.ast import (
    ASTNode,
    FunctionReference,
    Message,
    MessageReference,
    Pattern,
    SelectExpression,
    Term,
    TermReference,
    VariableReference,
)
from ftllexengine.syntax.visitor import ASTVisitor

from .types import ArgName, FunctionName, MessageId, MessageKey

if TYPE_CHECKING:
    from pathlib import Path

    from .catalog import Resource

__all__ = [
    "RequiredArgs",
    "function_references",
    "message_pattern",
    "referenced_functions",
    "required_args",
    "split_key",
    "unresolved_references",
]

type MessageLookup = Callable[[str], Message | None]
type TermLookup = Callable[[str], Term | None]


def split_key(key: MessageKey) -> tuple[MessageId, str | None]:
    """Split 'message.attribute' on the first dot.

    Example:
        >>> split_key("state.busy")
        ('state', 'busy')
        >>> split_key("welcome")
        ('welcome', None)
    """
    message_id, dot, attribute = key.partition(".")
    return message_id, attribute if dot else None


def message_pattern(message: Message | Term, attribute: str | None) -> Pattern | None:
    """Pattern of the message value, or of the named attribute.

    The parser gives attribute-only messages an empty value pattern; that
    counts as no value.
    """
    if attribute is None:
        if message.value is None or not message.value.elements:
            return None
        return message.value
    for attr in message.attributes:
        if attr.id.name == attribute:
            return attr.value
    return None


@dataclass(frozen=True, slots=True)
class RequiredArgs:
    """Arguments a message body requires.

    Attributes:
        variables: Every variable referenced in placeables, selectors and
            function arguments
        selector_keys: Variables used to pick a select expression variant
    """

    variables: frozenset[ArgName] = frozenset()
    selector_keys: frozenset[ArgName] = frozenset()

    @property
    def names(self) -> frozenset[ArgName]:
        return self.variables | self.selector_keys

    def missing(self, supplied: Iterable[ArgName]) -> frozenset[ArgName]:
        """Required names absent from ``supplied``."""
        return self.names.difference(supplied)


class _VariableCollector(ASTVisitor):
    """Collects variables of one pattern and the entries it references."""

    def __init__(self) -> None:
        super().__init__()
        self.variables: set[ArgName] = set()
        self.selector_keys: set[ArgName] = set()
        self.references: list[tuple[MessageId, str | None]] = []
        self.terms: list[tuple[str, str | None]] = []
        self._selector_depth = 0

    def visit_VariableReference(  # pylint: disable=invalid-name
        self, node: VariableReference
    ) -> ASTNode:
        self.variables.add(node.id.name)
        if self._selector_depth:
            self.selector_keys.add(node.id.name)
        return node

    def visit_SelectExpression(  # pylint: disable=invalid-name
        self, node: SelectExpression
    ) -> ASTNode:
        self._selector_depth += 1
        try:
            self.visit(node.selector)
        finally:
            self._selector_depth -= 1
        for variant in node.variants:
            self.visit(variant)
        return node

    def visit_MessageReference(  # pylint: disable=invalid-name
        self, node: MessageReference
    ) -> ASTNode:
        attribute = node.attribute.name if node.attribute else None
        self.references.append((node.id.name, attribute))
        return node

    def visit_TermReference(  # pylint: disable=invalid-name
        self, node: TermReference
    ) -> ASTNode:
        attribute = node.attribute.name if node.attribute else None
        self.terms.append((node.id.name, attribute))
        return node


def required_args(
    lookup: MessageLookup,
    message_id: MessageId,
    attribute: str | None = None,
) -> RequiredArgs:
    """Compute the arguments a message (or attribute) requires.

    Args:
        lookup: Message lookup, typically ``FluentBundle.get_message``
        message_id: Message to analyze
        attribute: Attribute of the message, None for its value

    Returns:
        RequiredArgs; empty when the message or pattern does not exist.
        Reference cycles are visited once.

    Example:
        >>> from ftllexengine.syntax import parse  # doctest: +SKIP
        >>> tree = parse("welcome = Welcome, { $first-name }!")  # doctest: +SKIP
        >>> messages = {m.id.name: m for m in tree.entries}  # doctest: +SKIP
        >>> required_args(messages.get, "welcome").variables  # doctest: +SKIP
        frozenset({'first-name'})
    """
    collector = _VariableCollector()
    seen: set[tuple[MessageId, str | None]] = set()
    pending: list[tuple[MessageId, str | None]] = [(message_id, attribute)]
    while pending:
        reference = pending.pop()
        if reference in seen:
            continue
        seen.add(reference)
        message = lookup(reference[0])
        if message is None:
            continue
        pattern = message_pattern(message, reference[1])
        if pattern is None:
            continue
        collector.references.clear()
        collector.visit(pattern)
        pending.extend(collector.references)
    return RequiredArgs(frozenset(collector.variables), frozenset(collector.selector_keys))


def _reference_label(is_term: bool, name: str, attribute: str | None) -> str:
    label = f"-{name}" if is_term else name
    return label if attribute is None else f"{label}.{attribute}"


def unresolved_references(
    lookup: MessageLookup,
    term_lookup: TermLookup,
    message_id: MessageId,
    attribute: str | None = None,
) -> tuple[str, ...]:
    """Message and term references reachable from a message that do not resolve.

    Follows message and term references transitively. The starting message
    itself is not reported when missing.

    Args:
        lookup: Message lookup of the bundle
        term_lookup: Term lookup of the bundle (term ids without the dash)
        message_id: Message to start from
        attribute: Attribute of the message, None for its value

    Returns:
        Sorted labels such as ``-brand``, ``welcome`` or ``state.busy``
    """
    start = (False, message_id, attribute)
    collector = _VariableCollector()
    missing: set[str] = set()
    seen: set[tuple[bool, str, str | None]] = set()
    pending: list[tuple[bool, str, str | None]] = [start]
    while pending:
        reference = pending.pop()
        if reference in seen:
            continue
        seen.add(reference)
        is_term, name, attr = reference
        entry: Message | Term | None = term_lookup(name) if is_term else lookup(name)
        pattern = None if entry is None else message_pattern(entry, attr)
        if pattern is None:
            if reference != start:
                missing.add(_reference_label(is_term, name, attr))
            continue
        collector.references.clear()
        collector.terms.clear()
        collector.visit(pattern)
        pending.extend((False, ref, ref_attr) for ref, ref_attr in collector.references)
        pending.extend((True, term, term_attr) for term, term_attr in collector.terms)
    return tuple(sorted(missing))


class _FunctionCollector(ASTVisitor):
    def __init__(self) -> None:
        super().__init__()
        self.names: set[FunctionName] = set()

    def visit_FunctionReference(  # pylint: disable=invalid-name
        self, node: FunctionReference
    ) -> ASTNode:
        self.names.add(node.id.name)
        return self.generic_visit(node)


def function_references(resources: Iterable[Resource]) -> dict[FunctionName, tuple[Path, ...]]:
    """Map each referenced function name to the files referencing it.

    Covers message values, attributes and terms.
    """
    locations: dict[FunctionName, list[Path]] = {}
    for resource in resources:
        collector = _FunctionCollector()
        collector.visit(resource.tree)
        for name in collector.names:
            locations.setdefault(name, []).append(resource.path)
    return {name: tuple(paths) for name, paths in locations.items()}


def referenced_functions(resources: Iterable[Resource]) -> frozenset[FunctionName]:
    """Every function name referenced by the resources."""
    return frozenset(function_references(resources))
