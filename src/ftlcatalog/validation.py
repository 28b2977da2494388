"""Static validation of message usages against a resource catalog.

The validator runs without formatting anything. For every usage it:

1. picks the target locales: every mandatory locale, or the terminals of
   the usage's declared locales
2. checks the named resource exists for each target locale
3. checks the message (and attribute, or value) exists in the merged
   bundle
4. checks the call site supplies every required argument
5. repeats the argument check in every locale that would serve the
   message at runtime, and checks that the message and term references
   of each served definition resolve in its bundle

It also checks that every FTL function referenced anywhere in the
catalog is registered, and optionally that every named resource exists
in every mandatory locale.

Findings are values, never exceptions. A broken usage does not stop the
sweep; the report is sorted and deduplicated so the same input always
produces the same report, whatever the execution order.

Python 3.13+.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from enum import StrEnum

from ftllexengine import FluentBundle

from .analysis import (
    RequiredArgs,
    function_references,
    message_pattern,
    required_args,
    unresolved_references,
)
from .bundles import BundleBuilder
from .catalog import ResourceCatalog
from .errors import ResourceNotFoundError
from .locales import LocaleGraph, LocaleId
from .types import FunctionName
from .usage import ALL_LOCALES, MessageUsage

__all__ = [
    "Finding",
    "FindingKind",
    "Severity",
    "ValidationReport",
    "Validator",
    "validate",
]

logger = logging.getLogger("ftlcatalog.validation")


class FindingKind(StrEnum):
    """Kinds of validation findings."""

    MISSING_RESOURCE = "missing-resource"
    MISSING_MESSAGE = "missing-message"
    MISSING_ATTRIBUTE = "missing-attribute"
    MISSING_VALUE = "missing-value"
    MISSING_ARGUMENT = "missing-argument"
    UNRESOLVED_REFERENCE = "unresolved-reference"
    UNKNOWN_FUNCTION = "unknown-function"
    UNKNOWN_LOCALE = "unknown-locale"
    INCONSISTENT_RESOURCE = "inconsistent-resource"


class Severity(StrEnum):
    """Finding severity. Only errors fail a build."""

    ERROR = "error"
    WARNING = "warning"


_SEVERITY_ORDER = {Severity.ERROR: 0, Severity.WARNING: 1}


@dataclass(frozen=True, slots=True)
class Finding:
    """One validation finding.

    Attributes:
        kind: What is wrong
        severity: ERROR fails the build, WARNING only reports
        detail: Human readable description
        locale: Locale the finding applies to
        resource: Named resource involved
        message: Message id involved
        attribute: Attribute involved
        names: Missing argument names, or the unknown function name
    """

    kind: FindingKind
    severity: Severity
    detail: str
    locale: LocaleId | None = None
    resource: str | None = None
    message: str | None = None
    attribute: str | None = None
    names: tuple[str, ...] = ()

    def sort_key(self) -> tuple[int, str, str, str, str, str, tuple[str, ...]]:
        return (
            _SEVERITY_ORDER[self.severity],
            self.kind,
            str(self.locale or ""),
            self.resource or "",
            self.message or "",
            self.attribute or "",
            self.names,
        )

    def format(self) -> str:
        """Single line: ``error[missing-argument]: detail``."""
        return f"{self.severity}[{self.kind}]: {self.detail}"

    def to_dict(self) -> dict[str, str | list[str] | None]:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "detail": self.detail,
            "locale": str(self.locale) if self.locale else None,
            "resource": self.resource,
            "message": self.message,
            "attribute": self.attribute,
            "names": list(self.names),
        }


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """Aggregated, sorted validation findings.

    Attributes:
        findings: Deduplicated findings, errors first
        usage_count: Number of usages checked
    """

    findings: tuple[Finding, ...] = ()
    usage_count: int = 0

    @classmethod
    def of(cls, findings: Iterable[Finding], usage_count: int = 0) -> ValidationReport:
        """Deduplicate and sort findings into a report."""
        return cls(tuple(sorted(set(findings), key=Finding.sort_key)), usage_count)

    @property
    def errors(self) -> tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.severity is Severity.ERROR)

    @property
    def warnings(self) -> tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.severity is Severity.WARNING)

    @property
    def is_valid(self) -> bool:
        """True when no finding has error severity."""
        return not self.errors

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def by_kind(self, kind: FindingKind) -> tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.kind is kind)

    def format(self) -> str:
        """Human readable report.

        Example output:
            Validation failed: 1 error(s), 0 warning(s) in 3 usage(s)

            Errors (1):
              error[missing-argument]: missing argument "first-name" ...
        """
        if not self.findings:
            return f"Validation passed: no errors or warnings in {self.usage_count} usage(s)"

        verdict = "passed" if self.is_valid else "failed"
        parts = [
            f"Validation {verdict}: {self.error_count} error(s), "
            f"{self.warning_count} warning(s) in {self.usage_count} usage(s)"
        ]
        if self.errors:
            parts.append(f"\nErrors ({self.error_count}):")
            parts.extend(f"  {finding.format()}" for finding in self.errors)
        if self.warnings:
            parts.append(f"\nWarnings ({self.warning_count}):")
            parts.extend(f"  {finding.format()}" for finding in self.warnings)
        return "\n".join(parts)

    def to_json(self) -> str:
        return json.dumps(
            {
                "valid": self.is_valid,
                "usage_count": self.usage_count,
                "error_count": self.error_count,
                "warning_count": self.warning_count,
                "findings": [finding.to_dict() for finding in self.findings],
            },
            ensure_ascii=False,
            indent=2,
        )


def _quote_all(names: Iterable[str]) -> str:
    return ", ".join(f'"{name}"' for name in names)


class Validator:
    """Cross-checks message usages against a catalog and its locale graph.

    Thread Safety:
        ``validate`` may partition usages across worker threads; all
        shared state (catalog, graph, bundle cache) is either immutable or
        single-flight.

    Example:
        >>> validator = Validator(catalog, functions={"TIME"})  # doctest: +SKIP
        >>> report = validator.validate([MessageUsage.of("home", "welcome")])  # doctest: +SKIP
        >>> report.is_valid  # doctest: +SKIP
        False
    """

    __slots__ = (
        "_builder",
        "_catalog",
        "_consistency",
        "_functions",
        "_graph",
        "_lenient",
        "_required",
    )

    def __init__(
        self,
        catalog: ResourceCatalog,
        *,
        graph: LocaleGraph | None = None,
        builder: BundleBuilder | None = None,
        functions: Iterable[FunctionName] = (),
        lenient: Iterable[FindingKind] = (),
        consistency: bool = False,
    ) -> None:
        """Initialize validator.

        Args:
            catalog: Resources to validate against
            graph: Locale graph (default: the catalog's)
            builder: Bundle builder to share with a translator (default: a
                private one without custom functions)
            functions: Names of functions registered at runtime, in
                addition to the builder's builtin and custom functions
            lenient: Finding kinds downgraded to warnings
            consistency: Also require every named resource in every
                mandatory locale
        """
        self._catalog = catalog
        self._graph = graph if graph is not None else catalog.graph
        if builder is None:
            builder = BundleBuilder(catalog, use_isolating=False)
        self._builder = builder
        self._functions = frozenset(functions) | self._builder.function_names
        self._lenient = frozenset(lenient)
        self._consistency = consistency
        self._required: dict[tuple[LocaleId, str, str, str | None], RequiredArgs] = {}

    @property
    def known_functions(self) -> frozenset[FunctionName]:
        return self._functions

    def validate(self, usages: Iterable[MessageUsage], *, max_workers: int = 1) -> ValidationReport:
        """Validate usages and the catalog's function references.

        Args:
            usages: Call sites to check
            max_workers: Threads to partition usages across

        Raises:
            DuplicateMessageError: A resource defines an id twice (fatal)
        """
        usage_list: Sequence[MessageUsage] = list(usages)
        findings: list[Finding] = []
        if max_workers > 1 and len(usage_list) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                for usage_findings in executor.map(self.check_usage, usage_list):
                    findings.extend(usage_findings)
        else:
            for usage in usage_list:
                findings.extend(self.check_usage(usage))

        findings.extend(self.check_functions())
        if self._consistency:
            findings.extend(self.check_consistency())

        report = ValidationReport.of((self._apply_lenience(f) for f in findings), len(usage_list))
        logger.info(
            "Validated %d usages: %d errors, %d warnings",
            report.usage_count,
            report.error_count,
            report.warning_count,
        )
        return report

    def target_locales(self, usage: MessageUsage) -> tuple[frozenset[LocaleId], list[Finding]]:
        """Mandatory locales a usage must be checked in.

        Declared locales unknown to the graph produce UNKNOWN_LOCALE findings.
        """
        if usage.locales == ALL_LOCALES:
            return self._graph.mandatory_locales, []
        targets: set[LocaleId] = set()
        findings: list[Finding] = []
        for locale in usage.locales:
            if locale not in self._graph:
                findings.append(
                    Finding(
                        FindingKind.UNKNOWN_LOCALE,
                        Severity.ERROR,
                        f'locale "{locale}" used by "{usage}" is not a configured locale',
                        locale=locale,
                        resource=usage.resource,
                        message=usage.message,
                        attribute=usage.attribute,
                    )
                )
                continue
            targets.add(self._graph.terminal(locale))
        return frozenset(targets), findings

    def serving_locales(self, usage: MessageUsage) -> dict[LocaleId, FluentBundle]:
        """Locales whose definition of the usage's message is served at runtime.

        Each requested main locale (every main locale, or the declared ones)
        is walked along its chain to the first hop whose bundle has the
        message with the requested attribute or value. Main locales nothing
        serves are left to the terminal checks.
        """
        if usage.locales == ALL_LOCALES:
            requested = self._graph.main_locales
        else:
            requested = frozenset(locale for locale in usage.locales if locale in self._graph)
        served: dict[LocaleId, FluentBundle] = {}
        for locale in sorted(requested):
            for hop in self._graph.chain(locale):
                if not self._catalog.has_resource(hop, usage.resource):
                    continue
                bundle = self._builder.get_bundle(hop, usage.resource)
                message = bundle.get_message(usage.message)
                if message is not None and message_pattern(message, usage.attribute) is not None:
                    served[hop] = bundle
                    break
        return served

    def check_usage(self, usage: MessageUsage) -> list[Finding]:
        """Findings for one usage across its target and serving locales.

        Terminal locales get the full existence checks. Every locale that
        would serve the message at runtime also gets its arguments and
        references checked, so an override needing more arguments than the
        terminal's definition is reported against the overriding locale.
        """
        targets, findings = self.target_locales(usage)
        for locale in sorted(targets):
            findings.extend(self._check_in_locale(usage, locale))
        for hop, bundle in sorted(self.serving_locales(usage).items()):
            if hop not in targets:
                findings.extend(self._check_body(usage, hop, bundle))
        return findings

    def _check_in_locale(self, usage: MessageUsage, locale: LocaleId) -> list[Finding]:
        where = f'in resource "{usage.resource}" for locale "{locale}"'
        try:
            bundle = self._builder.get_bundle(locale, usage.resource)
        except ResourceNotFoundError:
            return [
                Finding(
                    FindingKind.MISSING_RESOURCE,
                    Severity.ERROR,
                    f'missing resource "{usage.resource}" for locale "{locale}"',
                    locale=locale,
                    resource=usage.resource,
                )
            ]

        message = bundle.get_message(usage.message)
        if message is None:
            return [
                Finding(
                    FindingKind.MISSING_MESSAGE,
                    Severity.ERROR,
                    f'missing message "{usage.message}" {where}',
                    locale=locale,
                    resource=usage.resource,
                    message=usage.message,
                )
            ]

        if message_pattern(message, usage.attribute) is None:
            if usage.attribute is not None:
                return [
                    Finding(
                        FindingKind.MISSING_ATTRIBUTE,
                        Severity.ERROR,
                        f'missing attribute "{usage.attribute}" for message "{usage.message}" '
                        f"{where}",
                        locale=locale,
                        resource=usage.resource,
                        message=usage.message,
                        attribute=usage.attribute,
                    )
                ]
            return [
                Finding(
                    FindingKind.MISSING_VALUE,
                    Severity.ERROR,
                    f'message "{usage.message}" has no value {where}',
                    locale=locale,
                    resource=usage.resource,
                    message=usage.message,
                )
            ]

        return self._check_body(usage, locale, bundle)

    def _check_body(
        self, usage: MessageUsage, locale: LocaleId, bundle: FluentBundle
    ) -> list[Finding]:
        """Reference and argument checks of a message known to exist in ``bundle``."""
        where = f'in resource "{usage.resource}" for locale "{locale}"'
        findings: list[Finding] = []

        terms = self._catalog.terms(locale, usage.resource)
        unresolved = unresolved_references(
            bundle.get_message, terms.get, usage.message, usage.attribute
        )
        if unresolved:
            noun = "reference" if len(unresolved) == 1 else "references"
            findings.append(
                Finding(
                    FindingKind.UNRESOLVED_REFERENCE,
                    Severity.ERROR,
                    f'unresolved {noun} {_quote_all(unresolved)} in message "{usage.key}" {where}',
                    locale=locale,
                    resource=usage.resource,
                    message=usage.message,
                    attribute=usage.attribute,
                    names=unresolved,
                )
            )

        if usage.incomplete:
            return findings

        memo_key = (locale, usage.resource, usage.message, usage.attribute)
        required = self._required.get(memo_key)
        if required is None:
            required = required_args(bundle.get_message, usage.message, usage.attribute)
            self._required[memo_key] = required

        missing = tuple(sorted(required.missing(usage.args)))
        if missing:
            noun = "argument" if len(missing) == 1 else "arguments"
            findings.append(
                Finding(
                    FindingKind.MISSING_ARGUMENT,
                    Severity.ERROR,
                    f'missing {noun} {_quote_all(missing)} for message "{usage.key}" {where}',
                    locale=locale,
                    resource=usage.resource,
                    message=usage.message,
                    attribute=usage.attribute,
                    names=missing,
                )
            )
        return findings

    def check_functions(self) -> list[Finding]:
        """Findings for functions referenced but not registered."""
        findings = []
        references = function_references(self._catalog.iter_resources())
        for name in sorted(references.keys() - self._functions):
            paths = ", ".join(sorted(str(path) for path in references[name]))
            findings.append(
                Finding(
                    FindingKind.UNKNOWN_FUNCTION,
                    Severity.ERROR,
                    f'unknown function "{name}" referenced in {paths}',
                    names=(name,),
                )
            )
        return findings

    def check_consistency(self) -> list[Finding]:
        """Findings for named resources absent from a mandatory locale."""
        findings = []
        mandatory = self._graph.mandatory_locales
        for name in sorted(self._catalog.resource_names()):
            for locale in sorted(mandatory - self._catalog.locales_with(name)):
                findings.append(
                    Finding(
                        FindingKind.INCONSISTENT_RESOURCE,
                        Severity.ERROR,
                        f'resource "{name}" is missing for mandatory locale "{locale}"',
                        locale=locale,
                        resource=name,
                    )
                )
        return findings

    def _apply_lenience(self, finding: Finding) -> Finding:
        if finding.kind in self._lenient and finding.severity is Severity.ERROR:
            return replace(finding, severity=Severity.WARNING)
        return finding


def validate(
    usages: Iterable[MessageUsage],
    catalog: ResourceCatalog,
    graph: LocaleGraph | None = None,
    *,
    functions: Iterable[FunctionName] = (),
    lenient: Iterable[FindingKind] = (),
    consistency: bool = False,
    builder: BundleBuilder | None = None,
    max_workers: int = 1,
) -> ValidationReport:
    """Validate usages against a catalog in one call.

    See Validator for the meaning of each option.
    """
    validator = Validator(
        catalog,
        graph=graph,
        builder=builder,
        functions=functions,
        lenient=lenient,
        consistency=consistency,
    )
    return validator.validate(usages, max_workers=max_workers)
