from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from betwixt.assembly import TanglePlan, assemble_pass
from betwixt.exceptions import (
    BetwixtError,
    DestinationOutsideRoot,
    DocumentReadError,
    EmptyDeclaredDestination,
    TangleFailed,
    UnresolvedDestination,
)
from betwixt.flavors.flavor_contract import DocumentFlavor
from betwixt.flavors.registry import resolve_flavor
from betwixt.traversal import DocumentPass, traverse
from betwixt.writer import DestinationResult, FileWriter, outside_root

logger = logging.getLogger(__name__)


class IssueKind(StrEnum):
    DIRECTIVE_SYNTAX = "directive_syntax"
    UNRESOLVED_DESTINATION = "unresolved_destination"
    EMPTY_DECLARED_DESTINATION = "empty_declared_destination"
    WRITE_FAILURE = "write_failure"
    OUTSIDE_OUTPUT_ROOT = "outside_output_root"


class Severity(StrEnum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class TangleIssue:
    kind: IssueKind
    severity: Severity
    message: str
    destination: str | None = None
    line: int | None = None
    error: BetwixtError | None = field(default=None, compare=False, repr=False)

    def describe(self) -> str:
        where = f" (line {self.line})" if self.line is not None else ""
        return f"{self.severity.value}: {self.kind.value}: {self.message}{where}"


@dataclass(frozen=True)
class TangleOptions:
    output_root: Path = Path(".")
    tag_filter: str | None = None
    strict: bool = False
    flavor_id: str | None = None
    lenient_directives: bool = False
    dry_run: bool = False


@dataclass
class TangleReport:
    document: DocumentPass
    plan: TanglePlan
    issues: list[TangleIssue] = field(default_factory=list)
    results: list[DestinationResult] = field(default_factory=list)
    dry_run: bool = False

    @property
    def errors(self) -> list[TangleIssue]:
        return [issue for issue in self.issues if issue.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[TangleIssue]:
        return [issue for issue in self.issues if issue.severity is Severity.WARNING]

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise TangleFailed(self.errors)


def directive_issues(document: DocumentPass) -> list[TangleIssue]:
    return [
        TangleIssue(
            kind=IssueKind.DIRECTIVE_SYNTAX,
            severity=Severity.WARNING,
            message=f"skipped malformed directive: {error.reason}",
            line=error.span.line,
            error=error,
        )
        for inner in document.walk()
        for error in inner.directive_errors
    ]


def routing_issues(
    plan: TanglePlan, *, strict: bool, output_root: Path | None = None
) -> list[TangleIssue]:
    severity = Severity.ERROR if strict else Severity.WARNING
    issues: list[TangleIssue] = []
    for fragment in plan.unrouted:
        unresolved = UnresolvedDestination(
            f"fragment #{fragment.index} has no destination",
            index=fragment.index,
            line=fragment.line,
        )
        issues.append(
            TangleIssue(
                kind=IssueKind.UNRESOLVED_DESTINATION,
                severity=severity,
                message=str(unresolved),
                line=unresolved.line,
                error=unresolved,
            )
        )
    for destination in plan.declared_destinations:
        destination_plan = plan.plan_for(destination)
        if destination_plan is None or destination_plan.body_count == 0:
            empty = EmptyDeclaredDestination(destination)
            issues.append(
                TangleIssue(
                    kind=IssueKind.EMPTY_DECLARED_DESTINATION,
                    severity=severity,
                    message=str(empty),
                    destination=destination,
                    error=empty,
                )
            )
    if output_root is not None:
        for destination_plan in plan.destinations:
            if not outside_root(output_root, destination_plan.destination):
                continue
            escaped = DestinationOutsideRoot(destination_plan.destination, output_root)
            issues.append(
                TangleIssue(
                    kind=IssueKind.OUTSIDE_OUTPUT_ROOT,
                    severity=severity,
                    message=str(escaped),
                    destination=destination_plan.destination,
                    error=escaped,
                )
            )
    return issues


def tangle_text(
    text: str,
    options: TangleOptions,
    *,
    flavor: DocumentFlavor | None = None,
    writer: FileWriter | None = None,
) -> TangleReport:
    """Run the whole pipeline over ``text``.

    Routing problems are collected rather than raised; when any of them is an
    error nothing is written. ``DirectiveSyntaxError`` propagates unless
    ``options.lenient_directives`` is set.
    """
    if flavor is None:
        flavor = resolve_flavor(flavor_id=options.flavor_id)
    document = traverse(text, flavor, lenient=options.lenient_directives)
    plan = assemble_pass(document, tag_filter=options.tag_filter)
    report = TangleReport(document=document, plan=plan, dry_run=options.dry_run)
    report.issues.extend(directive_issues(document))
    report.issues.extend(routing_issues(plan, strict=options.strict, output_root=options.output_root))
    if report.errors:
        logger.debug("not writing: %d error(s) collected", len(report.errors))
        return report
    if options.dry_run:
        return report
    writer = writer if writer is not None else FileWriter(options.output_root)
    report.results = writer.write(plan.writer_input())
    for result in report.results:
        if result.error is not None:
            report.issues.append(
                TangleIssue(
                    kind=IssueKind.WRITE_FAILURE,
                    severity=Severity.ERROR,
                    message=str(result.error),
                    destination=result.destination,
                    error=result.error,
                )
            )
    return report


def read_document(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DocumentReadError(path, exc) from exc


def tangle_file(
    path: Path,
    options: TangleOptions,
    *,
    writer: FileWriter | None = None,
) -> TangleReport:
    flavor = resolve_flavor(path=path, flavor_id=options.flavor_id)
    text = read_document(path)
    return tangle_text(text, options, flavor=flavor, writer=writer)
