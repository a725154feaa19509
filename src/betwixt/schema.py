from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel

if TYPE_CHECKING:
    from betwixt.tangle import TangleReport


class IssueDTO(BaseModel):
    kind: str
    severity: str
    message: str
    destination: Optional[str] = None
    line: Optional[int] = None


class DestinationDTO(BaseModel):
    destination: str
    path: Optional[str] = None
    fragments: int
    body_fragments: int
    bytes_written: Optional[int] = None
    written: bool = False


class TangleReportDTO(BaseModel):
    destinations: List[DestinationDTO]
    issues: List[IssueDTO] = []
    unrouted: int = 0
    dry_run: bool = False
    ok: bool = True


def report_dto(report: TangleReport) -> TangleReportDTO:
    results = {result.destination: result for result in report.results}
    destinations: List[DestinationDTO] = []
    for plan in report.plan.destinations:
        result = results.get(plan.destination)
        destinations.append(
            DestinationDTO(
                destination=plan.destination,
                path=str(result.path) if result is not None else None,
                fragments=len(plan.operations),
                body_fragments=plan.body_count,
                bytes_written=result.bytes_written if result is not None else None,
                written=result is not None and result.ok,
            )
        )
    return TangleReportDTO(
        destinations=destinations,
        issues=[
            IssueDTO(
                kind=issue.kind.value,
                severity=issue.severity.value,
                message=issue.message,
                destination=issue.destination,
                line=issue.line,
            )
            for issue in report.issues
        ],
        unrouted=len(report.plan.unrouted),
        dry_run=report.dry_run,
        ok=report.ok,
    )
