"""Turn resolved fragments into ordered per-destination write operations.

Within a destination, fragments are stably partitioned into prefix, body and
postfix buckets, each bucket keeping document order. Every operation keeps its
own write mode: an overwrite operation discards whatever the destination held
before it, including earlier operations from the same run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from betwixt.directive import Role, WriteMode
from betwixt.scope import ResolvedFragment
from betwixt.traversal import DocumentPass
from betwixt.writer import apply_operations

logger = logging.getLogger(__name__)

ROLE_ORDER: dict[Role, int] = {Role.PREFIX: 0, Role.BODY: 1, Role.POSTFIX: 2}


@dataclass(frozen=True)
class WriteOperation:
    content: bytes
    mode: WriteMode
    role: Role
    fragment_index: int


@dataclass(frozen=True)
class DestinationPlan:
    destination: str
    operations: tuple[WriteOperation, ...]

    @property
    def body_count(self) -> int:
        return sum(1 for operation in self.operations if operation.role is Role.BODY)

    def final_bytes(self, existing: bytes = b"") -> bytes:
        return apply_operations(
            existing, [(operation.content, operation.mode) for operation in self.operations]
        )


@dataclass(frozen=True)
class TanglePlan:
    destinations: tuple[DestinationPlan, ...] = ()
    unrouted: tuple[ResolvedFragment, ...] = ()
    declared_destinations: tuple[str, ...] = field(default_factory=tuple)

    def plan_for(self, destination: str) -> DestinationPlan | None:
        for plan in self.destinations:
            if plan.destination == destination:
                return plan
        return None

    def writer_input(self) -> list[tuple[str, list[tuple[bytes, WriteMode]]]]:
        return [
            (
                plan.destination,
                [(operation.content, operation.mode) for operation in plan.operations],
            )
            for plan in self.destinations
        ]


def _keep(fragment: ResolvedFragment, tag_filter: str | None) -> bool:
    if fragment.config.ignore:
        return False
    if tag_filter:
        return fragment.config.tag == tag_filter
    return True


def assemble(
    fragments: Iterable[ResolvedFragment],
    *,
    tag_filter: str | None = None,
    declared_destinations: Iterable[str] = (),
) -> TanglePlan:
    groups: dict[str, list[ResolvedFragment]] = {}
    unrouted: list[ResolvedFragment] = []
    for fragment in fragments:
        if not _keep(fragment, tag_filter):
            continue
        destination = fragment.config.destination
        if destination is None:
            unrouted.append(fragment)
            continue
        groups.setdefault(destination, []).append(fragment)
    plans: list[DestinationPlan] = []
    for destination, group in groups.items():
        # Stable: each bucket keeps input order, which is document order per pass.
        ordered = sorted(group, key=lambda item: ROLE_ORDER[item.config.role])
        plans.append(
            DestinationPlan(
                destination=destination,
                operations=tuple(
                    WriteOperation(
                        content=fragment.payload,
                        mode=fragment.config.write_mode,
                        role=fragment.config.role,
                        fragment_index=fragment.index,
                    )
                    for fragment in ordered
                ),
            )
        )
        logger.debug("destination %s: %d fragment(s)", destination, len(ordered))
    return TanglePlan(
        destinations=tuple(plans),
        unrouted=tuple(unrouted),
        declared_destinations=tuple(declared_destinations),
    )


def assemble_pass(document_pass: DocumentPass, *, tag_filter: str | None = None) -> TanglePlan:
    """Assemble a pass together with every nested pass below it.

    Nested fragments are spliced in after the outer pass's fragments before
    the role partition, so outer prefixes and postfixes still bracket body
    content contributed by nested documents.
    """
    fragments: list[ResolvedFragment] = []
    declared: list[str] = []
    for inner in document_pass.walk():
        fragments.extend(inner.fragments)
        for destination in inner.declared_destinations:
            if destination not in declared:
                declared.append(destination)
    return assemble(fragments, tag_filter=tag_filter, declared_destinations=declared)
