"""Stack status metrics read from the Heat database."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterator, Protocol, Sequence

from osdbexporter.metrics import Desc, Metric, Registry, build_fq_name

NAMESPACE = "openstack"
SUBSYSTEM = "heat"

KNOWN_STACK_STATUSES = tuple(
    f"{action}_{state}"
    for action in (
        "INIT", "CREATE", "DELETE", "UPDATE", "ROLLBACK", "SUSPEND",
        "RESUME", "ADOPT", "SNAPSHOT", "CHECK",
    )
    for state in ("IN_PROGRESS", "FAILED", "COMPLETE")
)

STACKS_UP = Desc(build_fq_name(NAMESPACE, SUBSYSTEM, "up"), "up")
STACK_STATUS_COUNTER = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "stack_status_counter"),
    "stack_status_counter",
    ("status",),
)


@dataclass(frozen=True)
class StackRow:
    """One stack as returned by the stack query."""

    id: str
    name: str
    status: str
    action: str
    tenant: str


class StackQueries(Protocol):
    def get_stack_metrics(self) -> Sequence[StackRow]: ...


class StacksCollector:
    """Counts stacks per known status and reports service health."""

    def __init__(self, queries: StackQueries, logger: logging.Logger | None = None):
        self._queries = queries
        self._logger = logger or logging.getLogger(__name__)

    def describe(self) -> Iterator[Desc]:
        yield STACKS_UP
        yield STACK_STATUS_COUNTER

    def collect(self) -> Iterator[Metric]:
        try:
            stacks = list(self._queries.get_stack_metrics())
        except Exception:
            self._logger.exception("failed to query stacks")
            yield STACKS_UP.metric(0)
            return

        counts = Counter(stack.status for stack in stacks)
        for status in KNOWN_STACK_STATUSES:
            yield STACK_STATUS_COUNTER.metric(counts[status], status)

        yield STACKS_UP.metric(1)


def register_collectors(
    registry: Registry,
    queries: StackQueries | None,
    logger: logging.Logger | None = None,
) -> None:
    """Register the stack collector when a database is configured."""
    logger = logger or logging.getLogger(__name__)
    if queries is None:
        logger.info("Collector not loaded: service=heat reason=database URL not configured")
        return
    registry.register(StacksCollector(queries, logger))
    logger.info("Registered collectors: service=heat")