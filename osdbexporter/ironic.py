"""Baremetal node metrics read from the Ironic database."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Protocol, Sequence

from osdbexporter.metrics import Desc, Metric, Registry, build_fq_name

NAMESPACE = "openstack"
SUBSYSTEM = "ironic"

MAX_LABEL_LENGTH = 128

BAREMETAL_UP = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "up"),
    "Whether the Ironic baremetal service is up",
)
NODE = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "node"),
    "Ironic node status",
    (
        "id", "name", "power_state", "provision_state", "resource_class",
        "maintenance", "console_enabled", "retired", "retired_reason",
    ),
)


def truncate_label(s: str) -> str:
    """Cut a label value down to the maximum label length."""
    return s[:MAX_LABEL_LENGTH]


@dataclass(frozen=True)
class NodeRow:
    """One node as returned by the node query; None stands for NULL."""

    uuid: str | None
    name: str | None = None
    power_state: str | None = None
    provision_state: str | None = None
    maintenance: bool | None = None
    resource_class: str | None = None
    console_enabled: bool | None = None
    retired: bool | None = None
    retired_reason: str = ""


class NodeQueries(Protocol):
    def get_node_metrics(self) -> Sequence[NodeRow]: ...


class NodesCollector:
    """Turns node rows into per-node status samples."""

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger(__name__)

    def describe(self) -> Iterator[Desc]:
        yield NODE

    def collect_from_rows(self, nodes: Iterable[NodeRow]) -> Iterator[Metric]:
        for node in nodes:
            if not node.uuid:
                self._logger.debug("skipping node with empty UUID")
                continue
            yield NODE.metric(
                1,
                node.uuid,
                node.name if node.name is not None else "",
                node.power_state if node.power_state is not None else "unknown",
                node.provision_state if node.provision_state is not None else "unknown",
                node.resource_class if node.resource_class is not None else "unknown",
                "true" if node.maintenance else "false",
                "true" if node.console_enabled else "false",
                "true" if node.retired else "false",
                truncate_label(node.retired_reason),
            )


class BaremetalCollector:
    """Queries nodes once per scrape and reports them with service health."""

    def __init__(self, queries: NodeQueries, logger: logging.Logger | None = None):
        self._queries = queries
        self._logger = logger or logging.getLogger(__name__)
        self._nodes = NodesCollector(self._logger)

    def describe(self) -> Iterator[Desc]:
        yield BAREMETAL_UP
        yield from self._nodes.describe()

    def collect(self) -> Iterator[Metric]:
        try:
            nodes = list(self._queries.get_node_metrics())
        except Exception:
            self._logger.exception("failed to query Ironic database")
            yield BAREMETAL_UP.metric(0)
            return

        yield from self._nodes.collect_from_rows(nodes)
        yield BAREMETAL_UP.metric(1)


def register_collectors(
    registry: Registry,
    queries: NodeQueries | None,
    logger: logging.Logger | None = None,
) -> None:
    """Register the baremetal collector when a database is configured."""
    logger = logger or logging.getLogger(__name__)
    if queries is None:
        logger.info("Collector not loaded: service=ironic reason=database URL not configured")
        return
    registry.register(BaremetalCollector(queries, logger))
    logger.info("Registered collectors: service=ironic")