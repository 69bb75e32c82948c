"""Volume, snapshot, quota and service metrics read from the Cinder database."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Mapping, Protocol, Sequence

from osdbexporter.metrics import Desc, Metric, Registry, build_fq_name

NAMESPACE = "openstack"
SUBSYSTEM = "cinder"

DEFAULT_GIGABYTES_QUOTA = 1000
DEFAULT_VOLUME_TYPE_QUOTA = -1

VOLUME_STATUSES = (
    "creating",
    "available",
    "reserved",
    "attaching",
    "detaching",
    "in-use",
    "maintenance",
    "deleting",
    "awaiting-transfer",
    "error",
    "error_deleting",
    "backing-up",
    "restoring-backup",
    "error_backing-up",
    "error_restoring",
    "error_extending",
    "downloading",
    "uploading",
    "retyping",
    "extending",
)


def _desc(name: str, labels: tuple[str, ...] = ()) -> Desc:
    return Desc(build_fq_name(NAMESPACE, SUBSYSTEM, name), name, labels)


AGENT_STATE = _desc(
    "agent_state",
    ("uuid", "hostname", "service", "adminState", "zone", "disabledReason"),
)

LIMITS_VOLUME_MAX_GB = _desc("limits_volume_max_gb", ("tenant", "tenant_id"))
LIMITS_VOLUME_USED_GB = _desc("limits_volume_used_gb", ("tenant", "tenant_id"))
LIMITS_BACKUP_MAX_GB = _desc("limits_backup_max_gb", ("tenant", "tenant_id"))
LIMITS_BACKUP_USED_GB = _desc("limits_backup_used_gb", ("tenant", "tenant_id"))
VOLUME_TYPE_QUOTA_GIGABYTES = _desc(
    "volume_type_quota_gigabytes", ("tenant", "tenant_id", "volume_type")
)

SNAPSHOTS = _desc("snapshots")

VOLUMES_UP = _desc("up")
VOLUME_GB = _desc(
    "volume_gb",
    (
        "id", "name", "status", "availability_zone", "bootable",
        "tenant_id", "user_id", "volume_type", "server_id",
    ),
)
VOLUME_STATUS = _desc(
    "volume_status",
    (
        "id", "name", "status", "bootable", "tenant_id",
        "size", "volume_type", "server_id",
    ),
)
VOLUME_STATUS_COUNTER = _desc("volume_status_counter", ("status",))
VOLUMES = _desc("volumes")


def status_to_value(status: str, statuses: Sequence[str]) -> int:
    """Position of a status in the list of known statuses, or -1 if unknown."""
    try:
        return list(statuses).index(status)
    except ValueError:
        return -1


@dataclass(frozen=True)
class ServiceRow:
    """One service (agent) row; None stands for NULL."""

    uuid: str | None
    host: str | None
    service: str | None
    admin_state: str
    zone: str | None
    disabled_reason: str | None
    state: int


@dataclass(frozen=True)
class VolumeRow:
    """One non-deleted volume with its type and attached server; None stands for NULL."""

    id: str
    name: str | None = None
    size: int | None = None
    status: str | None = None
    availability_zone: str | None = None
    bootable: bool | None = None
    project_id: str | None = None
    user_id: str | None = None
    volume_type: str | None = None
    server_id: str | None = None


@dataclass(frozen=True)
class QuotaLimitRow:
    """A hard limit from the quotas table."""

    project_id: str | None
    resource: str
    hard_limit: int | None


@dataclass(frozen=True)
class QuotaUsageRow:
    """An in-use amount from the quota_usages table."""

    project_id: str | None
    resource: str | None
    in_use: int


@dataclass(frozen=True)
class VolumeTypeRow:
    """A non-deleted volume type."""

    id: str
    name: str | None


class CinderQueries(Protocol):
    def get_all_services(self) -> Sequence[ServiceRow]: ...

    def get_project_quota_limits(self) -> Sequence[QuotaLimitRow]: ...

    def get_project_quota_usages(self) -> Sequence[QuotaUsageRow]: ...

    def get_volume_types(self) -> Sequence[VolumeTypeRow]: ...

    def get_snapshot_count(self) -> int: ...

    def get_all_volumes(self) -> Sequence[VolumeRow]: ...


class _NamedProject(Protocol):
    name: str


class ProjectResolver(Protocol):
    def resolve(self, project_id: str) -> str: ...

    def all_projects(self) -> Mapping[str, _NamedProject]: ...


class AgentsCollector:
    """Reports the state of every Cinder service."""

    def __init__(self, queries: CinderQueries, logger: logging.Logger | None = None):
        self._queries = queries
        self._logger = logger or logging.getLogger(__name__)

    def describe(self) -> Iterator[Desc]:
        yield AGENT_STATE

    def collect(self) -> Iterator[Metric]:
        try:
            services = list(self._queries.get_all_services())
        except Exception:
            self._logger.exception("failed to query services")
            return

        for service in services:
            yield AGENT_STATE.metric(
                service.state,
                service.uuid or "",
                service.host or "",
                service.service or "",
                service.admin_state,
                service.zone or "",
                service.disabled_reason or "",
            )


@dataclass
class _ProjectQuota:
    volume_max_gb: int = 0
    volume_used_gb: int = 0
    backup_max_gb: int = 0
    backup_used_gb: int = 0
    has_volume: bool = False
    has_backup: bool = False


class LimitsCollector:
    """Reports per-project volume and backup quotas with their usage."""

    def __init__(
        self,
        queries: CinderQueries,
        logger: logging.Logger | None = None,
        project_resolver: ProjectResolver | None = None,
    ):
        self._queries = queries
        self._logger = logger or logging.getLogger(__name__)
        self._resolver = project_resolver

    def describe(self) -> Iterator[Desc]:
        yield LIMITS_VOLUME_MAX_GB
        yield LIMITS_VOLUME_USED_GB
        yield LIMITS_BACKUP_MAX_GB
        yield LIMITS_BACKUP_USED_GB
        yield VOLUME_TYPE_QUOTA_GIGABYTES

    def _project_names(self, project_ids: Sequence[str]) -> dict[str, str]:
        if self._resolver is None:
            return {pid: pid for pid in project_ids}
        names = {pid: self._resolver.resolve(pid) for pid in project_ids}
        for pid, info in self._resolver.all_projects().items():
            names.setdefault(pid, info.name)
        return names

    def collect(self) -> Iterator[Metric]:
        try:
            limits = list(self._queries.get_project_quota_limits())
        except Exception:
            self._logger.exception("failed to query quota limits")
            return
        try:
            usages = list(self._queries.get_project_quota_usages())
        except Exception:
            self._logger.exception("failed to query quota usages")
            return
        try:
            volume_types = list(self._queries.get_volume_types())
        except Exception:
            self._logger.exception("failed to query volume types")
            return

        quotas: dict[str, _ProjectQuota] = {}
        per_resource: dict[tuple[str, str], int] = {}
        for limit in limits:
            pid = limit.project_id or ""
            hard_limit = limit.hard_limit or 0
            per_resource.setdefault((pid, limit.resource), hard_limit)
            quota = quotas.setdefault(pid, _ProjectQuota())
            if limit.resource == "gigabytes":
                quota.volume_max_gb = hard_limit
                quota.has_volume = True
            elif limit.resource == "backup_gigabytes":
                quota.backup_max_gb = hard_limit
                quota.has_backup = True

        for usage in usages:
            quota = quotas.setdefault(usage.project_id or "", _ProjectQuota())
            if usage.resource == "gigabytes":
                quota.volume_used_gb = usage.in_use
            elif usage.resource == "backup_gigabytes":
                quota.backup_used_gb = usage.in_use

        for project_id, project_name in self._project_names(list(quotas)).items():
            quota = quotas.get(project_id, _ProjectQuota())
            volume_max = quota.volume_max_gb if quota.has_volume else DEFAULT_GIGABYTES_QUOTA
            backup_max = quota.backup_max_gb if quota.has_backup else DEFAULT_GIGABYTES_QUOTA

            yield LIMITS_VOLUME_MAX_GB.metric(volume_max, project_name, project_id)
            yield LIMITS_VOLUME_USED_GB.metric(quota.volume_used_gb, project_name, project_id)
            yield LIMITS_BACKUP_MAX_GB.metric(backup_max, project_name, project_id)
            yield LIMITS_BACKUP_USED_GB.metric(quota.backup_used_gb, project_name, project_id)

            for volume_type in volume_types:
                type_name = volume_type.name or ""
                type_limit = per_resource.get(
                    (project_id, f"gigabytes_{type_name}"), DEFAULT_VOLUME_TYPE_QUOTA
                )
                yield VOLUME_TYPE_QUOTA_GIGABYTES.metric(
                    type_limit, project_name, project_id, type_name
                )


class SnapshotsCollector:
    """Reports the number of non-deleted snapshots."""

    def __init__(self, queries: CinderQueries, logger: logging.Logger | None = None):
        self._queries = queries
        self._logger = logger or logging.getLogger(__name__)

    def describe(self) -> Iterator[Desc]:
        yield SNAPSHOTS

    def collect(self) -> Iterator[Metric]:
        try:
            count = self._queries.get_snapshot_count()
        except Exception:
            self._logger.exception("failed to query snapshot count")
            return
        yield SNAPSHOTS.metric(count)


class VolumesCollector:
    """Reports every volume, counts per status, the total and service health."""

    def __init__(self, queries: CinderQueries, logger: logging.Logger | None = None):
        self._queries = queries
        self._logger = logger or logging.getLogger(__name__)

    def describe(self) -> Iterator[Desc]:
        yield VOLUMES
        yield VOLUME_GB
        yield VOLUME_STATUS
        yield VOLUME_STATUS_COUNTER
        yield VOLUMES_UP

    def collect(self) -> Iterator[Metric]:
        try:
            volumes = list(self._queries.get_all_volumes())
        except Exception:
            self._logger.exception("failed to query volumes")
            yield VOLUMES_UP.metric(0)
            return

        counts = dict.fromkeys(VOLUME_STATUSES, 0)
        for volume in volumes:
            status = volume.status or ""
            counts[status] = counts.get(status, 0) + 1
            size = volume.size or 0
            name = volume.name or ""
            bootable = "true" if volume.bootable else "false"
            project_id = volume.project_id or ""
            volume_type = volume.volume_type or ""
            server_id = volume.server_id or ""

            yield VOLUME_GB.metric(
                size,
                volume.id,
                name,
                status,
                volume.availability_zone or "",
                bootable,
                project_id,
                volume.user_id or "",
                volume_type,
                server_id,
            )
            yield VOLUME_STATUS.metric(
                status_to_value(status, VOLUME_STATUSES),
                volume.id,
                name,
                status,
                bootable,
                project_id,
                str(size),
                volume_type,
                server_id,
            )

        for status, count in counts.items():
            yield VOLUME_STATUS_COUNTER.metric(count, status)

        yield VOLUMES.metric(len(volumes))
        yield VOLUMES_UP.metric(1)


def register_collectors(
    registry: Registry,
    queries: CinderQueries | None,
    project_resolver: ProjectResolver | None = None,
    logger: logging.Logger | None = None,
) -> None:
    """Register all Cinder collectors when a database is configured."""
    logger = logger or logging.getLogger(__name__)
    if queries is None:
        logger.info("Collector not loaded: service=cinder reason=database URL not configured")
        return
    registry.register(AgentsCollector(queries, logger))
    registry.register(LimitsCollector(queries, logger, project_resolver))
    registry.register(SnapshotsCollector(queries, logger))
    registry.register(VolumesCollector(queries, logger))
    logger.info("Registered collectors: service=cinder")