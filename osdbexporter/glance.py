"""Image metrics read from the Glance database."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, Protocol, Sequence

from osdbexporter.metrics import Desc, Metric, Registry, build_fq_name

NAMESPACE = "openstack"
SUBSYSTEM = "glance"

IMAGES_UP = Desc(build_fq_name(NAMESPACE, SUBSYSTEM, "up"), "up")
IMAGE_BYTES = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "image_bytes"),
    "image_bytes",
    ("id", "name", "tenant_id"),
)
IMAGE_CREATED_AT = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "image_created_at"),
    "image_created_at",
    ("id", "name", "tenant_id", "visibility", "hidden", "status"),
)
IMAGES = Desc(build_fq_name(NAMESPACE, SUBSYSTEM, "images"), "images")


@dataclass(frozen=True, kw_only=True)
class ImageRow:
    """One non-deleted image as returned by the image query."""

    id: str
    created_at: datetime
    name: str | None = None
    size: int | None = None
    status: str = ""
    owner: str | None = None
    visibility: str = ""
    disk_format: str | None = None
    container_format: str | None = None
    checksum: str | None = None
    updated_at: datetime | None = None
    min_disk: int = 0
    min_ram: int = 0
    protected: bool = False
    virtual_size: int | None = None
    os_hidden: bool = False
    os_hash_algo: str | None = None
    os_hash_value: str | None = None


class ImageQueries(Protocol):
    def get_all_images(self) -> Sequence[ImageRow]: ...


def _unix(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return math.floor(moment.timestamp())


class ImagesCollector:
    """Emits per-image size and creation time, the image count and service health."""

    def __init__(self, queries: ImageQueries, logger: logging.Logger | None = None):
        self._queries = queries
        self._logger = logger or logging.getLogger(__name__)

    def describe(self) -> Iterator[Desc]:
        yield IMAGES_UP
        yield IMAGE_BYTES
        yield IMAGE_CREATED_AT
        yield IMAGES

    def collect(self) -> Iterator[Metric]:
        try:
            images = list(self._queries.get_all_images())
        except Exception:
            self._logger.exception("failed to query images")
            yield IMAGES_UP.metric(0)
            return

        for image in images:
            name = image.name or ""
            owner = image.owner or ""
            size = float(image.size) if image.size is not None else 0.0
            yield IMAGE_BYTES.metric(size, image.id, name, owner)
            yield IMAGE_CREATED_AT.metric(
                _unix(image.created_at),
                image.id,
                name,
                owner,
                image.visibility,
                "true" if image.os_hidden else "false",
                image.status,
            )

        yield IMAGES.metric(len(images))
        yield IMAGES_UP.metric(1)


def register_collectors(
    registry: Registry,
    queries: ImageQueries | None,
    logger: logging.Logger | None = None,
) -> None:
    """Register the image collector when a database is configured."""
    logger = logger or logging.getLogger(__name__)
    if queries is None:
        logger.info("Collector not loaded: service=glance reason=database URL not configured")
        return
    registry.register(ImagesCollector(queries, logger))
    logger.info("Registered collectors: service=glance")