# osdbexporter

Gauge metrics for OpenStack services, built from rows read out of their
databases and rendered in the Prometheus text exposition format.

| Module                  | Metric prefix       | What is reported                                   |
|-------------------------|---------------------|----------------------------------------------------|
| `osdbexporter.cinder`   | `openstack_cinder`  | agents, quota limits and usage, snapshots, volumes |
| `osdbexporter.glance`   | `openstack_glance`  | images, their size and creation time               |
| `osdbexporter.heat`     | `openstack_heat`    | stack counts per known status                      |
| `osdbexporter.ironic`   | `openstack_ironic`  | bare-metal nodes and their states                  |

Each service also reports an `openstack_<service>_up` gauge (for Cinder it
comes from the volumes collector): `1` when the last query succeeded, `0`
when it failed.

## Installation

```
pip install osdbexporter
```

The package has no runtime dependencies.

## Usage

Each service module has a `register_collectors` function that takes a
`Registry` from `osdbexporter.metrics`, a query object for that service, and
an optional logger. The query object is anything with the methods the
collectors call, returning the row dataclasses of that module:

| Module   | Query methods                                                                                                   | Rows                                                                 |
|----------|-----------------------------------------------------------------------------------------------------------------|----------------------------------------------------------------------|
| `glance` | `get_all_images()`                                                                                              | `ImageRow`                                                           |
| `heat`   | `get_stack_metrics()`                                                                                           | `StackRow`                                                           |
| `ironic` | `get_node_metrics()`                                                                                            | `NodeRow`                                                            |
| `cinder` | `get_all_services()`, `get_project_quota_limits()`, `get_project_quota_usages()`, `get_volume_types()`, `get_snapshot_count()`, `get_all_volumes()` | `ServiceRow`, `QuotaLimitRow`, `QuotaUsageRow`, `VolumeTypeRow`, an `int`, `VolumeRow` |

```python
import logging

from osdbexporter import heat
from osdbexporter.heat import StackRow
from osdbexporter.metrics import Registry


class HeatQueries:
    def get_stack_metrics(self):
        return [
            StackRow(id="stack-1", name="web", status="CREATE_COMPLETE",
                     action="CREATE", tenant="proj-1"),
        ]


registry = Registry()
heat.register_collectors(registry, HeatQueries(), logging.getLogger("exporter"))
print(registry.render())
```

`Registry.gather()` returns the samples as a dict of metric name to a list of
`Metric`, sorted by name and label values; `Registry.render()` returns them as
exposition text. `Registry.register()` raises `ValueError` when a collector's
metric names clash with ones already registered, and `gather()` raises
`ValueError` when two samples share a name and label values.

When `None` is passed as the query object, the service's collectors are not
registered and it reports nothing. A registry with nothing registered renders
as empty text.

`cinder.register_collectors` also takes a project resolver with
`resolve(project_id)` and `all_projects()` methods, used for the `tenant`
label of the quota metrics; projects it knows of that have no quota rows are
reported with default limits. Without a resolver, the project ID is used as
the name.

A query that raises during collection is logged; the collector then emits its
`up` gauge as `0` where it has one and nothing else, and the other collectors
are not affected.

## What the package does not do

It does not connect to databases or run SQL: the query objects are supplied
by the caller. It has no HTTP server and no command line; serving the output
of `Registry.render()` is left to the application.

## Running the tests

```
pip install "osdbexporter[test]"
pytest
```