import re

from osdbexporter.heat import StackRow, StacksCollector, register_collectors
from osdbexporter.metrics import Registry

_COUNTER_LINE = re.compile(
    r'^openstack_heat_stack_status_counter\{status="([A-Z_]+)"\} (\S+)$'
)


class _Queries:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error

    def get_stack_metrics(self):
        if self.error:
            raise self.error
        return self.rows


def _render(collector):
    reg = Registry()
    reg.register(collector)
    return reg.render()


def _counters(text):
    """Status counter samples in the order they were rendered."""
    found = []
    for line in text.splitlines():
        match = _COUNTER_LINE.match(line)
        if match:
            found.append((match.group(1), float(match.group(2))))
    return found


def test_collection_with_stack_data():
    rows = [
        StackRow("stack-1", "my-stack", "CREATE_COMPLETE", "CREATE", "tenant-1"),
        StackRow("stack-2", "other-stack", "CREATE_COMPLETE", "CREATE", "tenant-2"),
        StackRow("stack-3", "failed-stack", "CREATE_FAILED", "CREATE", "tenant-1"),
    ]
    text = _render(StacksCollector(_Queries(rows)))
    counters = dict(_counters(text))

    assert len(counters) == 30
    assert counters["CREATE_COMPLETE"] == 2
    assert counters["CREATE_FAILED"] == 1
    assert sum(counters.values()) == 3
    assert text.endswith("openstack_heat_up 1\n")


def test_empty_results():
    text = _render(StacksCollector(_Queries([])))
    samples = _counters(text)

    assert len(samples) == 30
    assert all(value == 0 for _, value in samples)
    assert [status for status, _ in samples] == sorted(s for s, _ in samples)
    assert {"INIT_IN_PROGRESS", "CHECK_COMPLETE", "ADOPT_FAILED"} <= {
        s for s, _ in samples
    }
    assert "# HELP openstack_heat_stack_status_counter stack_status_counter\n" in text
    assert "# TYPE openstack_heat_stack_status_counter gauge\n" in text
    assert text.endswith(
        "# HELP openstack_heat_up up\n"
        "# TYPE openstack_heat_up gauge\n"
        "openstack_heat_up 1\n"
    )


def test_query_error():
    queries = _Queries(error=ConnectionError("connection is already closed"))
    assert _render(StacksCollector(queries)) == (
        "# HELP openstack_heat_up up\n"
        "# TYPE openstack_heat_up gauge\n"
        "openstack_heat_up 0\n"
    )


def test_unknown_status_ignored():
    rows = [
        StackRow("stack-1", "my-stack", "CREATE_COMPLETE", "CREATE", "tenant-1"),
        StackRow("stack-2", "odd-stack", "UNKNOWN_STATUS", "CREATE", "tenant-1"),
    ]
    counters = dict(_counters(_render(StacksCollector(_Queries(rows)))))

    assert len(counters) == 30
    assert "UNKNOWN_STATUS" not in counters
    assert counters["CREATE_COMPLETE"] == 1
    assert sum(counters.values()) == 1


def test_register_collectors():
    empty = Registry()
    register_collectors(empty, None, None)
    assert empty.gather() == {}

    reg = Registry()
    register_collectors(reg, _Queries([]), None)
    assert reg.gather()["openstack_heat_up"][0].value == 1.0