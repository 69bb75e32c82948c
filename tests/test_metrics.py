import pytest

from osdbexporter.metrics import Desc, Registry, build_fq_name


class _Static:
    def __init__(self, descs, metrics):
        self._descs = descs
        self._metrics = metrics

    def describe(self):
        return iter(self._descs)

    def collect(self):
        return iter(self._metrics)


def _render_value(value):
    desc = Desc("test_value", "value")
    reg = Registry()
    reg.register(_Static([desc], [desc.metric(value)]))
    return reg.render().splitlines()[-1].split(" ", 1)[1]


def test_empty_registry_gathers_nothing():
    reg = Registry()
    assert reg.gather() == {}
    assert reg.render() == ""


def test_build_fq_name():
    assert build_fq_name("openstack", "cinder", "up") == "openstack_cinder_up"
    assert build_fq_name("", "cinder", "up") == "cinder_up"
    assert build_fq_name("openstack", "cinder", "") == ""


@pytest.mark.parametrize(
    "value, expected",
    [
        (1000, "1000"),
        (99999, "99999"),
        (13167616, "1.3167616e+07"),
        (476704768, "4.76704768e+08"),
        (1672531200, "1.6725312e+09"),
        (-1, "-1"),
        (0, "0"),
        (0.5, "0.5"),
        (1e6, "1e+06"),
        (1e-05, "1e-05"),
        (float("inf"), "+Inf"),
        (float("nan"), "NaN"),
    ],
)
def test_value_formatting(value, expected):
    assert _render_value(value) == expected


def test_label_cardinality_mismatch():
    desc = Desc("x", "x", ("a", "b"))
    with pytest.raises(ValueError):
        desc.metric(1, "only-one")


def test_render_sorts_labels_and_escapes():
    desc = Desc("demo_metric", "demo help", ("zeta", "alpha"))
    reg = Registry()
    reg.register(
        _Static([desc], [desc.metric(2, "z2", 'b"q'), desc.metric(1, "z1", "a")])
    )
    assert reg.render() == (
        "# HELP demo_metric demo help\n"
        "# TYPE demo_metric gauge\n"
        'demo_metric{alpha="a",zeta="z1"} 1\n'
        'demo_metric{alpha="b\\"q",zeta="z2"} 2\n'
    )


def test_gather_groups_and_orders_families():
    first = Desc("b_metric", "b")
    second = Desc("a_metric", "a")
    reg = Registry()
    reg.register(_Static([first, second], [first.metric(1), second.metric(2)]))
    gathered = reg.gather()
    assert list(gathered) == ["a_metric", "b_metric"]
    assert gathered["a_metric"][0].value == 2.0


def test_duplicate_descriptor_rejected():
    desc = Desc("dup", "dup")
    reg = Registry()
    reg.register(_Static([desc], []))
    with pytest.raises(ValueError):
        reg.register(_Static([desc], []))


def test_duplicate_sample_rejected():
    desc = Desc("dup_sample", "dup", ("id",))
    reg = Registry()
    reg.register(_Static([desc], [desc.metric(1, "x"), desc.metric(2, "x")]))
    with pytest.raises(ValueError):
        reg.gather()