"""Metric descriptors, constant gauge samples and a registry with text exposition."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol


class Collector(Protocol):
    """Anything that can describe and collect metrics."""

    def describe(self) -> Iterable["Desc"]: ...

    def collect(self) -> Iterable["Metric"]: ...


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts with underscores; an empty name gives ''."""
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class Desc:
    """Describes one gauge metric family and its variable label names."""

    fq_name: str
    help: str
    variable_labels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "variable_labels", tuple(self.variable_labels))

    def metric(self, value: float, *args: str) -> "Metric":
        """Create a constant sample with the given label values."""
        if len(args) != len(self.variable_labels):
            raise ValueError(
                f"{self.fq_name}: expected {len(self.variable_labels)} label values, "
                f"got {len(args)}"
            )
        return Metric(self, float(value), tuple(args))


@dataclass(frozen=True)
class Metric:
    """A single gauge sample."""

    desc: Desc
    value: float
    label_values: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.desc.fq_name

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.desc.variable_labels, self.label_values))

    def _sort_key(self) -> tuple[str, ...]:
        return tuple(value for _, value in sorted(self.labels.items()))


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"

    sign = "-" if value < 0 else ""
    parts = Decimal(repr(abs(value))).as_tuple()
    point = len(parts.digits) + parts.exponent
    digits = "".join(map(str, parts.digits)).rstrip("0") or "0"
    count = len(digits)

    eprec = 6
    if eprec > count and count >= point:
        eprec = count
    exp = point - 1
    if exp < -4 or exp >= eprec:
        mantissa = digits[0] + ("." + digits[1:] if count > 1 else "")
        return f"{sign}{mantissa}e{'+' if exp >= 0 else '-'}{abs(exp):02d}"
    if point <= 0:
        return f"{sign}0.{'0' * -point}{digits}"
    if point >= count:
        return f"{sign}{digits}{'0' * (point - count)}"
    return f"{sign}{digits[:point]}.{digits[point:]}"


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


class Registry:
    """Holds collectors and gathers their samples into families."""

    def __init__(self) -> None:
        self._collectors: list[Collector] = []
        self._names: set[str] = set()

    def register(self, collector: Collector) -> None:
        """Add a collector; its descriptors must not clash with registered ones."""
        names = {desc.fq_name for desc in collector.describe()}
        clash = names & self._names
        if clash:
            raise ValueError(f"descriptor already registered: {', '.join(sorted(clash))}")
        self._collectors.append(collector)
        self._names |= names

    def gather(self) -> dict[str, list[Metric]]:
        """Collect every sample, grouped by name and sorted by name and labels."""
        families: dict[str, list[Metric]] = {}
        seen: set[tuple[str, tuple[tuple[str, str], ...]]] = set()
        for collector in self._collectors:
            for metric in collector.collect():
                key = (metric.name, tuple(sorted(metric.labels.items())))
                if key in seen:
                    raise ValueError(
                        f"collected metric {metric.name} {dict(key[1])} was collected "
                        "before with the same name and label values"
                    )
                seen.add(key)
                families.setdefault(metric.name, []).append(metric)
        return {
            name: sorted(families[name], key=Metric._sort_key) for name in sorted(families)
        }

    def render(self) -> str:
        """Render gathered samples in the Prometheus text exposition format."""
        lines: list[str] = []
        for name, metrics in self.gather().items():
            lines.append(f"# HELP {name} {_escape_help(metrics[0].desc.help)}")
            lines.append(f"# TYPE {name} gauge")
            for metric in metrics:
                labels = sorted(metric.labels.items())
                if labels:
                    body = ",".join(f'{key}="{_escape_label(val)}"' for key, val in labels)
                    lines.append(f"{name}{{{body}}} {_format_value(metric.value)}")
                else:
                    lines.append(f"{name} {_format_value(metric.value)}")
        return "".join(line + "\n" for line in lines)