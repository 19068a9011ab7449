"""Metric data model and the simple value metric behind counters and gauges."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from typing import Any, Sequence


class MetricsError(Exception):
    """Base class for errors raised by this package."""


class AlreadyRegisteredError(MetricsError):
    """A collector with the same descriptors is already registered."""

    def __init__(self, message: str = "duplicate metrics collector registration attempted") -> None:
        super().__init__(message)


class InconsistentCardinalityError(MetricsError):
    """The number of label values does not match the number of label names."""

    def __init__(self, expect: int, got: int) -> None:
        super().__init__(
            f"inconsistent label cardinality, expect {expect} label values, but got {got}"
        )
        self.expect = expect
        self.got = got


class MetricType(enum.Enum):
    COUNTER = 0
    GAUGE = 1
    SUMMARY = 2
    UNTYPED = 3
    HISTOGRAM = 4


@dataclass(frozen=True, order=True)
class LabelPair:
    name: str
    value: str


@dataclass
class Metric:
    """One sample of a metric family, with its labels."""

    label: list[LabelPair] = field(default_factory=list)
    counter: float | None = None
    gauge: float | None = None
    histogram: Any = None
    timestamp_ms: int | None = None


@dataclass
class MetricFamily:
    name: str = ""
    help: str = ""
    type: MetricType = MetricType.COUNTER
    metric: list[Metric] = field(default_factory=list)


class ValueType(enum.Enum):
    COUNTER = "counter"
    GAUGE = "gauge"

    def metric_type(self) -> MetricType:
        """Return the metric family type for this value type."""
        return MetricType.COUNTER if self is ValueType.COUNTER else MetricType.GAUGE


def make_label_pairs(desc: Any, label_values: Sequence[str]) -> list[LabelPair]:
    """Combine a descriptor's variable labels with values, plus its constant labels, sorted."""
    variable_labels = list(desc.variable_labels)
    const_pairs = list(desc.const_label_pairs)
    if len(variable_labels) != len(label_values):
        raise InconsistentCardinalityError(len(variable_labels), len(label_values))
    if not variable_labels:
        return const_pairs
    pairs = [LabelPair(name, str(value)) for name, value in zip(variable_labels, label_values)]
    pairs.extend(const_pairs)
    pairs.sort()
    return pairs


class Value:
    """A single numeric metric, exported either as a counter or as a gauge.

    ``describer`` is any object whose ``describe()`` returns a descriptor with
    ``fq_name``, ``help``, ``variable_labels`` and ``const_label_pairs``.
    """

    def __init__(self, describer: Any, val_type: ValueType, val: float, label_values: Sequence[str]) -> None:
        self.desc = describer.describe()
        self.label_pairs = make_label_pairs(self.desc, label_values)
        self.val_type = val_type
        self._val = val
        self._lock = threading.Lock()

    def get(self) -> float:
        with self._lock:
            return self._val

    def set(self, val: float) -> None:
        with self._lock:
            self._val = val

    def inc_by(self, val: float) -> None:
        with self._lock:
            self._val += val

    def inc(self) -> None:
        self.inc_by(1)

    def dec(self) -> None:
        self.dec_by(1)

    def dec_by(self, val: float) -> None:
        with self._lock:
            self._val -= val

    def metric(self) -> Metric:
        """Return the current sample."""
        value = float(self.get())
        sample = Metric(label=list(self.label_pairs))
        if self.val_type is ValueType.COUNTER:
            sample.counter = value
        else:
            sample.gauge = value
        return sample

    def collect(self) -> MetricFamily:
        """Return a metric family holding the current sample."""
        return MetricFamily(
            name=self.desc.fq_name,
            help=self.desc.help,
            type=self.val_type.metric_type(),
            metric=[self.metric()],
        )