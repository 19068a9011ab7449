"""Vectors of metrics that share a descriptor and differ in their label values."""

from __future__ import annotations

import abc
import threading
from typing import Any, Generic, Mapping, Sequence, TypeVar

from promstatic.value import (
    InconsistentCardinalityError,
    MetricFamily,
    MetricsError,
    MetricType,
)

M = TypeVar("M")


class MetricVecBuilder(abc.ABC, Generic[M]):
    """Creates the child metric of a vector for one combination of label values."""

    @abc.abstractmethod
    def build(self, opts: Any, label_values: Sequence[str]) -> M:
        """Build a metric from ``opts`` for the given label values."""


class MetricVec(Generic[M]):
    """A collector bundling metrics of the same name that differ in their label values.

    ``opts`` is any object whose ``describe()`` returns a descriptor with
    ``fq_name``, ``help`` and ``variable_labels``. Every child must provide
    ``metric()`` returning its current sample.
    """

    def __init__(self, metric_type: MetricType, builder: MetricVecBuilder[M], opts: Any) -> None:
        self.desc = opts.describe()
        self.metric_type = metric_type
        self.builder = builder
        self.opts = opts
        self._children: dict[tuple[str, ...], M] = {}
        self._lock = threading.RLock()

    def _key_from_values(self, values: Sequence[str]) -> tuple[str, ...]:
        expected = len(self.desc.variable_labels)
        if len(values) != expected:
            raise InconsistentCardinalityError(expected, len(values))
        return tuple(values)

    def _key_from_labels(self, labels: Mapping[str, str]) -> tuple[str, ...]:
        expected = len(self.desc.variable_labels)
        if len(labels) != expected:
            raise InconsistentCardinalityError(expected, len(labels))
        try:
            return tuple(labels[name] for name in self.desc.variable_labels)
        except KeyError as missing:
            raise MetricsError(f"label name {missing.args[0]} missing in label map") from None

    def _get_or_create(self, key: tuple[str, ...]) -> M:
        with self._lock:
            metric = self._children.get(key)
            if metric is None:
                metric = self.builder.build(self.opts, list(key))
                self._children[key] = metric
            return metric

    def get_metric_with_label_values(self, values: Sequence[str]) -> M:
        """Return the child for the label values, in the descriptor's label order, creating it if new."""
        return self._get_or_create(self._key_from_values(values))

    def get_metric_with(self, labels: Mapping[str, str]) -> M:
        """Return the child for a label-name to value mapping, creating it if new."""
        return self._get_or_create(self._key_from_labels(labels))

    def with_label_values(self, values: Sequence[str]) -> M:
        """Same as :meth:`get_metric_with_label_values`."""
        return self.get_metric_with_label_values(values)

    def with_labels(self, labels: Mapping[str, str]) -> M:
        """Same as :meth:`get_metric_with`."""
        return self.get_metric_with(labels)

    def remove_label_values(self, values: Sequence[str]) -> None:
        """Remove the child with these label values; raise if there is none."""
        key = self._key_from_values(values)
        with self._lock:
            if self._children.pop(key, None) is None:
                raise MetricsError(f"missing label values {list(values)!r}")

    def remove(self, labels: Mapping[str, str]) -> None:
        """Remove the child with these labels; raise if there is none."""
        key = self._key_from_labels(labels)
        with self._lock:
            if self._children.pop(key, None) is None:
                raise MetricsError(f"missing labels {dict(labels)!r}")

    def reset(self) -> None:
        """Delete all children."""
        with self._lock:
            self._children.clear()

    def describe(self) -> list[Any]:
        return [self.desc]

    def collect(self) -> list[MetricFamily]:
        with self._lock:
            children = list(self._children.values())
        family = MetricFamily(
            name=self.desc.fq_name,
            help=self.desc.help,
            type=self.metric_type,
            metric=[child.metric() for child in children],
        )
        return [family]

    def __repr__(self) -> str:
        return "MetricVec"