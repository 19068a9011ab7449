"""Registration of collectors and gathering of their metric families."""

from __future__ import annotations

import abc
import threading
from dataclasses import replace
from typing import Any, Mapping

from promstatic.value import (
    AlreadyRegisteredError,
    LabelPair,
    Metric,
    MetricFamily,
    MetricsError,
)

_U64_MASK = (1 << 64) - 1


class Collector(abc.ABC):
    """Something that describes and produces metric families.

    Each descriptor returned by :meth:`describe` must provide ``id``,
    ``dim_hash`` and ``fq_name``.
    """

    @abc.abstractmethod
    def describe(self) -> list[Any]:
        """Return the descriptors of the metrics this collector produces."""

    @abc.abstractmethod
    def collect(self) -> list[MetricFamily]:
        """Return the current metric families."""


def _metric_sort_key(metric: Metric) -> tuple:
    labels = metric.label
    # Inconsistent label counts sort by count first; equal label sets fall back
    # to the timestamp, a missing one counting as zero.
    return (len(labels), tuple(pair.value for pair in labels), metric.timestamp_ms or 0)


class Registry:
    """Registers collectors and gathers their metrics into sorted metric families."""

    def __init__(self, prefix: str | None = None, labels: Mapping[str, str] | None = None) -> None:
        if prefix is not None and not prefix:
            raise MetricsError("empty prefix namespace")
        self.prefix = prefix
        self.labels = dict(labels) if labels is not None else None
        self._collectors_by_id: dict[int, Any] = {}
        self._dim_hashes_by_name: dict[str, int] = {}
        self._desc_ids: set[int] = set()
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"Registry ({len(self._collectors_by_id)} collectors)"

    def register(self, collector: Any) -> None:
        """Register a collector.

        Raises :class:`AlreadyRegisteredError` if an equal collector or a
        descriptor with the same id is already registered, and
        :class:`MetricsError` if its descriptors are inconsistent.
        """
        with self._lock:
            desc_ids: set[int] = set()
            collector_id = 0
            for desc in collector.describe():
                if desc.id in self._desc_ids:
                    raise AlreadyRegisteredError()
                known_hash = self._dim_hashes_by_name.get(desc.fq_name)
                if known_hash is not None and known_hash != desc.dim_hash:
                    raise MetricsError(
                        "a previously registered descriptor with the same "
                        f"fully-qualified name as {desc!r} has different label "
                        "names or a different help string"
                    )
                self._dim_hashes_by_name[desc.fq_name] = desc.dim_hash
                if desc.id in desc_ids:
                    raise MetricsError(
                        "a duplicate descriptor within the same collector the "
                        f"same fully-qualified name: {desc.fq_name!r}"
                    )
                desc_ids.add(desc.id)
                collector_id = (collector_id + desc.id) & _U64_MASK

            if collector_id in self._collectors_by_id:
                raise AlreadyRegisteredError()
            self._desc_ids.update(desc_ids)
            self._collectors_by_id[collector_id] = collector

    def unregister(self, collector: Any) -> None:
        """Unregister the collector whose descriptors equal those of ``collector``."""
        with self._lock:
            descs = collector.describe()
            ids: list[int] = []
            collector_id = 0
            for desc in descs:
                if desc.id not in ids:
                    ids.append(desc.id)
                    collector_id = (collector_id + desc.id) & _U64_MASK
            if self._collectors_by_id.pop(collector_id, None) is None:
                raise MetricsError(f"collector {descs!r} is not registered")
            self._desc_ids.difference_update(ids)
            # Dimension hashes stay: they must remain consistent for the
            # lifetime of the program.

    def gather(self) -> list[MetricFamily]:
        """Collect from every collector and return families sorted by name."""
        with self._lock:
            collectors = list(self._collectors_by_id.values())

        by_name: dict[str, MetricFamily] = {}
        for collector in collectors:
            for family in collector.collect():
                if not family.metric:
                    continue
                existing = by_name.get(family.name)
                if existing is None:
                    by_name[family.name] = replace(family, metric=list(family.metric))
                else:
                    existing.metric.extend(family.metric)

        common = (
            [LabelPair(name, value) for name, value in self.labels.items()]
            if self.labels is not None
            else None
        )

        gathered: list[MetricFamily] = []
        for name in sorted(by_name):
            family = by_name[name]
            family.metric.sort(key=_metric_sort_key)
            if self.prefix is not None:
                family.name = f"{self.prefix}_{family.name}"
            if common is not None:
                family.metric = [
                    replace(metric, label=[*metric.label, *common]) for metric in family.metric
                ]
            gathered.append(family)
        return gathered


_DEFAULT_REGISTRY = Registry()


def default_registry() -> Registry:
    """Return the process-wide default registry."""
    return _DEFAULT_REGISTRY


def register(collector: Any) -> None:
    """Register a collector with the default registry."""
    _DEFAULT_REGISTRY.register(collector)


def unregister(collector: Any) -> None:
    """Unregister a collector from the default registry."""
    _DEFAULT_REGISTRY.unregister(collector)


def gather() -> list[MetricFamily]:
    """Gather all metric families of the default registry."""
    return _DEFAULT_REGISTRY.gather()