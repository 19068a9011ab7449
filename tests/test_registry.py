import threading
from dataclasses import dataclass, field

import pytest

from promstatic.registry import (
    Collector,
    Registry,
    default_registry,
    gather,
    register,
    unregister,
)
from promstatic.value import (
    AlreadyRegisteredError,
    LabelPair,
    Metric,
    MetricFamily,
    MetricsError,
    MetricType,
    Value,
    ValueType,
)
from promstatic.vec import MetricVec, MetricVecBuilder


@dataclass
class Desc:
    fq_name: str
    help: str
    variable_labels: list = field(default_factory=list)
    const_label_pairs: list = field(default_factory=list)

    @property
    def id(self):
        return hash((self.fq_name, tuple(p.value for p in self.const_label_pairs))) & ((1 << 64) - 1)

    @property
    def dim_hash(self):
        names = tuple(p.name for p in self.const_label_pairs) + tuple(self.variable_labels)
        return hash((self.help, names)) & ((1 << 64) - 1)


@dataclass
class Opts:
    name: str
    help: str
    const_labels: dict = field(default_factory=dict)
    label_names: list = field(default_factory=list)

    def describe(self):
        pairs = sorted(LabelPair(k, v) for k, v in self.const_labels.items())
        return Desc(self.name, self.help, list(self.label_names), pairs)


class Counter(Collector):
    def __init__(self, name, help_text):
        self.value = Value(Opts(name, help_text), ValueType.COUNTER, 0.0, [])

    def inc(self):
        self.value.inc()

    def describe(self):
        return [self.value.desc]

    def collect(self):
        return [self.value.collect()]


class _CounterBuilder(MetricVecBuilder):
    def build(self, opts, label_values):
        return Value(opts, ValueType.COUNTER, 0.0, label_values)


def counter_vec(opts, label_names):
    opts.label_names = list(label_names)
    return MetricVec(MetricType.COUNTER, _CounterBuilder(), opts)


def test_registry():
    r = Registry()
    counter = Counter("test", "test help")
    r.register(counter)
    counter.inc()

    results = []
    thread = threading.Thread(target=lambda: results.append(len(r.gather())))
    thread.start()
    thread.join()
    assert results == [1]

    with pytest.raises(AlreadyRegisteredError):
        r.register(counter)
    r.unregister(counter)
    with pytest.raises(MetricsError):
        r.unregister(counter)
    r.register(counter)

    vec = counter_vec(Opts("test_vec", "test vec help"), ["a", "b"])
    r.register(vec)
    vec.with_label_values(["1", "2"]).inc()
    names = [mf.name for mf in r.gather()]
    assert names == ["test", "test_vec"]


def test_default_registry():
    counter = Counter("test_default_registry_counter", "test help")
    counter.inc()
    register(counter)
    try:
        assert len(gather()) != 0
        assert len(default_registry().gather()) != 0
        assert len(gather()) == len(default_registry().gather())
    finally:
        unregister(counter)
    with pytest.raises(MetricsError):
        unregister(counter)
    with pytest.raises(MetricsError):
        default_registry().unregister(counter)
    register(counter)
    try:
        assert "test_default_registry_counter" in [mf.name for mf in gather()]
    finally:
        unregister(counter)


def test_gather_order_by_name():
    r = Registry()
    a = Counter("test_a_counter", "test help")
    b = Counter("test_b_counter", "test help")
    two = Counter("test_2_counter", "test help")
    r.register(b)
    r.register(two)
    r.register(a)
    mfs = r.gather()
    assert [mf.name for mf in mfs] == ["test_2_counter", "test_a_counter", "test_b_counter"]


def test_gather_order_by_label_values():
    r = Registry()
    opts = Opts("test", "test help", const_labels={"a": "1", "b": "2"})
    vec = counter_vec(opts, ["cc", "c1", "a2", "c0"])
    r.register(vec)

    vec.with_labels({"cc": "12", "c1": "a1", "a2": "0", "c0": "hello"}).inc()
    m2 = {"cc": "12", "c1": "0", "a2": "0", "c0": "hello"}
    for _ in range(2):
        vec.with_labels(m2).inc()
    m3 = {"cc": "12", "c1": "0", "a2": "da", "c0": "hello"}
    for _ in range(3):
        vec.with_labels(m3).inc()
    m4 = {"cc": "12", "c1": "0", "a2": "da", "c0": "你好"}
    for _ in range(4):
        vec.with_labels(m4).inc()

    mfs = r.gather()
    assert len(mfs) == 1
    ms = mfs[0].metric
    assert len(ms) == 4
    assert [int(m.counter) for m in ms] == [2, 1, 3, 4]


def test_with_prefix_gather():
    with pytest.raises(MetricsError):
        Registry(prefix="")
    r = Registry(prefix="common_prefix")
    r.register(Counter("test_a_counter", "test help"))
    mfs = r.gather()
    assert len(mfs) == 1
    assert mfs[0].name == "common_prefix_test_a_counter"


def test_with_labels_gather():
    r = Registry(labels={"tkey": "tvalue"})
    r.register(Counter("test_a_counter", "test help"))
    vec = counter_vec(Opts("test_vec", "test vec help"), ["a", "b"])
    r.register(vec)
    vec.with_label_values(["one", "two"]).inc()
    vec.with_label_values(["three", "four"]).inc()

    mfs = r.gather()
    assert [mf.name for mf in mfs] == ["test_a_counter", "test_vec"]
    needle = LabelPair("tkey", "tvalue")
    for mf in mfs:
        assert mf.metric
        for m in mf.metric:
            assert needle in m.label


class MultipleCollector(Collector):
    def __init__(self, descs, counters):
        self.descs = descs
        self.counters = counters

    def describe(self):
        return list(self.descs)

    def collect(self):
        families = []
        for counter in self.counters:
            counter.inc()
            families.extend(counter.collect())
        return families


def test_register_multiplecollector():
    counters = [Counter("c1", "c1 is a counter"), Counter("c2", "c2 is a counter")]
    descs = [d for c in counters for d in c.describe()]
    r = Registry()
    r.register(MultipleCollector(descs, counters))
    assert [mf.name for mf in r.gather()] == ["c1", "c2"]


def test_duplicate_desc_within_collector():
    counter = Counter("dup", "help")
    descs = counter.describe() * 2
    r = Registry()
    with pytest.raises(MetricsError):
        r.register(MultipleCollector(descs, [counter]))


def test_inconsistent_dim_hash_rejected():
    r = Registry()
    r.register(Counter("same", "first help"))
    vec = counter_vec(Opts("same", "other help", const_labels={"x": "y"}), [])
    with pytest.raises(MetricsError) as info:
        r.register(vec)
    assert not isinstance(info.value, AlreadyRegisteredError)


def test_prune_empty_metric_family():
    vec = counter_vec(Opts("test_vec", "test vec help"), ["a", "b"])
    r = Registry()
    r.register(vec)
    assert r.gather() == []
    vec.with_label_values(["1", "2"]).inc()
    assert len(r.gather()) == 1


class _StaticCollector(Collector):
    def __init__(self, name, metrics):
        self.desc = Desc(name, "help")
        self.metrics = metrics

    def describe(self):
        return [self.desc]

    def collect(self):
        return [MetricFamily(name=self.desc.fq_name, help="help", metric=list(self.metrics))]


def test_equal_labels_sorted_by_timestamp_and_label_count():
    labels = [LabelPair("k", "v")]
    late = Metric(label=list(labels), counter=1.0, timestamp_ms=20)
    early = Metric(label=list(labels), counter=2.0, timestamp_ms=10)
    bare = Metric(label=[], counter=3.0)
    r = Registry()
    r.register(_StaticCollector("ts", [late, early, bare]))
    ms = r.gather()[0].metric
    assert ms == [bare, early, late]


def test_families_with_same_name_are_merged():
    first = _StaticCollector("merged", [Metric(label=[LabelPair("k", "b")], counter=1.0)])
    second = _StaticCollector("merged", [Metric(label=[LabelPair("k", "a")], counter=2.0)])
    second.desc = Desc("merged", "help", [], [LabelPair("c", "other")])
    second.desc.help = "help"
    r = Registry()
    r.register(first)
    with pytest.raises(MetricsError):
        r.register(second)
    second.desc = Desc("merged", "help", [], [])
    with pytest.raises(AlreadyRegisteredError):
        r.register(second)
    assert [m.counter for m in r.gather()[0].metric] == [1.0]
    r.unregister(first)
    assert r.gather() == []