# promstatic

Building blocks for Prometheus-style instrumentation in Python: a numeric value
metric that is exported as a counter or a gauge, metric vectors keyed by label
values, a collector registry that gathers everything into sorted metric
families, and *static metrics*: label trees declared once in a small text
definition and then reached through plain attribute access.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Descriptors

The package does not define a descriptor or options class of its own. The
objects it works with are duck-typed:

- `Value` and `MetricVec` take an object whose `describe()` returns a
  descriptor with `fq_name`, `help`, `variable_labels` and, for `Value`,
  `const_label_pairs` (a list of `LabelPair`);
- `Registry` needs descriptors that also carry an integer `id` (unique per
  name and constant labels) and an integer `dim_hash` (fixed per name, label
  names and help).

For example:

```python
from dataclasses import dataclass, field

from promstatic.value import LabelPair


@dataclass
class Desc:
    fq_name: str
    help: str
    variable_labels: list[str]
    const_label_pairs: list[LabelPair] = field(default_factory=list)
    id: int = 0
    dim_hash: int = 0


@dataclass
class Opts:
    name: str
    help: str
    labels: list[str]

    def describe(self) -> Desc:
        return Desc(
            self.name,
            self.help,
            list(self.labels),
            id=hash(self.name),
            dim_hash=hash((self.name, self.help, tuple(sorted(self.labels)))),
        )
```

## Values and the data model

`promstatic.value` holds the data model (`MetricFamily`, `Metric`, `LabelPair`,
`MetricType`) and `Value`, a thread-safe number with `get`, `set`, `inc`,
`inc_by`, `dec` and `dec_by`. `ValueType.COUNTER` or `ValueType.GAUGE` decides
how it is exported: `metric()` returns the current sample and `collect()` a
metric family holding it.

`make_label_pairs(desc, label_values)` pairs the variable label names with the
given values, adds the constant labels and sorts the result; a wrong number of
values raises `InconsistentCardinalityError`. All errors derive from
`MetricsError`.

## Metric vectors

`promstatic.vec.MetricVec` holds one child metric per combination of label
values. Children are made by a `MetricVecBuilder` subclass on first use:

```python
from promstatic.value import MetricType, Value, ValueType
from promstatic.vec import MetricVec, MetricVecBuilder


class CounterBuilder(MetricVecBuilder):
    def build(self, opts, label_values):
        return Value(opts, ValueType.COUNTER, 0.0, label_values)


requests = MetricVec(
    MetricType.COUNTER,
    CounterBuilder(),
    Opts("http_requests_total", "Number of HTTP requests.", ["method", "product"]),
)
requests.with_label_values(["post", "foo"]).inc()
requests.with_labels({"product": "bar", "method": "put"}).inc_by(4)
```

- `with_label_values` / `get_metric_with_label_values` take values in the order
  of the variable labels;
- `with_labels` / `get_metric_with` take a mapping from label name to value;
- `remove_label_values`, `remove` and `reset` delete children;
- `describe()` and `collect()` make a vector usable as a collector.

A wrong number of labels raises `InconsistentCardinalityError`; a missing label
name, or removing a child that does not exist, raises `MetricsError`.

## Registry

`promstatic.registry.Registry` registers collectors (anything with
`describe()` and `collect()`, see the `Collector` base class) and gathers their
metric families sorted by name, with the metrics of each family sorted by their
label values. Empty families are left out. An optional `prefix` is prepended to
every family name, and optional common `labels` are added to every metric:

```python
from promstatic.registry import Registry

registry = Registry(prefix="app", labels={"instance": "a"})
registry.register(requests)
families = registry.gather()
```

An empty prefix raises `MetricsError`. Registering a collector equal to one
already registered raises `AlreadyRegisteredError`; a descriptor whose name was
seen before with a different `dim_hash` raises `MetricsError`; unregistering a
collector that is not registered raises `MetricsError`. The module-level
`register`, `unregister`, `gather` and `default_registry` work on a shared
default registry.

## Static metrics

`promstatic.builder.make_static_metric` reads definitions of label enums and
metric structures and returns them by name, in order:

```python
from promstatic.builder import make_static_metric

defs = make_static_metric("""
    pub label_enum Methods {
        post,
        put,
    }

    pub struct HttpRequests: Counter {
        "method" => Methods,
        "product" => {
            foo,
            bar: "bar_name",
        },
    }
""")

tree = defs["HttpRequests"].from_vec(requests)
tree.post.foo.inc()
tree.get(defs["Methods"].put).bar.inc()
node = tree.try_get("post")          # None for an unknown label value
```

A label enum becomes an `enum.Enum` whose members print as their label value
(`get_str()` returns it too). A `StaticMetricType` creates every child named
by the definition with `from_vec(vec)` and returns a tree of `StaticNode`s.
Each value becomes an attribute; a value whose name clashes with a node method
(`get`, `try_get`, `flush`) is reached with item access, `tree["get"]`. The
order of label names in the vector does not matter. `get(member)` works only on
labels declared with a `label_enum`. For metric types whose name starts with
`Local`, each leaf is the vector child's `local()` and `flush()` flushes them
all; on other types `flush()` raises `TypeError`.

A label enum must be defined before a metric that uses it, and a `pub` metric
may only use `pub` enums; malformed or inconsistent definitions raise
`ParseError` (from `promstatic.parser`, whose `parse_static_metrics` returns the
parsed definitions). `register_static_vec(static_type, register, *args)` calls
`register(*args)` and builds the static tree from the vector it returns.

## Timer

`promstatic.timer` keeps a coarse millisecond clock that never goes backwards:
`now_millis()`, `recent_millis()`, `duration_to_millis(duration)` (a
`timedelta` or seconds, truncated; negative durations raise `ValueError`) and
`ensure_updater()`, which starts one background thread that refreshes the
clock every 200 ms.

## What the package does not do

- It has no ready-made counter, gauge or histogram classes, no descriptor
  validation and no local (thread-buffered) metrics; these are supplied by the
  caller as described above.
- It does not encode metrics in any exposition format and serves no HTTP
  endpoint; `Registry.gather()` returns Python objects only.
- There is no auto-flushing variant of static metrics: local metrics in a
  static tree are flushed only when `flush()` is called.