"""Static metrics: nested label trees built from a metric vector.

A static metric pre-creates one child of a metric vector for every combination
of the label values named in its definition, so that hot paths reach a metric
through plain attribute access instead of a label lookup::

    types = make_static_metric('''
        pub label_enum Methods { post, get }
        pub struct Requests: Counter {
            "method" => Methods,
            "product" => { foo, bar: "bar_name" },
        }
    ''')
    requests = types["Requests"].from_vec(counter_vec)
    requests.post.foo.inc()
    requests.get(types["Methods"].post).bar.inc()

Children whose names clash with a node's own methods (``get``, ``try_get``,
``flush``) are reached with item access: ``requests["get"]``.
"""

from __future__ import annotations

import enum
from typing import Any, Callable, Iterator, Mapping

from promstatic.parser import EnumDef, MetricDef, ParseError, parse_static_metrics

_LOCAL_PREFIX = "Local"


def is_local_metric(metric_type: str) -> bool:
    """Return whether a metric type name denotes a thread-local metric."""
    return metric_type.startswith(_LOCAL_PREFIX)


def to_non_local_metric_type(metric_type: str) -> str:
    """Strip the ``Local`` prefix from a metric type name, if present."""
    if metric_type.startswith(_LOCAL_PREFIX):
        return metric_type[len(_LOCAL_PREFIX):]
    return metric_type


class _LabelEnum(enum.Enum):
    """Base of generated label enums; each member's value is ``(name, label)``."""

    def get_str(self) -> str:
        """Return the label value string of this member."""
        return self.value[1]

    def __str__(self) -> str:
        return self.value[1]

    def __repr__(self) -> str:
        return self.value[1]

    def __format__(self, spec: str) -> str:
        return format(self.value[1], spec)


def build_label_enum(definition: EnumDef) -> type[enum.Enum]:
    """Create an enum class for a label enum definition."""
    _check_unique(definition.names(), f"label enum `{definition.name}`")
    return _LabelEnum(
        definition.name,
        [(d.name, (d.name, d.value)) for d in definition.definitions],
        module=__name__,
    )


def _check_unique(names: list[str], where: str) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ParseError(f"duplicate name `{name}` in {where}")
        seen.add(name)


class StaticNode:
    """One level of a static metric: a child per value of one label."""

    def __init__(
        self,
        label_key: str,
        enum_type: type[enum.Enum] | None,
        children: Mapping[str, Any],
        by_value: Mapping[str, Any],
        local: bool,
    ) -> None:
        self._label_key = label_key
        self._enum_type = enum_type
        self._children = dict(children)
        self._by_value = dict(by_value)
        self._local = local

    @property
    def label_key(self) -> str:
        return self._label_key

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self.__dict__["_children"][name]
        except KeyError:
            raise AttributeError(name) from None

    def __getitem__(self, name: str) -> Any:
        return self._children[name]

    def __contains__(self, name: object) -> bool:
        return name in self._children

    def __iter__(self) -> Iterator[str]:
        return iter(self._children)

    def __len__(self) -> int:
        return len(self._children)

    def __dir__(self) -> list[str]:
        return sorted({*super().__dir__(), *self._children})

    def get(self, value: enum.Enum) -> Any:
        """Return the child for a member of the label's enum."""
        if self._enum_type is None:
            raise TypeError(f"label `{self._label_key}` is not defined by a label enum")
        if not isinstance(value, self._enum_type):
            raise TypeError(
                f"label `{self._label_key}` expects a member of {self._enum_type.__name__}"
            )
        return self._children[value.name]

    def try_get(self, value: str) -> Any | None:
        """Return the child for a label value string, or None if it is not defined."""
        return self._by_value.get(value)

    def flush(self) -> None:
        """Flush every local metric below this node."""
        if not self._local:
            raise TypeError("only static metrics over local metric types can be flushed")
        for child in self._children.values():
            child.flush()

    def __repr__(self) -> str:
        return f"StaticNode({self._label_key!r}: {', '.join(self._children)})"


class StaticMetricType:
    """A parsed static metric definition that builds label trees from vectors."""

    def __init__(
        self,
        definition: MetricDef,
        enums: Mapping[str, EnumDef],
        enum_types: Mapping[str, type[enum.Enum]],
    ) -> None:
        if not definition.labels:
            raise ParseError(f"metric `{definition.name}` defines no labels")
        for label in definition.labels:
            enum_name = label.enum_name()
            if enum_name is None:
                continue
            enum_def = enums.get(enum_name)
            if enum_def is None:
                raise ParseError(f"Label enum `{enum_name}` is undefined.")
            if definition.is_public and not enum_def.is_public:
                raise ParseError(
                    f"Label enum `{enum_name}` does not have enough visibility because it is "
                    f"used in metric `{definition.name}` which has `pub` visibility."
                )
        _check_unique([label.key for label in definition.labels], f"metric `{definition.name}`")
        for label in definition.labels:
            _check_unique(
                [d.name for d in label.value_defs(enums)],
                f"label `{label.key}` of metric `{definition.name}`",
            )
        self.definition = definition
        self._enums = dict(enums)
        self._enum_types = dict(enum_types)

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def metric_type(self) -> str:
        return self.definition.metric_type

    @property
    def vec_type(self) -> str:
        """Name of the (non-local) vector type this metric is built from."""
        return f"{to_non_local_metric_type(self.metric_type)}Vec"

    @property
    def is_local(self) -> bool:
        return is_local_metric(self.metric_type)

    def from_vec(self, vec: Any) -> StaticNode:
        """Create every child of ``vec`` named by this definition and return the tree."""
        return self._build(vec, 0, {})

    def _build(self, vec: Any, index: int, fixed: Mapping[str, str]) -> StaticNode:
        labels = self.definition.labels
        label = labels[index]
        is_last = index == len(labels) - 1
        value_defs = label.value_defs(self._enums)

        children: dict[str, Any] = {}
        by_value: dict[str, Any] = {}
        for value_def in value_defs:
            label_map = {**fixed, label.key: value_def.value}
            if is_last:
                child = vec.with_labels(label_map)
                if self.is_local:
                    child = child.local()
            else:
                child = self._build(vec, index + 1, label_map)
            children[value_def.name] = child
            by_value.setdefault(value_def.value, child)

        enum_name = label.enum_name()
        enum_type = self._enum_types[enum_name] if enum_name is not None else None
        return StaticNode(label.key, enum_type, children, by_value, self.is_local)

    def __call__(self, vec: Any) -> StaticNode:
        return self.from_vec(vec)

    def __repr__(self) -> str:
        return f"StaticMetricType({self.name}: {self.metric_type})"


def make_static_metric(text: str) -> dict[str, Any]:
    """Parse definitions and return label enums and metric types by name, in order.

    A label enum must be defined before a metric that refers to it.
    """
    body = parse_static_metrics(text)
    enums: dict[str, EnumDef] = {}
    enum_types: dict[str, type[enum.Enum]] = {}
    result: dict[str, Any] = {}
    for item in body.items:
        if item.name in result:
            raise ParseError(f"`{item.name}` is defined more than once")
        if isinstance(item, EnumDef):
            enum_type = build_label_enum(item)
            enums[item.name] = item
            enum_types[item.name] = enum_type
            result[item.name] = enum_type
        else:
            result[item.name] = StaticMetricType(item, enums, enum_types)
    return result


def register_static_vec(
    static_type: StaticMetricType, register: Callable[..., Any], *args: Any
) -> StaticNode:
    """Call ``register(*args)`` to create and register a vector, then build the static tree."""
    return static_type.from_vec(register(*args))