"""Parser for static metric definitions.

The input text holds label enums and metric structs, for example::

    pub label_enum Methods { post, get: "GET" }
    pub struct Requests: Counter {
        "method" => Methods,
        "product" => { foo, bar: "bar_name" },
    }
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Mapping, NamedTuple, Union


class ParseError(ValueError):
    """The definition text is malformed."""


@dataclass(frozen=True)
class ValueDef:
    """A label value: the attribute name and the label value string."""

    name: str
    value: str


@dataclass(frozen=True)
class EnumDef:
    visibility: str
    name: str
    definitions: tuple[ValueDef, ...]

    @property
    def is_public(self) -> bool:
        return self.visibility == "pub"

    def names(self) -> list[str]:
        return [d.name for d in self.definitions]

    def values(self) -> list[str]:
        return [d.value for d in self.definitions]


@dataclass(frozen=True)
class LabelDef:
    """A label key with either an inline value list or a reference to a label enum."""

    key: str
    values: tuple[ValueDef, ...] | None = None
    enum_ref: str | None = None

    def value_defs(self, enums: Mapping[str, EnumDef]) -> tuple[ValueDef, ...]:
        """Return the value list, looking it up in ``enums`` for enum references."""
        if self.values is not None:
            return self.values
        try:
            return enums[self.enum_ref].definitions
        except KeyError:
            raise ParseError(f"Label enum `{self.enum_ref}` is undefined.") from None

    def enum_name(self) -> str | None:
        return self.enum_ref


@dataclass(frozen=True)
class MetricDef:
    visibility: str
    name: str
    metric_type: str
    labels: tuple[LabelDef, ...]

    @property
    def is_public(self) -> bool:
        return self.visibility == "pub"


Item = Union[MetricDef, EnumDef]


@dataclass(frozen=True)
class MacroBody:
    items: tuple[Item, ...]


class _Token(NamedTuple):
    kind: str
    text: str
    pos: int


_TOKEN_RE = re.compile(
    r"""
    (?P<skip>\s+|//[^\n]*|/\*.*?\*/)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<punct>=>|[{}(),:])
  | (?P<error>.)
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPE_RE = re.compile(r"\\(u\{([0-9a-fA-F]{1,6})\}|.)", re.DOTALL)
_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "\\": "\\", '"': '"', "'": "'"}


def _unescape(body: str, pos: int) -> str:
    def replace(match: re.Match) -> str:
        if match.group(2) is not None:
            return chr(int(match.group(2), 16))
        char = match.group(1)
        if char not in _SIMPLE_ESCAPES:
            raise ParseError(f"unknown escape `\\{char}` in string at offset {pos}")
        return _SIMPLE_ESCAPES[char]

    return _ESCAPE_RE.sub(replace, body)


def _tokenize(text: str) -> Iterator[_Token]:
    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup
        pos = match.start()
        if kind == "skip":
            continue
        if kind == "error":
            if match.group() == '"':
                raise ParseError(f"unterminated string at offset {pos}")
            raise ParseError(f"unexpected character {match.group()!r} at offset {pos}")
        if kind == "string":
            yield _Token("string", _unescape(match.group()[1:-1], pos), pos)
        else:
            yield _Token(kind, match.group(), pos)


class _Parser:
    def __init__(self, text: str) -> None:
        self._tokens = list(_tokenize(text))
        self._index = 0
        self._end = len(text)

    def _peek(self, offset: int = 0) -> _Token | None:
        index = self._index + offset
        return self._tokens[index] if index < len(self._tokens) else None

    def _at(self, kind: str, text: str | None = None, offset: int = 0) -> bool:
        token = self._peek(offset)
        return token is not None and token.kind == kind and (text is None or token.text == text)

    def _expect(self, kind: str, text: str | None = None) -> _Token:
        token = self._peek()
        if token is None:
            wanted = f"`{text}`" if text else kind
            raise ParseError(f"expected {wanted}, found end of input")
        if token.kind != kind or (text is not None and token.text != text):
            wanted = f"`{text}`" if text else kind
            raise ParseError(f"expected {wanted}, found `{token.text}` at offset {token.pos}")
        self._index += 1
        return token

    def parse_body(self) -> MacroBody:
        items: list[Item] = []
        while self._peek() is not None:
            items.append(self._parse_item())
        return MacroBody(tuple(items))

    def _parse_item(self) -> Item:
        visibility = self._parse_visibility()
        if self._at("ident", "struct"):
            return self._parse_metric(visibility)
        return self._parse_enum(visibility)

    def _parse_visibility(self) -> str:
        if not self._at("ident", "pub"):
            return ""
        self._index += 1
        if not self._at("punct", "("):
            return "pub"
        self._index += 1
        inner: list[str] = []
        while not self._at("punct", ")"):
            inner.append(self._expect("ident").text)
        self._index += 1
        return f"pub({' '.join(inner)})"

    def _parse_enum(self, visibility: str) -> EnumDef:
        token = self._peek()
        if token is None or token.kind != "ident" or token.text != "label_enum":
            raise ParseError("Expected `label_enum`")
        self._index += 1
        name = self._expect("ident").text
        return EnumDef(visibility, name, self._parse_value_list())

    def _parse_metric(self, visibility: str) -> MetricDef:
        self._expect("ident", "struct")
        name = self._expect("ident").text
        self._expect("punct", ":")
        metric_type = self._expect("ident").text
        labels = tuple(self._parse_braced(self._parse_label))
        return MetricDef(visibility, name, metric_type, labels)

    def _parse_braced(self, parse_one) -> list:
        self._expect("punct", "{")
        entries = []
        while not self._at("punct", "}"):
            entries.append(parse_one())
            if self._at("punct", ","):
                self._index += 1
            elif not self._at("punct", "}"):
                token = self._peek()
                found = f"`{token.text}` at offset {token.pos}" if token else "end of input"
                raise ParseError(f"expected `,` or `}}`, found {found}")
        self._index += 1
        return entries

    def _parse_value_list(self) -> tuple[ValueDef, ...]:
        return tuple(self._parse_braced(self._parse_value_def))

    def _parse_value_def(self) -> ValueDef:
        name = self._expect("ident").text
        if self._at("punct", ":"):
            self._index += 1
            return ValueDef(name, self._expect("string").text)
        return ValueDef(name, name)

    def _parse_label(self) -> LabelDef:
        key = self._expect("string").text
        self._expect("punct", "=>")
        if self._at("punct", "{"):
            return LabelDef(key, values=self._parse_value_list())
        return LabelDef(key, enum_ref=self._expect("ident").text)


def parse_static_metrics(text: str) -> MacroBody:
    """Parse label enum and metric struct definitions."""
    return _Parser(text).parse_body()