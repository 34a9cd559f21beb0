"""Span-tagging TOML parser.

Parses TOML into plain dicts and lists, except that every value written in
value position (``key = <value>``, array elements, inline-table entries) is
wrapped in a TaggedValue recording where it sits in the source text. This is
what lets toml_edit replace a single value without reformatting anything
else in the file.

Tables opened by a ``[header]`` are plain dicts and are never tagged; only
values have a span that can be replaced.

Offsets are indices into the ``str`` being parsed.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

import tomlkit
from tomlkit.exceptions import ParseError

_BARE_KEY = re.compile(r"[A-Za-z0-9_-]+")
# Anything up to a separator: numbers, booleans, dates, inf/nan.
_BARE_SCALAR = re.compile(r"[^\s,\]\}#]+")
_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
# RFC 3339 allows a space instead of "T" between date and time.
_SPACE_TIME = re.compile(r" \d{2}:\d{2}")
_SEPARATOR_TRAILER = " \t\r\n"


@dataclass(frozen=True)
class TaggedValue:
    """A parsed value plus its position in the source text.

    Attributes:
        value: The decoded value. Arrays and inline tables hold tagged
               children.
        start: Offset of the first character of the value.
        end: Offset just past the last character of the value.
        assign_start: Offset where the enclosing ``key = value`` clause
                      begins. For array elements this is the element start.
        prev_comma: Offset of the comma preceding this entry inside an array
                    or inline table, if there is one.
        next_comma_end: Offset just past the comma following this entry and
                        any whitespace after it, if there is one.
    """

    value: Any
    start: int
    end: int
    assign_start: int
    prev_comma: int | None = None
    next_comma_end: int | None = None


@dataclass
class SpanHooks:
    """Optional callbacks observing the parser cursor.

    Each callback receives the source offset at the moment the parser is
    about to read an assignment, about to read a value, or has found a list
    separator.
    """

    on_assignment: Callable[[int], None] | None = None
    on_value: Callable[[int], None] | None = None
    on_separator: Callable[[int], None] | None = None


@dataclass(frozen=True)
class _Clause:
    """Offsets recorded before a value is parsed, attached once it resolves."""

    assign_start: int
    prev_comma: int | None = None


class TomlSpanParser:
    """Recursive-descent TOML scanner that records value spans.

    The input is validated with tomlkit first, so malformed TOML raises
    tomlkit's ParseError unchanged and the scanner itself only ever walks
    valid documents. Scalars are decoded by tomlkit as well.

    Args:
        text: TOML source.
        tagged: Wrap values in TaggedValue. With tagged=False the result has
                the same shape as a plain parse.
        hooks: Cursor observers, see SpanHooks.
    """

    def __init__(
        self, text: str, *, tagged: bool = True, hooks: SpanHooks | None = None
    ) -> None:
        self._src = text
        self._pos = 0
        self._tagged = tagged
        self._hooks = hooks or SpanHooks()

    def parse(self) -> dict[str, Any]:
        tomlkit.parse(self._src)

        root: dict[str, Any] = {}
        table = root
        if self._src.startswith("\ufeff"):
            self._pos = 1
        while True:
            self._skip_trivia()
            if self._pos >= len(self._src):
                return root
            if self._peek() == "[":
                table = self._parse_header(root)
            else:
                self._parse_assignment(table, prev_comma=None)

    def _parse_header(self, root: dict[str, Any]) -> dict[str, Any]:
        is_array = self._src.startswith("[[", self._pos)
        self._pos += 2 if is_array else 1
        self._skip_ws()
        keys = self._parse_key()
        self._skip_ws()
        self._expect("]]" if is_array else "]")

        if not is_array:
            node = root
            for key in keys:
                node = self._descend(node, key)
            return node

        node = root
        for key in keys[:-1]:
            node = self._descend(node, key)
        tables = node.setdefault(keys[-1], [])
        new_table: dict[str, Any] = {}
        tables.append(new_table)
        return new_table

    def _parse_assignment(
        self, table: dict[str, Any], prev_comma: int | None
    ) -> tuple[dict[str, Any], str]:
        """Parse ``key = value`` into ``table``.

        Returns the dict and key the value was stored under, so a separator
        found afterwards can be recorded on it.
        """
        start = self._pos
        self._notify(self._hooks.on_assignment, start)
        keys = self._parse_key()
        self._skip_ws()
        self._expect("=")
        self._skip_ws()
        value = self._parse_value(_Clause(start, prev_comma))

        target = table
        for key in keys[:-1]:
            target = self._descend(target, key)
        target[keys[-1]] = value
        return target, keys[-1]

    def _parse_value(self, clause: _Clause) -> Any:
        start = self._pos
        self._notify(self._hooks.on_value, start)
        char = self._peek()
        if char == "[":
            value = self._parse_array()
        elif char == "{":
            value = self._parse_inline_table()
        else:
            value = self._parse_scalar()

        if not self._tagged:
            return value
        return TaggedValue(
            value=value,
            start=start,
            end=self._pos,
            assign_start=clause.assign_start,
            prev_comma=clause.prev_comma,
        )

    def _parse_array(self) -> list[Any]:
        self._pos += 1
        items: list[Any] = []
        prev_comma: int | None = None
        while True:
            self._skip_trivia()
            if self._peek() == "]":
                self._pos += 1
                return items
            items.append(self._parse_value(_Clause(self._pos, prev_comma)))
            self._skip_trivia()
            if self._peek() == ",":
                prev_comma = self._parse_separator()
                items[-1] = self._with_next_comma(items[-1])

    def _parse_inline_table(self) -> dict[str, Any]:
        self._pos += 1
        table: dict[str, Any] = {}
        prev_comma: int | None = None
        while True:
            self._skip_trivia()
            if self._peek() == "}":
                self._pos += 1
                return table
            target, key = self._parse_assignment(table, prev_comma)
            self._skip_trivia()
            if self._peek() == ",":
                prev_comma = self._parse_separator()
                target[key] = self._with_next_comma(target[key])

    def _parse_separator(self) -> int:
        comma = self._pos
        self._notify(self._hooks.on_separator, comma)
        self._pos += 1
        return comma

    def _with_next_comma(self, item: Any) -> Any:
        if not isinstance(item, TaggedValue):
            return item
        end = self._pos
        while end < len(self._src) and self._src[end] in _SEPARATOR_TRAILER:
            end += 1
        return replace(item, next_comma_end=end)

    def _parse_scalar(self) -> Any:
        src = self._src
        start = self._pos
        if src.startswith('"""', start):
            end = self._multiline_string_end(start, '"""')
        elif src.startswith("'''", start):
            end = self._multiline_string_end(start, "'''")
        elif src[start] == '"':
            end = self._basic_string_end(start)
        elif src[start] == "'":
            end = src.index("'", start + 1) + 1
        else:
            match = _BARE_SCALAR.match(src, start)
            if match is None:
                raise self._error("expected a value")
            end = match.end()
            if _DATE.fullmatch(match.group()) and _SPACE_TIME.match(src, end):
                end = _BARE_SCALAR.match(src, end + 1).end()
        self._pos = end
        return tomlkit.value(src[start:end]).unwrap()

    def _parse_key(self) -> list[str]:
        keys = [self._parse_simple_key()]
        while True:
            self._skip_ws()
            if self._peek() != ".":
                return keys
            self._pos += 1
            self._skip_ws()
            keys.append(self._parse_simple_key())

    def _parse_simple_key(self) -> str:
        start = self._pos
        char = self._peek()
        if char == '"':
            self._pos = self._basic_string_end(start)
            return tomlkit.value(self._src[start : self._pos]).unwrap()
        if char == "'":
            self._pos = self._src.index("'", start + 1) + 1
            return self._src[start + 1 : self._pos - 1]
        match = _BARE_KEY.match(self._src, start)
        if match is None:
            raise self._error("expected a key")
        self._pos = match.end()
        return match.group()

    def _basic_string_end(self, start: int) -> int:
        index = start + 1
        while True:
            char = self._src[index]
            if char == "\\":
                index += 2
            elif char == '"':
                return index + 1
            else:
                index += 1

    def _multiline_string_end(self, start: int, delimiter: str) -> int:
        escapes = delimiter == '"""'
        quote = delimiter[0]
        index = start + 3
        while True:
            if escapes and self._src[index] == "\\":
                index += 2
                continue
            if self._src.startswith(delimiter, index):
                # Up to two quotes may end the content right before the
                # closing delimiter, e.g. """a"""""
                end = index + 3
                while (
                    end < len(self._src)
                    and self._src[end] == quote
                    and end - index < 5
                ):
                    end += 1
                return end
            index += 1

    def _descend(self, node: dict[str, Any], key: str) -> dict[str, Any]:
        child = node.setdefault(key, {})
        if isinstance(child, list):
            child = child[-1]
        if isinstance(child, TaggedValue):
            child = child.value
        return child

    def _skip_ws(self) -> None:
        while self._peek() in (" ", "\t"):
            self._pos += 1

    def _skip_trivia(self) -> None:
        """Skip whitespace, newlines and comments."""
        while True:
            char = self._peek()
            if char in (" ", "\t", "\r", "\n"):
                self._pos += 1
            elif char == "#":
                newline = self._src.find("\n", self._pos)
                self._pos = len(self._src) if newline == -1 else newline
            else:
                return

    def _expect(self, token: str) -> None:
        if not self._src.startswith(token, self._pos):
            raise self._error(f"expected {token!r}")
        self._pos += len(token)

    def _peek(self) -> str:
        return self._src[self._pos] if self._pos < len(self._src) else ""

    def _notify(self, hook: Callable[[int], None] | None, offset: int) -> None:
        if hook is not None:
            hook(offset)

    def _error(self, message: str) -> ParseError:
        line = self._src.count("\n", 0, self._pos) + 1
        col = self._pos - self._src.rfind("\n", 0, self._pos)
        return ParseError(line, col, message)


def parse_tagged(text: str, hooks: SpanHooks | None = None) -> dict[str, Any]:
    """Parse TOML, tagging every value with its source span.

    Raises:
        tomlkit.exceptions.ParseError: If ``text`` is not valid TOML.
    """
    return TomlSpanParser(text, hooks=hooks).parse()


def untag(value: Any) -> Any:
    """Strip TaggedValue wrappers from a parsed tree, recursively."""
    if isinstance(value, TaggedValue):
        return untag(value.value)
    if isinstance(value, dict):
        return {key: untag(item) for key, item in value.items()}
    if isinstance(value, list):
        return [untag(item) for item in value]
    return value
