"""Format-preserving TOML edits.

Replaces or deletes a single value by splicing the original text at the span
recorded by the span-tagging parser. Everything outside that span, including
comments, blank lines and key order, is left byte-for-byte intact.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError

from .errors import CorruptionError, NotATaggedValueError, PathNotFoundError
from .toml_spans import TaggedValue, parse_tagged


def replace_toml_value(
    text: str, path: Sequence[str | int], new_value: Any | None
) -> str:
    """Replace the value at ``path``, or delete it when ``new_value`` is None.

    The value must already exist: there is no implicit table creation.
    New values are rendered the way tomlkit renders them, so strings end up
    double-quoted and properly escaped.

    When deleting, the whole ``key = value`` clause goes, together with the
    comma separating it from its neighbours inside an array or inline table.

    Args:
        text: Valid TOML source.
        path: Keys (and array indices) leading to the value, e.g.
              ["dependencies", "tokio", "version"].
        new_value: Replacement value, or None to delete.

    Returns:
        The edited TOML source.

    Raises:
        tomlkit.exceptions.ParseError: If ``text`` is not valid TOML.
        PathNotFoundError: If ``path`` doesn't lead to a value.
        NotATaggedValueError: If ``path`` leads to a [header] table.
        CorruptionError: If the edited text no longer parses.

    Example:
        replace_toml_value('a = { b = "1" } # note', ["a", "b"], "2")
        → 'a = { b = "2" } # note'
    """
    node = _lookup(parse_tagged(text), path)

    if new_value is not None:
        rendered = tomlkit.item(new_value).as_string()
        output = text[: node.start] + rendered + text[node.end :]
    elif node.prev_comma is not None:
        output = text[: node.prev_comma] + text[node.end :]
    elif node.next_comma_end is not None:
        # First entry of a sequence: take the following separator instead
        output = text[: node.assign_start] + text[node.next_comma_end :]
    else:
        output = text[: node.assign_start] + text[node.end :]

    try:
        tomlkit.parse(output)
    except TOMLKitError as e:
        raise CorruptionError(
            f"After replacing value, result is not valid TOML: {e}"
        ) from e
    return output


def _lookup(tree: dict[str, Any], path: Sequence[str | int]) -> TaggedValue:
    """Follow ``path`` down ``tree`` and return the tagged value at its end.

    Tagged values may be met at any depth (inline tables and arrays are
    tagged as a whole), so they are unwrapped before each step.
    """
    node: Any = tree
    for depth, key in enumerate(path):
        if isinstance(node, TaggedValue):
            node = node.value
        if isinstance(node, dict) and isinstance(key, str) and key in node:
            node = node[key]
        elif isinstance(node, list) and isinstance(key, int) and 0 <= key < len(node):
            node = node[key]
        else:
            raise PathNotFoundError(list(path[: depth + 1]))

    if not isinstance(node, TaggedValue):
        raise NotATaggedValueError(list(path))
    return node
