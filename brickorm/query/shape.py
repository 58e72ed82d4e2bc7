"""Result-shape checks across query branches.

The shape of a branch is the list of output names of its top-level select
list.  Every branch of a conditional query must produce the same shape; when
the output type is a pydantic model the names must also be fields of that
model and cover its required fields.  A ``*`` in the select list makes the
shape opaque, so only the cross-branch comparison applies.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel

from brickorm.compile.columns import output_name
from brickorm.errors import BranchResultShapeMismatchError

STAR = "*"

_QUOTES = {'"': '"', "`": "`", "'": "'", "[": "]"}
_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_$]*")
_NOT_ALIASES = frozenset({"END", "NULL", "TRUE", "FALSE"})
_IDENT = r"""(?:"[^"]+"|`[^`]+`|[A-Za-z_][A-Za-z0-9_$]*)"""
_COLUMN = re.compile(rf"^(?:{_IDENT}\.)*({_IDENT})$")
_CALL = re.compile(r"^([A-Za-z_][A-Za-z0-9_$]*)\s*\(")


def _top_level_spans(sql: str) -> list[tuple[int, str]]:
    """Return ``(position, char)`` for characters outside quotes and parentheses."""
    spans = []
    depth = 0
    i = 0
    while i < len(sql):
        ch = sql[i]
        if ch in _QUOTES:
            end = sql.find(_QUOTES[ch], i + 1)
            i = len(sql) if end == -1 else end + 1
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif depth == 0:
            spans.append((i, ch))
        i += 1
    return spans


def _top_level_keywords(sql: str) -> list[tuple[int, int, str]]:
    """Return ``(start, end, WORD)`` for every top-level word."""
    visible = {pos for pos, _ in _top_level_spans(sql)}
    words = []
    for m in _WORD.finditer(sql):
        if m.start() in visible and (m.start() == 0 or not _is_ident_char(sql[m.start() - 1])):
            words.append((m.start(), m.end(), m.group().upper()))
    return words


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$."


def select_list(sql: str) -> str | None:
    """Return the text of the top-level select list, or ``None``."""
    words = _top_level_keywords(sql)
    for idx, (_, end, word) in enumerate(words):
        if word == "SELECT":
            start = end
            rest = words[idx + 1:]
            if rest and rest[0][2] in ("DISTINCT", "ALL") and not sql[end:rest[0][0]].strip():
                start = rest[0][1]
                rest = rest[1:]
            stop = next((s for s, _, w in rest if w == "FROM"), len(sql))
            return sql[start:stop]
    return None


def _split_items(text: str) -> list[str]:
    cuts = [pos for pos, ch in _top_level_spans(text) if ch == ","]
    items, prev = [], 0
    for cut in cuts:
        items.append(text[prev:cut])
        prev = cut + 1
    items.append(text[prev:])
    return [i.strip() for i in items if i.strip()]


def _unquote(ident: str) -> str:
    ident = ident.strip()
    if len(ident) >= 2 and ident[0] in _QUOTES and ident[-1] == _QUOTES[ident[0]]:
        return ident[1:-1]
    return ident


def item_name(item: str, dialect: str | None = None) -> str:
    """Return the output name of one select-list item.

    Aliased items and plain (possibly qualified) columns are named the same
    way by every backend.  Other expressions follow the backend: PostgreSQL
    names function calls after the function and casts after their operand,
    the other backends use the expression text.
    """
    if item == STAR or item.endswith(".*"):
        return STAR
    words = _top_level_keywords(item)
    as_words = [(s, e) for s, e, w in words if w == "AS"]
    if as_words:
        return output_name(_unquote(item[as_words[-1][1]:]))
    # Implicit alias: "expr alias"
    tail = re.search(r"""\s+("[^"]+"|`[^`]+`|[A-Za-z_][A-Za-z0-9_]*)$""", item)
    if (
        tail
        and tail.group(1).upper() not in _NOT_ALIASES
        and not re.search(r"[-+*/%=<>|.(]\s*$", item[: tail.start()])
    ):
        head_words = item[: tail.start()].strip()
        if head_words and not head_words.upper().endswith(("AND", "OR", "NOT", "IS")):
            return output_name(_unquote(tail.group(1)))
    return _expression_name(item, dialect)


def _expression_name(item: str, dialect: str | None) -> str:
    column = _COLUMN.match(item)
    if column:
        return output_name(_unquote(column.group(1)))
    if dialect != "postgres":
        return item
    cast = _top_level_cast(item)
    if cast is not None:
        return _expression_name(item[:cast].strip(), dialect)
    call = _CALL.match(item)
    if call and all(pos < call.end() - 1 for pos, _ in _top_level_spans(item)):
        if call.group(1).upper() == "CAST":
            inner = item[call.end():item.rindex(")")]
            as_words = [s for s, _, w in _top_level_keywords(inner) if w == "AS"]
            if as_words:
                return _expression_name(inner[:as_words[0]].strip(), dialect)
        return call.group(1).lower()
    if item[:4].upper() == "CASE" and not _is_ident_char(item[4:5] or " "):
        return "case"
    return "?column?"


def _top_level_cast(item: str) -> int | None:
    spans = _top_level_spans(item)
    for (pos, ch), (nxt, ch2) in zip(spans, spans[1:]):
        if ch == ":" and ch2 == ":" and nxt == pos + 1:
            return pos
    return None


def output_names(sql: str, dialect: str | None = None) -> tuple[str, ...] | None:
    """Return the ordered output names of ``sql``, or ``None`` if it has no select list."""
    text = select_list(sql)
    if text is None:
        return None
    return tuple(item_name(i, dialect) for i in _split_items(text))


def check_shapes(
    sqls: Sequence[str], output: Any, dialect: str | None = None
) -> tuple[str, ...] | None:
    """Verify every branch decodes into the same row shape.

    Args:
        sqls: Rendered SQL of every branch, in plan order.
        output: The row type.
        dialect: Backend name, for naming unaliased expressions.

    Returns:
        The common output names.

    Raises:
        BranchResultShapeMismatchError: On the first mismatch found.
    """
    shapes = [output_names(s, dialect) for s in sqls]
    first = shapes[0]
    for index, shape in enumerate(shapes[1:], start=1):
        if shape != first:
            raise BranchResultShapeMismatchError(
                f"branch {index} selects {list(shape or ())}, "
                f"branch 0 selects {list(first or ())}",
                details={"branch": index, "expected": first, "found": shape},
            )

    if first is None or STAR in first:
        return first
    if isinstance(output, type) and issubclass(output, BaseModel):
        _check_model(first, output)
    return first


def _check_model(names: tuple[str, ...], model: type[BaseModel]) -> None:
    accepted: dict[str, str] = {}
    for name, info in model.model_fields.items():
        accepted[name] = name
        if info.alias:
            accepted[info.alias] = name

    unknown = [n for n in names if n not in accepted]
    if unknown:
        raise BranchResultShapeMismatchError(
            f"{model.__name__} has no fields {unknown}",
            details={"unknown": unknown, "model": model.__name__},
        )
    selected = {accepted[n] for n in names if n in accepted}
    missing = [
        name for name, info in model.model_fields.items()
        if info.is_required() and name not in selected
    ]
    if missing:
        raise BranchResultShapeMismatchError(
            f"query does not select required fields {missing} of {model.__name__}",
            details={"missing": missing, "model": model.__name__},
        )
