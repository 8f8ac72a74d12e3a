"""Placeholder rewriting and parameter binding for the Data API.

The Data API takes named parameters written as ``:name`` in the SQL text.
Callers may write ``?`` (positional, DB-API qmark style) or ``$1``
(numeric style); both are rewritten outside of quoted literals.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from redshift_data_sql.models.statement import Argument

_QUOTES = frozenset({'"', "'"})


def rewrite_query(sql: str, param_count: int) -> str:
    """Rewrite ``?`` to ``:1, :2, ...`` and ``$`` to ``:`` outside quotes.

    ``param_count`` only short-circuits the scan when zero; the number of
    placeholders actually found is not checked against it. Unbalanced
    quotes are tolerated: everything after an unclosed quote is copied
    verbatim.
    """
    if param_count == 0:
        return sql

    out: list[str] = []
    stack: list[str] = []
    positional = 0
    for ch in sql:
        if stack:
            if ch == stack[-1]:
                stack.pop()
                out.append(ch)
                continue
        elif ch == "?":
            positional += 1
            out.append(f":{positional}")
            continue
        elif ch == "$":
            out.append(":")
            continue
        if ch in _QUOTES:
            stack.append(ch)
        out.append(ch)
    return "".join(out)


def arguments_from(params: Sequence[Any] | Mapping[str, Any] | None) -> list[Argument]:
    """Normalize caller parameters into ordered ``Argument``s.

    Sequences bind by position (ordinals start at 1); mappings bind by name.
    """
    if not params:
        return []
    if isinstance(params, Mapping):
        return [
            Argument(name=str(name), ordinal=i, value=value)
            for i, (name, value) in enumerate(params.items(), start=1)
        ]
    if isinstance(params, str | bytes):
        raise TypeError("params must be a sequence or mapping, not a string")
    return [Argument(ordinal=i, value=value) for i, value in enumerate(params, start=1)]


def bind_parameters(args: Sequence[Argument]) -> list[dict[str, str]] | None:
    """Build the Data API ``Parameters`` list, or None when there are no args."""
    if not args:
        return None
    return [{"name": arg.name or str(arg.ordinal), "value": str(arg.value)} for arg in args]
