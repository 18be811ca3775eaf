"""Transport-agnostic query description for the remote store.

A :class:`Query` records what the data access layer wants (table, filters,
ordering, embeds, write payload) without knowing how it is carried out.
:class:`~facdir.store.client.StoreClient` renders it into a PostgREST HTTP
request via :meth:`Query.to_request`; :class:`~facdir.store.memory.MemoryStore`
interprets the same fields against in-process tables.

Usage::

    rows = (
        store.table("faculty")
        .select("*, department:department_id(department_id, department_name)")
        .eq("department_id", 3)
        .order("name")
        .execute()
        .data
    )
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Protocol, Union

# Characters that force a value to be double-quoted inside ``or=(...)``.
_RESERVED = re.compile(r'[,.:()"\\\s]')


@dataclass(frozen=True)
class Filter:
    """A single ``column <operator> value`` condition."""

    column: str
    operator: str  # "eq", "ilike" or "is"
    value: Any


@dataclass(frozen=True)
class AnyOf:
    """Conditions joined with logical OR."""

    filters: tuple[Filter, ...]


@dataclass(frozen=True)
class Column:
    """A plain column in a select expression."""

    name: str
    alias: str


@dataclass(frozen=True)
class Embed:
    """A related table embedded in a select expression.

    ``relation`` is either a foreign-key column of the parent table
    (``department_id``) or a table name (``publications``).
    """

    relation: str
    alias: str
    fields: tuple[Union[Column, "Embed"], ...]


@dataclass
class StoreResponse:
    """Result of executing a :class:`Query`."""

    data: Any = None
    count: int | None = None
    status: int = 200


@dataclass
class Request:
    """A rendered HTTP request (path relative to the REST root)."""

    method: str
    path: str
    params: list[tuple[str, str]] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)
    json: Any = None


class Executor(Protocol):
    def execute(self, query: Query) -> StoreResponse: ...


class Query:
    """Fluent builder for one table-scoped store operation."""

    _METHODS = {
        "select": "GET",
        "insert": "POST",
        "upsert": "POST",
        "update": "PATCH",
        "delete": "DELETE",
    }

    def __init__(self, executor: Executor, table: str) -> None:
        self._executor = executor
        self.table = table
        self.action = "select"
        self.columns = "*"
        self.returning = False
        self.filters: list[Filter | AnyOf] = []
        self.ordering: list[tuple[str, bool]] = []
        self.payload: Any = None
        self.expect_single = False
        self.count: str | None = None
        self.head = False
        self.on_conflict: str | None = None
        self.ignore_duplicates = False

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def select(
        self, columns: str = "*", *, count: str | None = None, head: bool = False
    ) -> Query:
        """Read rows, or choose the columns a write returns."""
        self.columns = columns
        if self.action == "select":
            self.count = count
            self.head = head
        else:
            self.returning = True
        return self

    def insert(self, rows: dict[str, Any] | list[dict[str, Any]]) -> Query:
        self.action = "insert"
        self.payload = rows
        return self

    def update(self, patch: dict[str, Any]) -> Query:
        self.action = "update"
        self.payload = patch
        return self

    def delete(self) -> Query:
        self.action = "delete"
        return self

    def upsert(
        self,
        rows: list[dict[str, Any]],
        on_conflict: str,
        ignore_duplicates: bool = False,
    ) -> Query:
        self.action = "upsert"
        self.payload = rows
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    # ------------------------------------------------------------------
    # Modifiers
    # ------------------------------------------------------------------

    def eq(self, column: str, value: Any) -> Query:
        if value is None:
            self.filters.append(Filter(column, "is", None))
        else:
            self.filters.append(Filter(column, "eq", value))
        return self

    def ilike(self, column: str, pattern: str) -> Query:
        """Case-insensitive match; ``*`` and ``%`` are wildcards, ``\\`` escapes."""
        self.filters.append(Filter(column, "ilike", pattern))
        return self

    def or_ilike(self, columns: list[str] | tuple[str, ...], term: str) -> Query:
        """Case-insensitive substring match of *term* on any of *columns*.

        ``%``, ``_`` and ``\\`` in *term* match themselves.  PostgREST turns
        every ``*`` into ``%`` and has no escape for it, so a ``*`` in *term*
        still matches anything.
        """
        pattern = f"*{escape_like(term)}*"
        self.filters.append(
            AnyOf(tuple(Filter(c, "ilike", pattern) for c in columns))
        )
        return self

    def order(self, column: str, ascending: bool = True) -> Query:
        self.ordering.append((column, ascending))
        return self

    def single(self) -> Query:
        """Expect exactly one row; the response data becomes that row."""
        self.expect_single = True
        return self

    def execute(self) -> StoreResponse:
        return self._executor.execute(self)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    @property
    def is_write(self) -> bool:
        return self.action != "select"

    def to_request(self) -> Request:
        """Render this query in PostgREST conventions."""
        method = self._METHODS[self.action]
        if self.action == "select" and self.head:
            method = "HEAD"

        params: list[tuple[str, str]] = []
        headers: dict[str, str] = {}
        prefer: list[str] = []

        if not self.is_write or self.returning:
            params.append(("select", compact_select(self.columns)))

        for condition in self.filters:
            if isinstance(condition, AnyOf):
                inner = ",".join(
                    f"{f.column}.{f.operator}.{_format_value(f.value, quote=True)}"
                    for f in condition.filters
                )
                params.append(("or", f"({inner})"))
            else:
                params.append(
                    (
                        condition.column,
                        f"{condition.operator}.{_format_value(condition.value)}",
                    )
                )

        if self.ordering:
            params.append(
                (
                    "order",
                    ",".join(
                        f"{col}.{'asc' if asc else 'desc'}"
                        for col, asc in self.ordering
                    ),
                )
            )

        if self.action in ("insert", "upsert"):
            columns = payload_columns(self.payload)
            if columns:
                params.append(("columns", ",".join(columns)))

        if self.action == "upsert":
            params.append(("on_conflict", self.on_conflict or ""))
            prefer.append(
                "resolution=ignore-duplicates"
                if self.ignore_duplicates
                else "resolution=merge-duplicates"
            )

        if self.is_write:
            prefer.append("return=representation" if self.returning else "return=minimal")
        if self.count:
            prefer.append(f"count={self.count}")
        if prefer:
            headers["Prefer"] = ",".join(prefer)
        if self.expect_single:
            headers["Accept"] = "application/vnd.pgrst.object+json"

        payload = self.payload
        if self.action == "insert" and isinstance(payload, dict):
            payload = [payload]

        return Request(
            method=method,
            path=self.table,
            params=params,
            headers=headers,
            json=payload if self.action in ("insert", "upsert", "update") else None,
        )


def payload_columns(payload: Any) -> list[str] | None:
    """Union of keys for a batch whose rows do not all share the same keys.

    PostgREST rejects such a batch unless ``columns`` names every key; it
    then fills the keys a row lacks with ``null``.  ``None`` when the rows
    already agree.
    """
    if not isinstance(payload, list):
        return None
    key_sets = {frozenset(row) for row in payload}
    if len(key_sets) < 2:
        return None
    return sorted(frozenset().union(*key_sets))


def escape_like(text: str) -> str:
    """Escape LIKE metacharacters so *text* matches literally."""
    return re.sub(r"([\\%_])", r"\\\1", text)


def compact_select(columns: str) -> str:
    """Strip whitespace from a select expression."""
    return re.sub(r"\s+", "", columns or "*") or "*"


def _format_value(value: Any, quote: bool = False) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if quote and _RESERVED.search(text.replace("*", "")):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def parse_select(columns: str) -> tuple[Column | Embed, ...]:
    """Parse a PostgREST select expression into column and embed nodes.

    >>> parse_select("*, office:office_id(*)")
    (Column(name='*', alias='*'), Embed(relation='office_id', alias='office', fields=(Column(name='*', alias='*'),)))
    """
    text = compact_select(columns)
    fields, pos = _parse_fields(text, 0)
    if pos != len(text):
        raise ValueError(f"Unexpected {text[pos]!r} in select expression {columns!r}")
    return fields


def _parse_fields(text: str, pos: int) -> tuple[tuple[Column | Embed, ...], int]:
    fields: list[Column | Embed] = []
    while pos < len(text):
        start = pos
        while pos < len(text) and text[pos] not in ",()":
            pos += 1
        token = text[start:pos]
        if not token:
            raise ValueError(f"Empty field in select expression {text!r}")

        alias, _, name = token.rpartition(":")
        if pos < len(text) and text[pos] == "(":
            children, pos = _parse_fields(text, pos + 1)
            if pos >= len(text) or text[pos] != ")":
                raise ValueError(f"Unbalanced parentheses in select expression {text!r}")
            pos += 1
            # Drop join hints such as "department!inner".
            relation = name.split("!", 1)[0]
            fields.append(Embed(relation=relation, alias=alias or relation, fields=children))
        else:
            fields.append(Column(name=name, alias=alias or name))

        if pos < len(text) and text[pos] == ",":
            pos += 1
            continue
        break
    return tuple(fields), pos
