"""In-process store that honors the same query contract as :class:`StoreClient`.

Rows live in plain dicts keyed by table name.  The store assigns primary
keys, enforces unique and foreign-key constraints, resolves embeds, and
reports failures with the same PostgREST codes the hosted store uses, so
the data access layer can run against it unchanged.
"""

from __future__ import annotations

import copy
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from facdir.errors import DirectoryError, error_from_body
from facdir.store.query import (
    AnyOf,
    Column,
    Embed,
    Filter,
    Query,
    StoreResponse,
    parse_select,
    payload_columns,
)
from facdir.store.schema import DIRECTORY_SCHEMA, TableSchema

RpcFunction = Callable[["MemoryStore", dict[str, Any]], Any]


def _fail(code: str, message: str, status: int = 400, details: str | None = None) -> DirectoryError:
    return error_from_body(
        {"code": code, "message": message, "details": details}, status=status
    )


class MemoryStore:
    """Thread-safe in-memory tables behind the :class:`Query` interface.

    Usage::

        store = MemoryStore()
        store.seed("departments", [{"department_name": "Physics"}])
        directory = Directory(store)

    Primary keys are serial integers, or UUID strings with ``uuid_keys=True``
    as in the generated Supabase schema.
    """

    def __init__(
        self,
        schema: dict[str, TableSchema] | None = None,
        functions: dict[str, RpcFunction] | None = None,
        uuid_keys: bool = False,
    ) -> None:
        self.schema = dict(schema or DIRECTORY_SCHEMA)
        self.functions: dict[str, RpcFunction] = dict(functions or {})
        self.uuid_keys = uuid_keys
        self._tables: dict[str, list[dict[str, Any]]] = {name: [] for name in self.schema}
        self._next_id: dict[str, int] = {name: 1 for name in self.schema}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def table(self, name: str) -> Query:
        return Query(self, name)

    def seed(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert *rows* directly and return them with generated keys."""
        return self.table(table).insert(rows).select().execute().data

    def rows(self, table: str) -> list[dict[str, Any]]:
        """Return a copy of every stored row of *table*."""
        with self._lock:
            return copy.deepcopy(self._tables[self._schema_for(table).name])

    def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        handler = self.functions.get(function)
        if handler is None:
            raise _fail(
                "PGRST202",
                f"Could not find the function public.{function} in the schema cache",
                status=404,
            )
        with self._lock:
            return handler(self, params or {})

    def execute(self, query: Query) -> StoreResponse:
        with self._lock:
            schema = self._schema_for(query.table)
            handlers = {
                "select": self._select,
                "insert": self._insert,
                "update": self._update,
                "delete": self._delete,
                "upsert": self._upsert,
            }
            rows, status = handlers[query.action](schema, query)
            rows = self._ordered(rows, query.ordering)

            count = len(rows) if query.count else None
            data: Any = None
            if not query.head and (not query.is_write or query.returning):
                fields = parse_select(query.columns)
                data = [self._project(schema, row, fields) for row in rows]

            if query.expect_single:
                if len(rows) != 1:
                    raise _fail(
                        "PGRST116",
                        "Cannot coerce the result to a single JSON object",
                        status=406,
                        details=f"The result contains {len(rows)} rows",
                    )
                data = data[0] if data else None

            return StoreResponse(data=data, count=count, status=status)

    def close(self) -> None:
        """Nothing to release; present for parity with :class:`StoreClient`."""

    # ------------------------------------------------------------------
    # Actions (caller holds the lock)
    # ------------------------------------------------------------------

    def _select(self, schema: TableSchema, query: Query) -> tuple[list[dict], int]:
        return self._matching(schema, query), 200

    def _insert(self, schema: TableSchema, query: Query) -> tuple[list[dict], int]:
        rows = _batch_rows(query.payload)
        staged = list(self._tables[schema.name])
        next_id = self._next_id[schema.name]
        inserted = []
        for row in rows:
            new_row, next_id = self._new_row(schema, row, staged, next_id)
            staged.append(new_row)
            inserted.append(new_row)
        self._tables[schema.name] = staged
        self._next_id[schema.name] = next_id
        return inserted, 201

    def _update(self, schema: TableSchema, query: Query) -> tuple[list[dict], int]:
        patch = dict(query.payload or {})
        self._check_columns(schema, patch)
        patch.pop(schema.primary_key, None)
        targets = {id(row) for row in self._matching_raw(schema, query)}

        staged = []
        updated = []
        for row in self._tables[schema.name]:
            if id(row) in targets:
                row = {**row, **patch}
                if schema.updated_column:
                    row[schema.updated_column] = _now_iso()
                updated.append(row)
            staged.append(row)
        for row in updated:
            self._check_unique(schema, row, staged)
            self._check_references(schema, row)
        self._tables[schema.name] = staged
        return copy.deepcopy(updated), 200

    def _delete(self, schema: TableSchema, query: Query) -> tuple[list[dict], int]:
        targets = self._matching_raw(schema, query)
        doomed = {id(row) for row in targets}
        self._tables[schema.name] = [
            row for row in self._tables[schema.name] if id(row) not in doomed
        ]
        for row in targets:
            self._release_references(schema.name, row[schema.primary_key])
        return copy.deepcopy(targets), 200 if query.returning else 204

    def _upsert(self, schema: TableSchema, query: Query) -> tuple[list[dict], int]:
        key = query.on_conflict or schema.primary_key
        if key != schema.primary_key and key not in schema.unique:
            raise _fail(
                "42P10",
                "there is no unique or exclusion constraint matching the ON CONFLICT specification",
            )
        rows = _batch_rows(query.payload)
        seen = set()
        for row in rows:
            value = row.get(key)
            if value is not None and value in seen:
                raise _fail(
                    "21000",
                    "ON CONFLICT DO UPDATE command cannot affect row a second time",
                )
            seen.add(value)

        staged = list(self._tables[schema.name])
        next_id = self._next_id[schema.name]
        affected = []
        for row in rows:
            existing = next(
                (
                    i for i, current in enumerate(staged)
                    if row.get(key) is not None and current.get(key) == row.get(key)
                ),
                None,
            )
            if existing is None:
                new_row, next_id = self._new_row(schema, row, staged, next_id)
                staged.append(new_row)
                affected.append(new_row)
            elif not query.ignore_duplicates:
                self._check_columns(schema, row)
                merged = {**staged[existing], **row}
                merged[schema.primary_key] = staged[existing][schema.primary_key]
                if schema.updated_column:
                    merged[schema.updated_column] = _now_iso()
                self._check_references(schema, merged)
                staged[existing] = merged
                affected.append(merged)
        for row in affected:
            self._check_unique(schema, row, staged)
        self._tables[schema.name] = staged
        self._next_id[schema.name] = next_id
        return copy.deepcopy(affected), 201

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------

    def _schema_for(self, table: str) -> TableSchema:
        schema = self.schema.get(table)
        if schema is None:
            raise _fail(
                "42P01", f'relation "public.{table}" does not exist', status=404
            )
        return schema

    def _new_row(
        self,
        schema: TableSchema,
        row: dict[str, Any],
        staged: list[dict[str, Any]],
        next_id: int,
    ) -> tuple[dict[str, Any], int]:
        self._check_columns(schema, row)
        new_row: dict[str, Any] = {column: None for column in schema.columns}
        new_row.update(copy.deepcopy(row))

        pk = schema.primary_key
        if new_row.get(pk) is None:
            new_row[pk] = str(uuid.uuid4()) if self.uuid_keys else next_id
        if isinstance(new_row[pk], int):
            next_id = max(next_id, new_row[pk] + 1)
        if schema.created_column and new_row.get(schema.created_column) is None:
            new_row[schema.created_column] = _now_iso()

        self._check_unique(schema, new_row, staged + [new_row])
        self._check_references(schema, new_row)
        return new_row, next_id

    def _check_columns(self, schema: TableSchema, row: dict[str, Any]) -> None:
        for column in row:
            if column not in schema.columns:
                raise _fail(
                    "PGRST204",
                    f"Could not find the '{column}' column of '{schema.name}' in the schema cache",
                )

    def _check_unique(
        self, schema: TableSchema, row: dict[str, Any], rows: list[dict[str, Any]]
    ) -> None:
        for column in (schema.primary_key, *schema.unique):
            value = row.get(column)
            if value is None:
                continue
            clashes = sum(1 for other in rows if other.get(column) == value)
            if clashes > 1:
                raise _fail(
                    "23505",
                    f'duplicate key value violates unique constraint "{schema.name}_{column}_key"',
                    status=409,
                    details=f"Key ({column})=({value}) already exists.",
                )

    def _check_references(self, schema: TableSchema, row: dict[str, Any]) -> None:
        for column, target in schema.foreign_keys.items():
            value = row.get(column)
            if value is None:
                continue
            if self._find(target, value) is None:
                raise _fail(
                    "23503",
                    f'insert or update on table "{schema.name}" violates foreign key constraint '
                    f'"{schema.name}_{column}_fkey"',
                    status=409,
                    details=f'Key ({column})=({value}) is not present in table "{target}".',
                )

    def _release_references(self, target: str, key: Any) -> None:
        """Cascade or null out rows that referenced a deleted row."""
        for schema in self.schema.values():
            for column, referenced in schema.foreign_keys.items():
                if referenced != target:
                    continue
                kept = []
                removed = []
                for row in self._tables[schema.name]:
                    if row.get(column) != key:
                        kept.append(row)
                    elif column in schema.cascade:
                        removed.append(row)
                    else:
                        kept.append({**row, column: None})
                self._tables[schema.name] = kept
                for row in removed:
                    self._release_references(schema.name, row[schema.primary_key])

    def _find(self, table: str, key: Any) -> dict[str, Any] | None:
        schema = self.schema[table]
        for row in self._tables[table]:
            if _loose_equal(row.get(schema.primary_key), key):
                return row
        return None

    def _matching_raw(self, schema: TableSchema, query: Query) -> list[dict[str, Any]]:
        return [
            row for row in self._tables[schema.name]
            if all(self._satisfies(schema, row, f) for f in query.filters)
        ]

    def _matching(self, schema: TableSchema, query: Query) -> list[dict[str, Any]]:
        return copy.deepcopy(self._matching_raw(schema, query))

    def _satisfies(self, schema: TableSchema, row: dict[str, Any], condition: Filter | AnyOf) -> bool:
        if isinstance(condition, AnyOf):
            return any(self._satisfies(schema, row, f) for f in condition.filters)
        if condition.column not in schema.columns:
            raise _fail("42703", f"column {schema.name}.{condition.column} does not exist")
        cell = row.get(condition.column)
        if condition.operator == "is":
            return cell is None
        if condition.operator == "eq":
            return _loose_equal(cell, condition.value)
        if condition.operator == "ilike":
            return cell is not None and _ilike(str(cell), str(condition.value))
        raise _fail("PGRST100", f"unknown operator {condition.operator!r}")

    @staticmethod
    def _ordered(rows: list[dict[str, Any]], ordering: list[tuple[str, bool]]) -> list[dict[str, Any]]:
        rows = list(rows)
        # Stable sorts applied last key first; nulls sort last ascending.
        for column, ascending in reversed(ordering):
            rows.sort(
                key=lambda r: (r.get(column) is None, r.get(column) if r.get(column) is not None else 0),
                reverse=not ascending,
            )
        return rows

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def _project(
        self,
        schema: TableSchema,
        row: dict[str, Any],
        fields: tuple[Column | Embed, ...],
    ) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields:
            if isinstance(f, Column):
                if f.name == "*":
                    out.update(copy.deepcopy(row))
                elif f.name not in schema.columns:
                    raise _fail("42703", f"column {schema.name}.{f.name} does not exist")
                else:
                    out[f.alias] = copy.deepcopy(row.get(f.name))
            else:
                out[f.alias] = self._embed(schema, row, f)
        return out

    def _embed(self, schema: TableSchema, row: dict[str, Any], embed: Embed) -> Any:
        # To-one through a named foreign-key column.
        if embed.relation in schema.foreign_keys:
            return self._embed_one(schema.foreign_keys[embed.relation], row.get(embed.relation), embed)

        # To-one through a foreign key pointing at the named table.
        for column, target in schema.foreign_keys.items():
            if target == embed.relation:
                return self._embed_one(target, row.get(column), embed)

        # To-many through a foreign key on the named table pointing back here.
        child = self.schema.get(embed.relation)
        if child is not None:
            for column, target in child.foreign_keys.items():
                if target == schema.name:
                    key = row.get(schema.primary_key)
                    children = [
                        r for r in self._tables[child.name] if _loose_equal(r.get(column), key)
                    ]
                    children.sort(key=lambda r: r[child.primary_key])
                    return [self._project(child, r, embed.fields) for r in children]

        raise _fail(
            "PGRST200",
            f"Could not find a relationship between '{schema.name}' and '{embed.relation}' "
            "in the schema cache",
        )

    def _embed_one(self, table: str, key: Any, embed: Embed) -> dict[str, Any] | None:
        if key is None:
            return None
        target = self._find(table, key)
        if target is None:
            return None
        return self._project(self.schema[table], target, embed.fields)


def _batch_rows(payload: Any) -> list[dict[str, Any]]:
    rows = [payload] if isinstance(payload, dict) else list(payload or [])
    columns = payload_columns(payload)
    if columns:
        rows = [{column: row.get(column) for column in columns} for row in rows]
    return rows


def _loose_equal(cell: Any, value: Any) -> bool:
    if cell == value:
        return True
    if cell is None or value is None:
        return False
    return str(cell) == str(value)


def _ilike(text: str, pattern: str) -> bool:
    # "*" becomes "%" before LIKE sees it, so it cannot be escaped.
    parts = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "*":
            parts.append(".*")
        elif ch == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    regex = "".join(parts)
    return re.fullmatch(regex, text, flags=re.IGNORECASE | re.DOTALL) is not None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
