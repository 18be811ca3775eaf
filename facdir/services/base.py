"""Shared CRUD operations for table-backed services."""

from __future__ import annotations

import logging
from typing import Any, Generic, Iterable, Mapping, TypeVar

from pydantic import ValidationError

from facdir.data.models import Identifier, Record
from facdir.errors import NotFound, Unknown
from facdir.services.policy import empty_on_failure, none_on_failure, propagates
from facdir.store.query import Query

logger = logging.getLogger("facdir")

R = TypeVar("R", bound=Record)


class TableService(Generic[R]):
    """CRUD over one remote table.

    Subclasses set :attr:`model` and :attr:`ordering`; every operation below
    declares its failure policy (see :mod:`facdir.services.policy`).

    Args:
        store: Anything exposing ``table(name) -> Query`` (a
            :class:`~facdir.store.client.StoreClient` or a
            :class:`~facdir.store.memory.MemoryStore`).
    """

    model: type[R]
    ordering: tuple[tuple[str, bool], ...] = ()

    def __init__(self, store: Any) -> None:
        self.store = store

    @property
    def table(self) -> str:
        return self.model.table

    @property
    def primary_key(self) -> str:
        return self.model.primary_key

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @empty_on_failure
    def get_all(self) -> list[R]:
        """Every row, in this table's display order."""
        return self._fetch_all(self._ordered(self._select()))

    @none_on_failure
    def get_by_id(self, record_id: Identifier) -> R | None:
        """The row with *record_id*, or ``None`` when there is no such row."""
        return self._fetch_one(self._select().eq(self.primary_key, record_id))

    @propagates
    def count(self) -> int:
        """Exact number of rows in the table."""
        response = self._query().select("*", count="exact", head=True).execute()
        return response.count or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @propagates
    def create(self, record: R | Mapping[str, Any]) -> R:
        """Insert one row and return it with its generated identifier.

        Raises:
            Conflict: a unique column (e.g. faculty email) already holds the value.
        """
        row = self._to_row(record)
        query = self._query().insert(row).select().single()
        created = self._validate(query.execute().data)
        logger.info(
            "Created record",
            extra={"table": self.table, "id": created.identifier},
        )
        return created

    @propagates
    def update(self, record_id: Identifier, changes: R | Mapping[str, Any]) -> R:
        """Patch only the given fields of one row and return the new row.

        Raises:
            NotFound: no row has *record_id*.
            ValueError: *changes* is empty.
        """
        patch = self._to_row(changes, partial=True)
        patch.pop(self.primary_key, None)
        if not patch:
            raise ValueError("No fields to update")
        query = (
            self._query()
            .update(patch)
            .eq(self.primary_key, record_id)
            .select()
            .single()
        )
        updated = self._validate(query.execute().data)
        logger.info(
            "Updated record",
            extra={"table": self.table, "id": record_id, "fields": sorted(patch)},
        )
        return updated

    @propagates
    def delete(self, record_id: Identifier) -> bool:
        """Delete one row; ``False`` when no row had *record_id*."""
        data = (
            self._query()
            .delete()
            .eq(self.primary_key, record_id)
            .select()
            .execute()
            .data
        )
        deleted = bool(data)
        logger.info(
            "Deleted record" if deleted else "Nothing to delete",
            extra={"table": self.table, "id": record_id},
        )
        return deleted

    @propagates
    def bulk_upsert(
        self, records: Iterable[R | Mapping[str, Any]], conflict_key: str
    ) -> list[R]:
        """Insert or update a batch keyed by the soft-unique *conflict_key*.

        Records sharing a key are merged first (later fields win) because
        the store rejects a batch that touches the same row twice.  Rows
        with different column sets go out as separate requests so a record
        never clears a column it does not mention.

        Raises:
            ValueError: a record has no value for *conflict_key*.
        """
        merged: dict[Any, dict[str, Any]] = {}
        for record in records:
            row = self._to_row(record)
            key = row.get(conflict_key)
            if key is None or key == "":
                raise ValueError(f"Record is missing conflict key {conflict_key!r}")
            merged.setdefault(key, {}).update(row)

        if not merged:
            return []

        # A mixed batch would null the fields a record leaves out.
        batches: dict[frozenset[str], list[dict[str, Any]]] = {}
        for row in merged.values():
            batches.setdefault(frozenset(row), []).append(row)

        data: list[dict[str, Any]] = []
        for rows in batches.values():
            response = (
                self._query()
                .upsert(rows, on_conflict=conflict_key)
                .select()
                .execute()
            )
            data.extend(response.data or [])
        logger.info(
            "Upserted records",
            extra={
                "table": self.table,
                "count": len(merged),
                "batches": len(batches),
                "conflict_key": conflict_key,
            },
        )
        return [self._validate(row) for row in data]

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def _query(self) -> Query:
        return self.store.table(self.table)

    def _select(self, columns: str = "*") -> Query:
        return self._query().select(columns)

    def _ordered(self, query: Query) -> Query:
        for column, ascending in self.ordering:
            query.order(column, ascending=ascending)
        return query

    def _fetch_all(self, query: Query) -> list[R]:
        data = query.execute().data or []
        return [self._validate(row) for row in data]

    def _fetch_one(self, query: Query) -> R | None:
        try:
            data = query.single().execute().data
        except NotFound:
            return None
        return self._validate(data)

    def _validate(self, row: Any, model: type[Record] | None = None) -> Any:
        model = model or self.model
        try:
            return model.model_validate(row)
        except ValidationError as exc:
            raise Unknown(
                f"Unreadable {model.table} row ({exc.error_count()} validation errors)",
                details=str(exc),
            ) from exc

    def _filtered_by(self, column: str, value: Any, columns: str = "*") -> list[R]:
        return self._fetch_all(self._ordered(self._select(columns).eq(column, value)))

    def _to_row(
        self, record: R | Mapping[str, Any], partial: bool = False
    ) -> dict[str, Any]:
        if isinstance(record, Record):
            return record.to_row(partial=partial)
        skipped = self.model.relations | self.model.generated
        return {k: v for k, v in dict(record).items() if k not in skipped}
