"""Supabase-backed document store."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from typing import Any, Callable, Optional

from supabase import Client

from ..errors import StorageError
from .store import GEO_LOCATIONS, WriteBatch, ensure_commit_size

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SupabaseStore:
    """Adapter mapping each collection onto a Supabase table keyed by ``id``.

    Supabase has no multi-table transactions, so a batch is applied table by table in
    operation order. Any client failure surfaces as :class:`StorageError`.
    """

    def __init__(self, client: Client, *, max_commit_size: int = 450) -> None:
        self.client = client
        self.max_commit_size = max_commit_size

    def _execute(self, description: str, query: Any) -> list[dict[str, Any]]:
        try:
            response = query.execute()
        except Exception as exc:
            logger.error(f"Supabase {description} failed: {exc}")
            raise StorageError(f"Supabase {description} failed: {exc}") from exc
        return list(response.data or [])

    def new_id(self, collection: str) -> str:
        return str(uuid.uuid4())

    def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        rows = self._execute(
            f"get {collection}/{doc_id}",
            self.client.table(collection).select("*").eq("id", doc_id).limit(1),
        )
        return rows[0] if rows else None

    def _execute_paged(self, description: str, build_query: Callable[[], Any]) -> list[dict[str, Any]]:
        """Read every row of ``build_query()`` in ``PAGE_SIZE`` pages ordered by id.

        PostgREST truncates unbounded selects at its max-rows setting.
        """
        rows: list[dict[str, Any]] = []
        start = 0
        while True:
            page = self._execute(description, build_query().order("id").range(start, start + PAGE_SIZE - 1))
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                return rows
            start += PAGE_SIZE

    def find(self, collection: str, *, limit: Optional[int] = None, **equals: Any) -> list[dict[str, Any]]:
        def build_query() -> Any:
            query = self.client.table(collection).select("*")
            for column, value in equals.items():
                query = query.is_(column, "null") if value is None else query.eq(column, value)
            return query

        if limit is not None:
            return self._execute(f"find on {collection}", build_query().limit(limit))
        return self._execute_paged(f"find on {collection}", build_query)

    def list_ids(self, collection: str) -> list[str]:
        rows = self._execute_paged(
            f"list ids of {collection}", lambda: self.client.table(collection).select("id")
        )
        return [str(row["id"]) for row in rows]

    def _locations(self, country: str, state: str) -> Any:
        return (
            self.client.table(GEO_LOCATIONS)
            .select("*")
            .eq("country", country)
            .eq("province_state", state)
        )

    def find_locations_in_bounds(
        self,
        country: str,
        state: str,
        min_lat: float,
        max_lat: float,
        min_lng: float,
        max_lng: float,
    ) -> list[dict[str, Any]]:
        query = (
            self._locations(country, state)
            .gte("latitude", min_lat)
            .lte("latitude", max_lat)
            .gte("longitude", min_lng)
            .lte("longitude", max_lng)
        )
        return self._execute("bounding box query", query)

    def find_locations_by_postal_prefix(
        self, country: str, state: str, prefix: str, limit: int
    ) -> list[dict[str, Any]]:
        query = self._locations(country, state).like("postal_code", f"{_escape_like(prefix)}%").limit(limit)
        return self._execute(f"postal prefix query for {prefix}", query)

    def find_locations_by_city(
        self, country: str, state: str, city: str, *, case_insensitive: bool = False, limit: int
    ) -> list[dict[str, Any]]:
        query = self._locations(country, state)
        if case_insensitive:
            query = query.ilike("city", _escape_like(city))
        else:
            query = query.eq("city", city)
        return self._execute(f"city query for {city}", query.limit(limit))

    def commit_batch(self, batch: WriteBatch) -> None:
        ensure_commit_size(batch, self.max_commit_size)
        upserts: dict[str, list[dict[str, Any]]] = defaultdict(list)
        deletes: dict[str, list[str]] = defaultdict(list)

        def flush() -> None:
            for collection, rows in upserts.items():
                self._execute(f"upsert into {collection}", self.client.table(collection).upsert(rows))
            for collection, ids in deletes.items():
                self._execute(f"delete from {collection}", self.client.table(collection).delete().in_("id", ids))
            upserts.clear()
            deletes.clear()

        # Consecutive sets (or deletes) are grouped per table; a change of kind flushes.
        previous_kind = None
        for op in batch:
            if op.kind != previous_kind:
                flush()
                previous_kind = op.kind
            if op.kind == "set":
                upserts[op.collection].append({**(op.data or {}), "id": op.doc_id})
            elif op.kind == "delete":
                deletes[op.collection].append(op.doc_id)
            else:
                self._execute(
                    f"update {op.collection}/{op.doc_id}",
                    self.client.table(op.collection).update(op.data or {}).eq("id", op.doc_id),
                )
        flush()
