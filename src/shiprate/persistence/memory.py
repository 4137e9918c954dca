"""In-memory document store used by tests and offline previews."""

from __future__ import annotations

import copy
import itertools
import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Iterable, Mapping, Optional

from ..errors import StorageError
from .store import GEO_LOCATIONS, WriteBatch, ensure_commit_size

logger = logging.getLogger(__name__)

FaultPredicate = Callable[[dict[str, Any]], bool]


class InMemoryStore:
    """Thread-safe dict-of-dicts store that preserves insertion order.

    ``fail_when`` registers a predicate for a named store method; when it returns True for
    the call's arguments, the call raises :class:`StorageError`.
    """

    def __init__(
        self,
        collections: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None,
        *,
        max_commit_size: int = 450,
    ) -> None:
        self.max_commit_size = max_commit_size
        self._lock = threading.RLock()
        self._data: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._ids = itertools.count(1)
        self._faults: dict[str, list[FaultPredicate]] = defaultdict(list)
        self.commit_sizes: list[int] = []
        for collection, records in (collections or {}).items():
            self.seed(collection, records)

    def seed(self, collection: str, records: Iterable[Mapping[str, Any]]) -> None:
        with self._lock:
            for record in records:
                doc = dict(record)
                doc_id = str(doc.get("id") or self.new_id(collection))
                doc["id"] = doc_id
                self._data[collection][doc_id] = doc

    def fail_when(self, method: str, predicate: FaultPredicate = lambda call: True) -> None:
        self._faults[method].append(predicate)

    def clear_faults(self) -> None:
        self._faults.clear()

    def _check_fault(self, method: str, **call: Any) -> None:
        for predicate in self._faults.get(method, ()):
            if predicate(call):
                raise StorageError(f"Injected failure in {method}: {call}")

    def new_id(self, collection: str) -> str:
        with self._lock:
            return f"{collection}_{next(self._ids):06d}"

    def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        self._check_fault("get", collection=collection, doc_id=doc_id)
        with self._lock:
            doc = self._data[collection].get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def all(self, collection: str) -> list[dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(doc) for doc in self._data[collection].values()]

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._data[collection])

    def find(self, collection: str, *, limit: Optional[int] = None, **equals: Any) -> list[dict[str, Any]]:
        self._check_fault("find", collection=collection, **equals)
        results = [
            doc for doc in self.all(collection)
            if all(doc.get(key) == value for key, value in equals.items())
        ]
        return results[:limit] if limit is not None else results

    def list_ids(self, collection: str) -> list[str]:
        self._check_fault("list_ids", collection=collection)
        with self._lock:
            return list(self._data[collection].keys())

    def _locations(self, country: str, state: str) -> list[dict[str, Any]]:
        return [
            doc for doc in self.all(GEO_LOCATIONS)
            if doc.get("country") == country and doc.get("province_state") == state
        ]

    def find_locations_in_bounds(
        self,
        country: str,
        state: str,
        min_lat: float,
        max_lat: float,
        min_lng: float,
        max_lng: float,
    ) -> list[dict[str, Any]]:
        self._check_fault("find_locations_in_bounds", country=country, state=state)
        matches = []
        for doc in self._locations(country, state):
            lat, lng = doc.get("latitude"), doc.get("longitude")
            if lat is None or lng is None:
                continue
            if min_lat <= lat <= max_lat and min_lng <= lng <= max_lng:
                matches.append(doc)
        return matches

    def find_locations_by_postal_prefix(
        self, country: str, state: str, prefix: str, limit: int
    ) -> list[dict[str, Any]]:
        self._check_fault("find_locations_by_postal_prefix", country=country, state=state, prefix=prefix)
        matches = [
            doc for doc in self._locations(country, state)
            if str(doc.get("postal_code") or "").startswith(prefix)
        ]
        return matches[:limit]

    def find_locations_by_city(
        self, country: str, state: str, city: str, *, case_insensitive: bool = False, limit: int
    ) -> list[dict[str, Any]]:
        self._check_fault(
            "find_locations_by_city",
            country=country,
            state=state,
            city=city,
            case_insensitive=case_insensitive,
        )
        if case_insensitive:
            wanted = city.lower()
            matches = [doc for doc in self._locations(country, state) if str(doc.get("city") or "").lower() == wanted]
        else:
            matches = [doc for doc in self._locations(country, state) if doc.get("city") == city]
        return matches[:limit]

    def commit_batch(self, batch: WriteBatch) -> None:
        ensure_commit_size(batch, self.max_commit_size)
        self._check_fault("commit_batch", size=len(batch), collections={op.collection for op in batch})
        with self._lock:
            pending = {(op.collection, op.doc_id) for op in batch if op.kind == "set"}
            for op in batch:
                if op.kind == "update" and op.doc_id not in self._data[op.collection] and (op.collection, op.doc_id) not in pending:
                    raise StorageError(f"Cannot update missing document {op.collection}/{op.doc_id}")
            for op in batch:
                docs = self._data[op.collection]
                if op.kind == "set":
                    docs[op.doc_id] = {**copy.deepcopy(op.data or {}), "id": op.doc_id}
                elif op.kind == "update":
                    docs.setdefault(op.doc_id, {"id": op.doc_id}).update(copy.deepcopy(op.data or {}))
                else:
                    docs.pop(op.doc_id, None)
            self.commit_sizes.append(len(batch))
        logger.debug(f"Committed {len(batch)} operations")
