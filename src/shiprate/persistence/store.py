"""Document store interface shared by the Supabase and in-memory adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Literal, Optional, Protocol, Sequence

from ..errors import StorageError

OperationKind = Literal["set", "update", "delete"]

REGIONS = "regions"
GEO_LOCATIONS = "geo_locations"
ZONES = "zones"
ZONE_CITIES = "zone_cities"
ZONE_POSTAL_CODES = "zone_postal_codes"
DIM_FACTORS = "dim_factors"
CUSTOMER_DIM_FACTOR_OVERRIDES = "customer_dim_factor_overrides"
SIMPLE_CARRIER_RATES = "simple_carrier_rates"


@dataclass(slots=True)
class WriteOperation:
    kind: OperationKind
    collection: str
    doc_id: str
    data: Optional[dict[str, Any]] = None


@dataclass(slots=True)
class WriteBatch:
    """Ordered set/update/delete operations committed together."""

    operations: list[WriteOperation] = field(default_factory=list)

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> "WriteBatch":
        self.operations.append(WriteOperation("set", collection, doc_id, dict(data)))
        return self

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> "WriteBatch":
        self.operations.append(WriteOperation("update", collection, doc_id, dict(data)))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self.operations.append(WriteOperation("delete", collection, doc_id))
        return self

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self) -> Iterator[WriteOperation]:
        return iter(self.operations)


class DocumentStore(Protocol):
    """Minimal document-store surface the services depend on."""

    max_commit_size: int

    def new_id(self, collection: str) -> str: ...

    def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]: ...

    def find(self, collection: str, *, limit: Optional[int] = None, **equals: Any) -> list[dict[str, Any]]: ...

    def list_ids(self, collection: str) -> list[str]: ...

    def find_locations_in_bounds(
        self,
        country: str,
        state: str,
        min_lat: float,
        max_lat: float,
        min_lng: float,
        max_lng: float,
    ) -> list[dict[str, Any]]: ...

    def find_locations_by_postal_prefix(
        self, country: str, state: str, prefix: str, limit: int
    ) -> list[dict[str, Any]]: ...

    def find_locations_by_city(
        self, country: str, state: str, city: str, *, case_insensitive: bool = False, limit: int
    ) -> list[dict[str, Any]]: ...

    def commit_batch(self, batch: WriteBatch) -> None: ...


def ensure_commit_size(batch: WriteBatch, limit: int) -> None:
    if len(batch) > limit:
        raise StorageError(f"Commit of {len(batch)} operations exceeds the store limit of {limit}")


def chunked(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def commit_operations(store: DocumentStore, operations: Sequence[WriteOperation], chunk_size: int) -> int:
    """Commit ``operations`` in sequential chunks that never exceed the store limit.

    Returns the number of commits issued.
    """
    size = max(1, min(chunk_size, store.max_commit_size))
    commits = 0
    for chunk in chunked(operations, size):
        store.commit_batch(WriteBatch(list(chunk)))
        commits += 1
    return commits
