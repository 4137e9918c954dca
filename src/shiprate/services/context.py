"""Explicit dependencies passed to the zoning and rating components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Optional

from ..config import Settings, settings as default_settings
from ..db.supabase import get_supabase_client
from ..errors import StorageError
from ..persistence.store import DocumentStore
from ..persistence.supabase_store import SupabaseStore
from .catalog import RegionCatalog


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class EngineContext:
    store: DocumentStore
    settings: Settings = field(default_factory=lambda: default_settings)
    clock: Callable[[], datetime] = utc_now
    _catalog: Optional[RegionCatalog] = field(default=None, init=False, repr=False)

    def now(self) -> datetime:
        return self.clock()

    def region_catalog(self) -> RegionCatalog:
        """Region tree loaded once and reused for the lifetime of this context."""
        if self._catalog is None:
            self._catalog = RegionCatalog(self.store)
        return self._catalog


@lru_cache()
def build_default_context() -> EngineContext:
    """Context over the configured Supabase project.

    Raises :class:`StorageError` when Supabase credentials are missing.
    """
    client = get_supabase_client()
    if client is None:
        raise StorageError("Supabase is not configured (set SHIPRATE_SUPABASE_URL and SHIPRATE_SUPABASE_KEY)")
    store = SupabaseStore(client, max_commit_size=default_settings.max_commit_size)
    return EngineContext(store=store, settings=default_settings)
