"""Supabase client shared by the zone, DIM factor and rate card tables.

The project reads ``regions``, ``geo_locations``, ``dim_factors``,
``customer_dim_factor_overrides`` and ``simple_carrier_rates`` and writes
``zones``, ``zone_cities`` and ``zone_postal_codes`` through this client.
"""

import logging
from functools import lru_cache
from supabase import create_client, Client
from ..config import settings
from ..persistence.store import ZONES

logger = logging.getLogger(__name__)


@lru_cache()
def get_supabase_client() -> Client | None:
    """Client built from ``SHIPRATE_SUPABASE_URL`` and ``SHIPRATE_SUPABASE_KEY``, or None when unset.

    Creating the client does not contact the server; use :func:`check_connection` for that.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logger.warning("Supabase credentials not configured (SHIPRATE_SUPABASE_URL / SHIPRATE_SUPABASE_KEY)")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client for {settings.supabase_url}: {e}")
        return None


def check_connection() -> bool:
    """Run a one-row query against the zones table to confirm the database answers."""
    client = get_supabase_client()
    if client is None:
        return False
    try:
        client.table(ZONES).select("id").limit(1).execute()
        return True
    except Exception as e:
        logger.warning(f"Supabase connectivity check failed: {e}")
        return False
