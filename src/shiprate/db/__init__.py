"""Database clients and utilities."""

from .supabase import check_connection, get_supabase_client

__all__ = ["check_connection", "get_supabase_client"]
