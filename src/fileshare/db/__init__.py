"""Supabase-backed stores and schema declarations."""

from .errors import (
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
    UniqueViolation,
)
from .schema import SHARES_SCHEMA, TableSchema, UniqueConstraint, render_ddl
from .supabase_client import PostgrestFilter, SupabaseClient

__all__ = [
    "PostgrestFilter",
    "SHARES_SCHEMA",
    "SupabaseAuthError",
    "SupabaseClient",
    "SupabaseConflictError",
    "SupabaseError",
    "SupabaseNotFoundError",
    "TableSchema",
    "UniqueConstraint",
    "UniqueViolation",
    "render_ddl",
]
