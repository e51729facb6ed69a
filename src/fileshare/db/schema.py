"""Startup-time table and constraint declarations.

Constraints are declared once here and handed to the stores at
construction. The in-memory stores enforce them generically via
``UniqueConstraint.key_for``; ``render_ddl`` emits the matching
idempotent index statements for the Postgres side.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

RowPredicate = Callable[[Mapping[str, Any]], bool]


def _always(_row: Mapping[str, Any]) -> bool:
    return True


@dataclass(frozen=True, slots=True)
class UniqueConstraint:
    """A (possibly partial) unique index.

    Attributes:
        name: Index name, reported in ``UniqueViolation.constraint``.
        columns: Columns that together must be unique.
        predicate: Row filter for partial indexes (Python side).
        where_sql: The same filter as a SQL ``WHERE`` clause.
    """

    name: str
    columns: tuple[str, ...]
    predicate: RowPredicate = _always
    where_sql: str | None = None

    def key_for(self, row: Mapping[str, Any]) -> tuple[Any, ...] | None:
        """Return the uniqueness key for ``row``, or None if not covered."""
        if not self.predicate(row):
            return None
        key = tuple(row.get(col) for col in self.columns)
        # NULLs never collide in a unique index.
        if any(v is None for v in key):
            return None
        return key


@dataclass(frozen=True, slots=True)
class Index:
    name: str
    columns: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class TableSchema:
    name: str
    constraints: tuple[UniqueConstraint, ...] = ()
    indexes: tuple[Index, ...] = field(default=())

    def constraint(self, name: str) -> UniqueConstraint:
        for c in self.constraints:
            if c.name == name:
                return c
        raise KeyError(name)

    def constraint_for_columns(self, columns: tuple[str, ...]) -> UniqueConstraint | None:
        """Declared constraint over exactly ``columns`` (order-insensitive)."""
        wanted = set(columns)
        for c in self.constraints:
            if set(c.columns) == wanted:
                return c
        return None


# ── Declarations ──────────────────────────────────────────────────────

LINK_TOKEN_CONSTRAINT = "ux_shares_link_token"
USER_TARGET_CONSTRAINT = "ux_shares_user_target"

SHARES_SCHEMA = TableSchema(
    name="shares",
    constraints=(
        UniqueConstraint(
            name=LINK_TOKEN_CONSTRAINT,
            columns=("link_token",),
            where_sql="link_token IS NOT NULL",
        ),
        UniqueConstraint(
            name=USER_TARGET_CONSTRAINT,
            columns=("file_id", "target_id"),
            predicate=lambda row: row.get("kind") == "user",
            where_sql="kind = 'user'",
        ),
    ),
    indexes=(
        Index("ix_shares_file_id", ("file_id",)),
        Index("ix_shares_owner_id", ("owner_id",)),
        Index("ix_shares_expires_at", ("expires_at",)),
    ),
)

FILES_SCHEMA = TableSchema(
    name="files",
    indexes=(Index("ix_files_owner_created", ("owner_id", "created_at")),),
)

AUDIT_SCHEMA = TableSchema(
    name="audit_logs",
    indexes=(
        Index("ix_audit_logs_file_created", ("file_id", "created_at")),
        Index("ix_audit_logs_actor_created", ("actor_id", "created_at")),
    ),
)


def render_ddl(schema: TableSchema) -> list[str]:
    """Render idempotent index DDL for ``schema``."""
    statements: list[str] = []
    for c in schema.constraints:
        stmt = (
            f"CREATE UNIQUE INDEX IF NOT EXISTS {c.name} "
            f"ON {schema.name} ({', '.join(c.columns)})"
        )
        if c.where_sql:
            stmt += f" WHERE {c.where_sql}"
        statements.append(stmt + ";")
    for ix in schema.indexes:
        statements.append(
            f"CREATE INDEX IF NOT EXISTS {ix.name} "
            f"ON {schema.name} ({', '.join(ix.columns)});"
        )
    return statements
