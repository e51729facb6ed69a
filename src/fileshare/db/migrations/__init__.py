"""Shipped SQL migrations for the Supabase backend.

Migrations are plain ``NNN_description.sql`` files applied with
``supabase db push``. This module discovers them in order, lints them
for idempotency, and checks that every constraint and index declared in
``fileshare.db.schema`` is actually created by some migration. The share
store's race safety depends on ``ux_shares_user_target`` and
``ux_shares_link_token`` existing on the table.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from ..schema import AUDIT_SCHEMA, FILES_SCHEMA, SHARES_SCHEMA, TableSchema, render_ddl

_MIGRATION_RE = re.compile(r'^(\d{3})_.*\.sql$')

MIGRATIONS_DIR = Path(__file__).parent

DECLARED_SCHEMAS: tuple[TableSchema, ...] = (FILES_SCHEMA, SHARES_SCHEMA, AUDIT_SCHEMA)

_UNSAFE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r'^\s*create\s+table\s+(?!.*if\s+not\s+exists)', re.IGNORECASE),
        'CREATE TABLE without IF NOT EXISTS',
    ),
    (
        re.compile(r'^\s*create\s+(unique\s+)?index\s+(?!.*if\s+not\s+exists)', re.IGNORECASE),
        'CREATE INDEX without IF NOT EXISTS',
    ),
    (
        re.compile(r'^\s*drop\s+(table|index)\s+(?!.*if\s+exists)', re.IGNORECASE),
        'DROP without IF EXISTS',
    ),
]


@dataclass(frozen=True, slots=True)
class MigrationFile:
    sequence: int
    filename: str
    path: Path

    def read(self) -> str:
        return self.path.read_text(encoding='utf-8')


def discover_migrations(directory: Path | None = None) -> list[MigrationFile]:
    """Migration files sorted by sequence number.

    Raises:
        ValueError: Two files share a sequence number.
    """
    d = directory or MIGRATIONS_DIR
    seen: dict[int, str] = {}
    results: list[MigrationFile] = []
    for p in sorted(d.iterdir()):
        m = _MIGRATION_RE.match(p.name)
        if not p.is_file() or not m:
            continue
        seq = int(m.group(1))
        if seq in seen:
            raise ValueError(
                f'Duplicate migration sequence {seq:03d}: {seen[seq]} and {p.name}'
            )
        seen[seq] = p.name
        results.append(MigrationFile(sequence=seq, filename=p.name, path=p))
    return results


def idempotency_errors(sql: str) -> list[str]:
    """``line N: problem`` for every statement that is unsafe to re-run."""
    errors: list[str] = []
    for lineno, line in enumerate(sql.splitlines(), start=1):
        if line.lstrip().startswith('--'):
            continue
        for pattern, message in _UNSAFE_PATTERNS:
            if pattern.search(line):
                errors.append(f'line {lineno}: {message}')
    return errors


def _normalize(sql: str) -> str:
    return ' '.join(sql.split()).lower()


def missing_declarations(
    migrations: Iterable[MigrationFile] | None = None,
    schemas: Iterable[TableSchema] = DECLARED_SCHEMAS,
) -> list[str]:
    """Rendered DDL statements that no migration creates."""
    files = list(migrations) if migrations is not None else discover_migrations()
    shipped = _normalize('\n'.join(mf.read() for mf in files))
    return [
        stmt
        for schema in schemas
        for stmt in render_ddl(schema)
        if _normalize(stmt) not in shipped
    ]
