"""Tests for the shipped Supabase migrations.

Validates:
  - Every declared unique constraint and index is created by a migration.
  - Shipped migrations are safe to re-run.
  - Discovery orders files and rejects duplicate sequence numbers.
"""

from __future__ import annotations

import pytest

from fileshare.db.migrations import (
    discover_migrations,
    idempotency_errors,
    missing_declarations,
)
from fileshare.db.schema import SHARES_SCHEMA, render_ddl


# =====================================================================
# Shipped files
# =====================================================================


class TestShippedMigrations:

    def test_initial_migration_discovered(self):
        migrations = discover_migrations()
        assert [m.sequence for m in migrations][:1] == [1]
        assert migrations[0].filename == '001_fileshare_schema.sql'

    def test_every_declaration_is_provisioned(self):
        assert missing_declarations() == []

    def test_share_uniqueness_indexes_present(self):
        sql = ' '.join(discover_migrations()[0].read().split())
        assert 'ux_shares_user_target ON shares (file_id, target_id) WHERE kind = \'user\'' in sql
        assert 'ux_shares_link_token ON shares (link_token) WHERE link_token IS NOT NULL' in sql

    @pytest.mark.parametrize('migration', discover_migrations(), ids=lambda m: m.filename)
    def test_rerunnable(self, migration):
        assert idempotency_errors(migration.read()) == []


# =====================================================================
# Checks
# =====================================================================


class TestDeclarationCheck:

    def test_reports_missing_user_target_index(self, tmp_path):
        statements = [
            s for s in render_ddl(SHARES_SCHEMA) if 'ux_shares_user_target' not in s
        ]
        (tmp_path / '001_shares.sql').write_text('\n'.join(statements))

        missing = missing_declarations(
            discover_migrations(tmp_path), schemas=(SHARES_SCHEMA,),
        )

        assert len(missing) == 1
        assert 'ux_shares_user_target' in missing[0]

    def test_whitespace_and_case_insensitive(self, tmp_path):
        sql = '\n'.join(s.lower().replace(' on ', '\n    on ') for s in render_ddl(SHARES_SCHEMA))
        (tmp_path / '001_shares.sql').write_text(sql)
        assert missing_declarations(
            discover_migrations(tmp_path), schemas=(SHARES_SCHEMA,),
        ) == []


class TestIdempotencyLint:

    def test_flags_bare_create_index(self):
        errors = idempotency_errors('CREATE UNIQUE INDEX ux_x ON shares (link_token);')
        assert errors == ['line 1: CREATE INDEX without IF NOT EXISTS']

    def test_flags_bare_create_table_and_drop(self):
        sql = 'CREATE TABLE shares (id text);\nDROP TABLE shares;'
        assert len(idempotency_errors(sql)) == 2

    def test_comments_ignored(self):
        assert idempotency_errors('-- CREATE TABLE shares (id text);') == []


class TestDiscovery:

    def test_sorted_and_filtered(self, tmp_path):
        (tmp_path / '002_b.sql').write_text('')
        (tmp_path / '001_a.sql').write_text('')
        (tmp_path / 'notes.md').write_text('')
        assert [m.filename for m in discover_migrations(tmp_path)] == ['001_a.sql', '002_b.sql']

    def test_duplicate_sequence_rejected(self, tmp_path):
        (tmp_path / '001_a.sql').write_text('')
        (tmp_path / '001_b.sql').write_text('')
        with pytest.raises(ValueError, match='Duplicate migration sequence 001'):
            discover_migrations(tmp_path)
