"""Tests for the Share domain model.

Validates:
  - Permission total order and coverage.
  - Kind-specific field invariants (target vs link token).
  - Expiry boundary: the expiry instant itself is still valid.
  - Active flag and expiry are independent axes.
  - Link tokens carry at least 128 bits of entropy.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from fileshare.sharing.model import (
    AccessDecision,
    GrantedVia,
    Permission,
    Share,
    ShareKind,
    parse_permission,
)
from fileshare.sharing.tokens import LinkTokenIssuer

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def _user_share(**overrides) -> Share:
    fields = dict(
        id='shr_1',
        file_id='fil_1',
        owner_id='user_owner',
        kind=ShareKind.USER,
        target_id='user_alice',
    )
    fields.update(overrides)
    return Share(**fields)


# =====================================================================
# Permission ordering
# =====================================================================


class TestPermission:

    def test_total_order(self):
        assert Permission.NONE.rank < Permission.VIEW.rank < Permission.DOWNLOAD.rank

    def test_download_covers_view(self):
        assert Permission.DOWNLOAD.covers(Permission.VIEW)
        assert Permission.DOWNLOAD.covers(Permission.DOWNLOAD)

    def test_view_does_not_cover_download(self):
        assert not Permission.VIEW.covers(Permission.DOWNLOAD)

    def test_parse_rejects_none_level(self):
        with pytest.raises(ValueError):
            parse_permission('none')

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            parse_permission('admin')

    def test_parse_absent_is_none(self):
        assert parse_permission(None) is None
        assert parse_permission('download') is Permission.DOWNLOAD


# =====================================================================
# Field invariants
# =====================================================================


class TestShareInvariants:

    def test_user_share_defaults_to_view_and_active(self):
        share = _user_share()
        assert share.permission is Permission.VIEW
        assert share.is_active is True
        assert share.expires_at is None

    def test_user_share_requires_target(self):
        with pytest.raises(ValueError):
            _user_share(target_id=None)

    def test_user_share_rejects_link_token(self):
        with pytest.raises(ValueError):
            _user_share(link_token='abc')

    def test_link_share_requires_token_and_no_target(self):
        with pytest.raises(ValueError):
            Share(id='s', file_id='f', owner_id='o', kind='link')
        with pytest.raises(ValueError):
            Share(
                id='s', file_id='f', owner_id='o', kind='link',
                link_token='tok', target_id='user_alice',
            )

    def test_kind_and_permission_strings_are_coerced(self):
        share = Share(
            id='s', file_id='f', owner_id='o', kind='link',
            link_token='tok', permission='download',
        )
        assert share.kind is ShareKind.LINK
        assert share.permission is Permission.DOWNLOAD

    def test_none_permission_rejected(self):
        with pytest.raises(ValueError):
            _user_share(permission=Permission.NONE)


# =====================================================================
# Expiry boundary
# =====================================================================


class TestExpiry:

    def test_no_expiry_never_expires(self):
        share = _user_share()
        assert not share.is_expired(NOW + timedelta(days=3650))

    def test_expiry_instant_itself_is_still_valid(self):
        share = _user_share(expires_at=NOW)
        assert not share.is_expired(NOW)
        assert share.is_valid(NOW)

    def test_one_microsecond_after_expiry_is_expired(self):
        share = _user_share(expires_at=NOW)
        assert share.is_expired(NOW + timedelta(microseconds=1))
        assert not share.is_valid(NOW + timedelta(microseconds=1))

    def test_active_and_unexpired_are_independent(self):
        expired_but_active = _user_share(expires_at=NOW - timedelta(seconds=1))
        revoked_but_unexpired = _user_share(is_active=False)
        assert expired_but_active.is_active
        assert not expired_but_active.is_valid(NOW)
        assert not revoked_but_unexpired.is_expired(NOW)
        assert not revoked_but_unexpired.is_valid(NOW)

    def test_naive_expiry_taken_as_utc(self):
        share = _user_share(expires_at=NOW.replace(tzinfo=None))
        assert share.expires_at == NOW
        assert share.expires_at.tzinfo is timezone.utc
        assert not share.is_expired(NOW)
        assert share.is_expired(NOW + timedelta(microseconds=1))

    def test_naive_expiry_survives_copy(self):
        share = _user_share().copy(expires_at=NOW.replace(tzinfo=None))
        assert share.expires_at.tzinfo is timezone.utc


class TestRows:

    def test_from_row_parses_iso_timestamps(self):
        share = _user_share(expires_at=NOW, permission=Permission.DOWNLOAD)
        restored = Share.from_row(share.to_row())
        assert restored == share


class TestAccessDecision:

    def test_denied_is_not_allowed(self):
        decision = AccessDecision.denied(Permission.VIEW)
        assert decision.permission is Permission.NONE
        assert decision.granted_via is None
        assert not decision.allowed

    def test_view_grant_does_not_allow_download(self):
        decision = AccessDecision(
            permission=Permission.VIEW,
            granted_via=GrantedVia.USER_SHARE,
            requested=Permission.DOWNLOAD,
        )
        assert not decision.allowed


# =====================================================================
# Link tokens
# =====================================================================


class TestLinkTokenIssuer:

    def test_default_is_32_hex_chars(self):
        token = LinkTokenIssuer().issue()
        assert len(token) == 32
        int(token, 16)

    def test_tokens_differ(self):
        issuer = LinkTokenIssuer()
        assert len({issuer.issue() for _ in range(100)}) == 100

    def test_wider_tokens(self):
        assert len(LinkTokenIssuer(32).issue()) == 64

    def test_rejects_under_128_bits(self):
        with pytest.raises(ValueError, match='nbytes'):
            LinkTokenIssuer(8)
