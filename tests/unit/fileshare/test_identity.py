"""Tests for bearer JWT principal resolution."""

from __future__ import annotations

import time

import jwt
import pytest

from fileshare.identity import JwtPrincipalResolver, Principal, extract_bearer_token

SECRET = 'test-secret-that-is-at-least-32-chars!!'


def _token(secret: str = SECRET, **claims) -> str:
    payload = {'sub': 'user_alice', 'exp': int(time.time()) + 3600}
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm='HS256')


class TestExtractBearerToken:

    @pytest.mark.parametrize('header', [None, '', 'Basic abc', 'Bearer ', 'bearer abc'])
    def test_missing_or_malformed(self, header):
        assert extract_bearer_token(header) is None

    def test_extracts(self):
        assert extract_bearer_token('Bearer abc.def') == 'abc.def'


class TestJwtPrincipalResolver:

    def test_valid_token(self):
        resolver = JwtPrincipalResolver(SECRET)
        principal = resolver.resolve(f'Bearer {_token(email="Alice@Example.COM")}')
        assert principal == Principal(id='user_alice', email='alice@example.com')

    def test_no_header_is_anonymous(self):
        assert JwtPrincipalResolver(SECRET).resolve(None) is None

    def test_wrong_secret(self):
        token = _token(secret='another-secret-that-is-32-chars-long')
        assert JwtPrincipalResolver(SECRET).resolve(f'Bearer {token}') is None

    def test_expired(self):
        token = _token(exp=int(time.time()) - 60)
        assert JwtPrincipalResolver(SECRET).resolve(f'Bearer {token}') is None

    def test_missing_exp_rejected(self):
        token = jwt.encode({'sub': 'user_alice'}, SECRET, algorithm='HS256')
        assert JwtPrincipalResolver(SECRET).resolve(f'Bearer {token}') is None

    def test_garbage(self):
        assert JwtPrincipalResolver(SECRET).resolve('Bearer not-a-jwt') is None

    def test_secret_required(self):
        with pytest.raises(ValueError):
            JwtPrincipalResolver('')
