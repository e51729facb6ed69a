"""Tests for the HTTP surface built by create_app().

Validates:
  - Every endpoint requires an authenticated principal, link redemption
    included.
  - Domain failures render as ``{"error": code, "detail": message}`` with
    the mapped status.
  - Upload, share, redeem, revoke, and audit work end to end.
  - Request IDs are propagated.
"""

from __future__ import annotations

import time
from datetime import timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fileshare.clock import FrozenClock
from fileshare.files.blob_store import InMemoryBlobStore
from fileshare.identity import JwtPrincipalResolver
from fileshare.inmemory import (
    InMemoryAuditStore,
    InMemoryFileRepository,
    InMemoryShareRepository,
)
from fileshare.main import create_app
from fileshare.settings import ShareSettings

SECRET = 'route-test-secret-at-least-32-characters'


def _auth(user_id: str) -> dict[str, str]:
    token = jwt.encode(
        {'sub': user_id, 'email': f'{user_id}@example.com', 'exp': int(time.time()) + 3600},
        SECRET,
        algorithm='HS256',
    )
    return {'Authorization': f'Bearer {token}'}


OWNER_H = _auth('user_owner')
ALICE_H = _auth('user_alice')


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def app(clock):
    return create_app(
        ShareSettings(public_url='https://files.example.com'),
        share_repo=InMemoryShareRepository(),
        file_repo=InMemoryFileRepository(),
        audit_store=InMemoryAuditStore(),
        blob_store=InMemoryBlobStore(),
        principal_resolver=JwtPrincipalResolver(SECRET),
        clock=clock,
        run_sweeper=False,
    )


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as c:
        yield c


async def _upload(client, name='report.pdf', data=b'%PDF-1.4 hello', content_type='application/pdf'):
    r = await client.post(
        '/api/files/upload',
        files=[('files', (name, data, content_type))],
        headers=OWNER_H,
    )
    assert r.status_code == 201, r.text
    return r.json()['files'][0]


# =====================================================================
# App factory
# =====================================================================


class TestAppFactory:

    @pytest.mark.asyncio
    async def test_health(self, client):
        r = await client.get('/health')
        assert r.status_code == 200
        assert r.json() == {'status': 'ok', 'environment': 'local'}

    @pytest.mark.asyncio
    async def test_request_id_propagated(self, client):
        r = await client.get('/health', headers={'X-Request-ID': 'req-12345678'})
        assert r.headers['x-request-id'] == 'req-12345678'

    @pytest.mark.asyncio
    async def test_request_id_generated(self, client):
        r = await client.get('/health')
        assert r.headers['x-request-id']

    def test_invalid_settings_rejected(self):
        with pytest.raises(ValueError, match='validation failed'):
            create_app(ShareSettings(image_quality=0))

    def test_non_local_requires_stores(self):
        settings = ShareSettings(
            environment='production',
            supabase_url='https://x.supabase.co',
            supabase_service_role_key='key',
            jwt_secret=SECRET,
        )
        with pytest.raises(ValueError, match='Missing: share_repo'):
            create_app(settings)

    def test_state_exposes_services(self, app):
        assert app.state.services.lifecycle is not None
        assert app.state.sweeper is not None


# =====================================================================
# Authentication
# =====================================================================


class TestAuthentication:

    @pytest.mark.asyncio
    @pytest.mark.parametrize('method,path', [
        ('get', '/api/files'),
        ('get', '/api/files/shared'),
        ('get', '/api/audit/me'),
        ('get', '/api/shares/link/' + 'a' * 32),
        ('get', '/api/shares/link/' + 'a' * 32 + '/download'),
    ])
    async def test_anonymous_rejected(self, client, method, path):
        r = await getattr(client, method)(path)
        assert r.status_code == 401
        assert r.json()['error'] == 'not_authenticated'

    @pytest.mark.asyncio
    async def test_bad_token_rejected(self, client):
        r = await client.get('/api/files', headers={'Authorization': 'Bearer junk'})
        assert r.status_code == 401


# =====================================================================
# Files
# =====================================================================


class TestFiles:

    @pytest.mark.asyncio
    async def test_upload_and_list(self, client):
        uploaded = await _upload(client)
        assert uploaded['name'] == 'report.pdf'
        assert uploaded['is_compressed'] is False

        r = await client.get('/api/files', headers=OWNER_H)
        body = r.json()
        assert body['total'] == 1
        assert body['files'][0]['id'] == uploaded['id']

    @pytest.mark.asyncio
    async def test_too_many_files(self, client):
        files = [('files', (f'{i}.txt', b'x', 'text/plain')) for i in range(11)]
        r = await client.post('/api/files/upload', files=files, headers=OWNER_H)
        assert r.status_code == 400
        assert r.json()['error'] == 'too_many_files'

    @pytest.mark.asyncio
    async def test_disallowed_type_rejected(self, client):
        files = [
            ('files', ('notes.txt', b'fine', 'text/plain')),
            ('files', ('setup.exe', b'MZ', 'application/octet-stream')),
        ]
        r = await client.post('/api/files/upload', files=files, headers=OWNER_H)
        assert r.status_code == 400
        assert r.json()['error'] == 'file_type_not_allowed'
        listing = await client.get('/api/files', headers=OWNER_H)
        assert listing.json()['total'] == 0

    @pytest.mark.asyncio
    async def test_oversize_upload_rejected(self, clock):
        app = create_app(
            ShareSettings(max_file_size=16),
            share_repo=InMemoryShareRepository(),
            file_repo=InMemoryFileRepository(),
            audit_store=InMemoryAuditStore(),
            blob_store=InMemoryBlobStore(),
            principal_resolver=JwtPrincipalResolver(SECRET),
            clock=clock,
            run_sweeper=False,
        )
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url='http://test') as c:
            files = [
                ('files', ('small.txt', b'x' * 16, 'text/plain')),
                ('files', ('large.txt', b'x' * 17, 'text/plain')),
            ]
            r = await c.post('/api/files/upload', files=files, headers=OWNER_H)
            listing = await c.get('/api/files', headers=OWNER_H)

        assert r.status_code == 413
        assert r.json() == {
            'error': 'file_too_large',
            'detail': 'large.txt exceeds the 16 byte upload limit',
        }
        assert listing.json()['total'] == 0

    @pytest.mark.asyncio
    async def test_get_and_download(self, client):
        uploaded = await _upload(client, name='notes final.txt', data=b'hi', content_type='text/plain')

        r = await client.get(f"/api/files/{uploaded['id']}", headers=OWNER_H)
        assert r.json()['file']['extension'] == 'txt'
        assert r.json()['file']['formatted_size'] == '2 Bytes'

        r = await client.get(f"/api/files/{uploaded['id']}/download", headers=OWNER_H)
        assert r.status_code == 200
        assert r.content == b'hi'
        assert "filename*=UTF-8''notes%20final.txt" in r.headers['content-disposition']

    @pytest.mark.asyncio
    async def test_stranger_gets_403(self, client):
        uploaded = await _upload(client)
        r = await client.get(f"/api/files/{uploaded['id']}", headers=ALICE_H)
        assert r.status_code == 403
        assert r.json()['error'] == 'access_denied'

    @pytest.mark.asyncio
    async def test_unknown_file_404(self, client):
        r = await client.get('/api/files/fil_missing', headers=OWNER_H)
        assert r.status_code == 404
        assert r.json() == {'error': 'not_found', 'detail': 'File not found'}

    @pytest.mark.asyncio
    async def test_delete(self, client):
        uploaded = await _upload(client)
        r = await client.delete(f"/api/files/{uploaded['id']}", headers=ALICE_H)
        assert r.status_code == 403
        r = await client.delete(f"/api/files/{uploaded['id']}", headers=OWNER_H)
        assert r.json() == {'status': 'deleted', 'id': uploaded['id']}

    @pytest.mark.asyncio
    async def test_stats(self, client):
        await _upload(client)
        r = await client.get('/api/files/stats', headers=OWNER_H)
        assert r.json()['total_files'] == 1


# =====================================================================
# Shares
# =====================================================================


class TestShares:

    @pytest.mark.asyncio
    async def test_share_with_user_then_shared_listing(self, client):
        uploaded = await _upload(client)
        r = await client.post(
            '/api/shares/user',
            json={'file_id': uploaded['id'], 'user_id': 'user_alice', 'permission': 'download'},
            headers=OWNER_H,
        )
        assert r.status_code == 201
        assert r.json()['share']['share_url'] is None

        r = await client.get('/api/files/shared', headers=ALICE_H)
        [item] = r.json()['files']
        assert item['file']['id'] == uploaded['id']
        assert item['share']['permission'] == 'download'

    @pytest.mark.asyncio
    async def test_self_share_400(self, client):
        uploaded = await _upload(client)
        r = await client.post(
            '/api/shares/user',
            json={'file_id': uploaded['id'], 'user_id': 'user_owner'},
            headers=OWNER_H,
        )
        assert r.status_code == 400
        assert r.json()['error'] == 'self_share'

    @pytest.mark.asyncio
    async def test_invalid_permission_422(self, client):
        uploaded = await _upload(client)
        r = await client.post(
            '/api/shares/link',
            json={'file_id': uploaded['id'], 'permission': 'none'},
            headers=OWNER_H,
        )
        assert r.status_code == 422

    @pytest.mark.asyncio
    async def test_link_flow(self, client):
        uploaded = await _upload(client, data=b'secret bytes')
        r = await client.post(
            '/api/shares/link',
            json={'file_id': uploaded['id'], 'permission': 'download'},
            headers=OWNER_H,
        )
        assert r.status_code == 201
        body = r.json()
        token = body['share']['link_token']
        assert body['share_url'] == f'https://files.example.com/shared/{token}'

        r = await client.get(f'/api/shares/link/{token}', headers=ALICE_H)
        assert r.status_code == 200
        assert r.json()['file']['name'] == 'report.pdf'
        assert r.json()['permission'] == 'download'

        r = await client.get(f'/api/shares/link/{token}/download', headers=ALICE_H)
        assert r.content == b'secret bytes'

        r = await client.delete(f"/api/shares/{body['share']['id']}", headers=OWNER_H)
        assert r.json()['share']['is_active'] is False

        r = await client.get(f'/api/shares/link/{token}', headers=ALICE_H)
        assert r.status_code == 404

    @pytest.mark.asyncio
    async def test_view_link_download_403(self, client):
        uploaded = await _upload(client)
        r = await client.post(
            '/api/shares/link',
            json={'file_id': uploaded['id']},
            headers=OWNER_H,
        )
        token = r.json()['share']['link_token']
        r = await client.get(f'/api/shares/link/{token}/download', headers=ALICE_H)
        assert r.status_code == 403
        assert r.json()['error'] == 'insufficient_permission'

    @pytest.mark.asyncio
    async def test_expired_link_410(self, client, clock):
        uploaded = await _upload(client)
        expires = clock.now() + timedelta(hours=1)
        r = await client.post(
            '/api/shares/link',
            json={'file_id': uploaded['id'], 'expires_at': expires.isoformat()},
            headers=OWNER_H,
        )
        token = r.json()['share']['link_token']

        clock.advance(minutes=61)
        r = await client.get(f'/api/shares/link/{token}', headers=ALICE_H)
        assert r.status_code == 410
        assert r.json()['error'] == 'share_expired'

    @pytest.mark.asyncio
    async def test_update_expiration_and_list(self, client, clock):
        uploaded = await _upload(client)
        r = await client.post(
            '/api/shares/user',
            json={'file_id': uploaded['id'], 'user_id': 'user_alice'},
            headers=OWNER_H,
        )
        share_id = r.json()['share']['id']

        new_expiry = clock.now() + timedelta(days=3)
        r = await client.patch(
            f'/api/shares/{share_id}/expiration',
            json={'expires_at': new_expiry.isoformat()},
            headers=OWNER_H,
        )
        assert r.status_code == 200
        assert r.json()['share']['expires_at'] == new_expiry.isoformat()

        r = await client.get(f"/api/shares/file/{uploaded['id']}", headers=ALICE_H)
        assert r.status_code == 403
        r = await client.get(f"/api/shares/file/{uploaded['id']}", headers=OWNER_H)
        assert [s['id'] for s in r.json()['shares']] == [share_id]


# =====================================================================
# Audit
# =====================================================================


class TestAudit:

    @pytest.mark.asyncio
    async def test_file_trail_is_owner_only(self, client):
        uploaded = await _upload(client)
        await client.post(
            '/api/shares/user',
            json={'file_id': uploaded['id'], 'user_id': 'user_alice'},
            headers=OWNER_H,
        )

        r = await client.get(f"/api/audit/file/{uploaded['id']}", headers=OWNER_H)
        body = r.json()
        assert [log['action'] for log in body['logs']] == ['share-to-user', 'upload']
        assert body['total_pages'] == 1

        r = await client.get(f"/api/audit/file/{uploaded['id']}", headers=ALICE_H)
        assert r.status_code == 403

    @pytest.mark.asyncio
    async def test_origin_recorded(self, client):
        await client.post(
            '/api/files/upload',
            files=[('files', ('a.txt', b'a', 'text/plain'))],
            headers={**OWNER_H, 'X-Forwarded-For': '203.0.113.7, 10.0.0.1', 'User-Agent': 'pytest'},
        )
        r = await client.get('/api/audit/me', headers=OWNER_H)
        [log] = r.json()['logs']
        assert log['ip_address'] == '203.0.113.7'
        assert log['user_agent'] == 'pytest'
