"""Shared pytest fixtures for all tests."""

import json

import pytest
from fastapi.testclient import TestClient

from common.protocol import RenderChunk
from gateway.config import GatewaySettings
from gateway.exceptions import RemoteError
from gateway.main import create_app
from gateway.routing import RouteRegistry, build_route_config
from gateway.rpc_client import RpcResult


class FakeRpcClient:
    """
    Stands in for RpcClient.

    Replies are scripted per queue address; every call is recorded as
    (queue_address, payload, headers, timeout_ms).
    """

    def __init__(self):
        self.calls = []
        self.replies = {}
        self.closed = False

    def reply(self, queue_address, *results):
        """Queue results for an address; the last one is reused once exhausted."""
        self.replies[queue_address] = list(results)

    def ok(self, queue_address, data):
        self.reply(queue_address, RpcResult(reply=data))

    def fail(self, queue_address, code, message='failed'):
        self.reply(queue_address, RpcResult(error=RemoteError(code, message)))

    def payloads(self, queue_address):
        return [payload for address, payload, _, _ in self.calls if address == queue_address]

    async def call(self, route, payload, headers=None, timeout_ms=None):
        self.calls.append((route.queue_address, payload, headers, timeout_ms))
        scripted = self.replies.get(route.queue_address)
        if not scripted:
            return RpcResult(error=RemoteError(500, f'no reply scripted for {route.queue_address}'))
        if len(scripted) > 1:
            return scripted.pop(0)
        return scripted[0]

    async def close(self):
        self.closed = True


class FakeCodecClient:
    """Stands in for CodecClient; yields the scripted chunks or raises."""

    def __init__(self):
        self.requests = []
        self.chunks = []
        self.error_after = None
        self.error_after_exc = None
        self.closed = False

    async def render(self, path, output_format):
        self.requests.append((path, output_format))
        for idx, chunk in enumerate(self.chunks):
            if self.error_after is not None and idx == self.error_after:
                raise self.error_after_exc
            yield chunk
        if self.error_after is not None and self.error_after >= len(self.chunks):
            raise self.error_after_exc

    def fail_at(self, index, exc):
        self.error_after = index
        self.error_after_exc = exc

    async def close(self):
        self.closed = True


def _identity_headers(user_id, alias=None, admin=False, attributes=None):
    headers = {'X-Auth-User-Id': user_id}
    if alias:
        headers['X-Auth-User-Alias'] = alias
    if admin:
        headers['X-Auth-User-Roles'] = 'admin'
    if attributes is not None:
        headers['X-Auth-User-Attributes'] = json.dumps(attributes)
    return headers


@pytest.fixture
def as_user():
    """Headers the authenticating edge sets for a signed-in caller."""
    return _identity_headers


@pytest.fixture
def settings():
    return GatewaySettings(
        public_host='http://files.test',
        files_attach_point='/api/files',
        users_attach_point='/api/users',
        users_audience='*.test',
        gce_channel='channel-1',
        gce_resource_id='resource-1',
        gce_token='gce-token',
        gce_bucket='uploads',
        gce_pubsub_subscriptions=('projects/p/subscriptions/uploads',),
        gce_pubsub_token='push-token',
    )


@pytest.fixture
def rpc():
    return FakeRpcClient()


@pytest.fixture
def codec():
    return FakeCodecClient()


@pytest.fixture
def registry():
    return RouteRegistry(build_route_config())


@pytest.fixture
def app(settings, rpc, codec, registry):
    return create_app(settings=settings, rpc_client=rpc, codec_client=codec, route_registry=registry)


@pytest.fixture
def client(app):
    """Create FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def preview_chunks():
    return [
        RenderChunk(data=b'\xff\xd8first', content_type='image/jpeg'),
        RenderChunk(data=b'second'),
    ]
