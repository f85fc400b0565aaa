"""Tests for the file API endpoints."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from gateway.exceptions import RpcTimeoutError, TransportError
from gateway.identity import User
from gateway.main import create_app
from gateway.rpc_client import RpcResult

BOB = dict(user_id='bob@example.com', alias='bob')
ALICE = dict(user_id='alice@example.com', alias='alice')


def bob_record(**overrides):
    record = {
        'uploadId': 'u-1',
        'owner': 'bob@example.com',
        'alias': 'bob',
        'public': False,
        'status': 'processed',
        'location': 'gs://uploads/u-1',
        'meta': {'name': 'Car'},
    }
    record.update(overrides)
    return record


def upload_body(**attributes):
    body = {
        'md5Hash': 'a' * 32,
        'contentType': 'application/octet-stream',
        'contentLength': 10,
    }
    body.update(attributes)
    return {'data': {'type': 'file', 'attributes': body}}


class TestListFiles:

    def test_anonymous_defaults(self, client, rpc):
        rpc.ok('files.list', {'page': 1, 'pages': 1, 'cursor': 10, 'files': [bob_record(public=True)]})

        response = client.get('/api/files')

        assert response.status_code == 200
        assert rpc.payloads('files.list') == [{'order': 'DESC', 'limit': 10, 'filter': {}, 'public': True}]
        body = response.json()
        assert body['meta'] == {
            'id': response.headers['X-Request-ID'],
            'page': 1,
            'pages': 1,
            'cursor': 10,
        }
        assert body['links'] == {
            'self': 'http://files.test/api/files?order=DESC&limit=10&offset=0&filter=%257B%257D&pub=1',
        }
        resource = body['data'][0]
        assert resource['id'] == 'u-1'
        assert 'location' not in resource['attributes']
        assert resource['attributes']['owner'] == 'bob'

    def test_meta_mirrors_only_reported_fields(self, client, rpc):
        rpc.ok('files.list', {'files': []})

        body = client.get('/api/files').json()

        assert set(body['meta']) == {'id'}
        assert body['data'] == []

    def test_next_link(self, client, rpc):
        rpc.ok('files.list', {'page': 1, 'pages': 2, 'cursor': 10, 'files': []})

        links = client.get('/api/files', params={'limit': '10'}).json()['links']

        assert links['next'] == links['self'].replace('offset=0', 'offset=10')

    @pytest.mark.parametrize('limit', ['0', '101', 'abc'])
    def test_limit_out_of_range_uses_default(self, client, rpc, limit):
        rpc.ok('files.list', {'files': []})

        client.get('/api/files', params={'limit': limit})

        assert rpc.payloads('files.list')[0]['limit'] == 10

    def test_admin_owner_private(self, client, rpc, as_user):
        rpc.ok('files.list', {'page': 1, 'pages': 1, 'files': [bob_record()]})

        response = client.get(
            '/api/files',
            params={'owner': 'bob', 'pub': '0'},
            headers=as_user('root@example.com', admin=True),
        )

        assert response.status_code == 200
        payload = rpc.payloads('files.list')[0]
        assert payload['owner'] == 'bob'
        assert payload['public'] is False
        assert response.json()['data'][0]['attributes']['location'] == 'gs://uploads/u-1'

    def test_foreign_owner_forced_public(self, client, rpc, as_user):
        rpc.ok('files.list', {'files': []})

        client.get('/api/files', params={'owner': 'bob', 'pub': '0'}, headers=as_user(**ALICE))

        payload = rpc.payloads('files.list')[0]
        assert payload['owner'] == 'bob'
        assert payload['public'] is True

    def test_owner_sees_own_private_fields_in_list(self, client, rpc, as_user):
        rpc.ok('files.list', {'files': [bob_record()]})

        response = client.get('/api/files', params={'owner': 'bob'}, headers=as_user(**BOB))

        assert response.json()['data'][0]['attributes']['location'] == 'gs://uploads/u-1'

    def test_bad_filter(self, client, rpc):
        response = client.get('/api/files', params={'filter': '{nope'})

        assert response.status_code == 400
        error = response.json()['errors'][0]
        assert error['code'] == 'VALIDATION_ERROR'
        assert 'filter' in error['title']
        assert rpc.calls == []

    def test_request_id_travels_to_backend(self, client, rpc):
        rpc.ok('files.list', {'files': []})

        response = client.get('/api/files')

        _, _, headers, _ = rpc.calls[0]
        assert headers == {'x-request-id': response.headers['X-Request-ID']}

    def test_timeout(self, client, rpc):
        rpc.reply('files.list', RpcResult(error=RpcTimeoutError('request timed out')))

        response = client.get('/api/files')

        assert response.status_code == 504
        assert response.json()['errors'][0]['title'] == 'request timed out'
        assert 'files.list' not in response.text

    def test_transport_failure(self, client, rpc):
        rpc.reply('files.list', RpcResult(error=TransportError('backend unavailable')))

        assert client.get('/api/files').status_code == 503


class TestInfo:

    def test_owner_gets_private_record(self, client, rpc, as_user):
        rpc.ok('files.info', {'username': 'bob@example.com', 'file': bob_record()})

        response = client.get('/api/files/info/bob/u-1', headers=as_user(**BOB))

        assert response.status_code == 200
        attributes = response.json()['data']['attributes']
        assert attributes['location'] == 'gs://uploads/u-1'
        assert rpc.payloads('files.info') == [{'filename': 'u-1', 'username': 'bob'}]

    def test_other_user_gets_not_found(self, client, rpc, as_user):
        rpc.ok('files.info', {'username': 'bob@example.com', 'file': bob_record()})

        response = client.get('/api/files/info/bob/u-1', headers=as_user(**ALICE))

        assert response.status_code == 404
        assert 'gs://' not in response.text

    def test_anonymous_sees_public_record_redacted(self, client, rpc):
        rpc.ok('files.info', bob_record(public=True))

        response = client.get('/api/files/info/bob/u-1')

        assert response.status_code == 200
        assert 'location' not in response.json()['data']['attributes']

    def test_admin_sees_internal_fields_of_public_record(self, client, rpc, as_user):
        rpc.ok('files.info', bob_record(public=True))

        response = client.get('/api/files/info/bob/u-1', headers=as_user('root@example.com', admin=True))

        assert response.json()['data']['attributes']['location'] == 'gs://uploads/u-1'

    def test_remote_status_is_preserved(self, client, rpc):
        rpc.fail('files.info', 404, 'could not find file')

        response = client.get('/api/files/info/bob/u-1')

        assert response.status_code == 404
        assert response.json()['errors'][0]['title'] == 'could not find file'


class TestPublicGet:

    def test_public_record(self, client, rpc):
        rpc.ok('files.get', bob_record(public=True))

        response = client.get('/api/files/public/bob/u-1')

        assert response.status_code == 200
        assert rpc.payloads('files.get') == [{'filename': 'u-1', 'alias': 'bob'}]
        assert 'location' not in response.json()['data']['attributes']

    def test_forbidden_becomes_not_found(self, client, rpc):
        rpc.fail('files.get', 403, 'private')

        response = client.get('/api/files/public/bob/u-1')

        assert response.status_code == 404
        assert response.json()['errors'][0]['title'] == 'could not find associated data'

    def test_private_record_not_found(self, client, rpc):
        rpc.ok('files.get', bob_record())

        assert client.get('/api/files/public/bob/u-1').status_code == 404


class TestDownload:

    def test_signed_url_redirects(self, client, rpc, as_user):
        rpc.ok('files.download', 'https://storage/signed')

        response = client.get('/api/files/download/u-1', headers=as_user(**BOB), follow_redirects=False)

        assert response.status_code == 302
        assert response.headers['location'] == 'https://storage/signed'
        assert rpc.payloads('files.download') == [{'uploadId': 'u-1', 'username': 'bob@example.com'}]

    def test_redirect_flag_with_sizes(self, client, rpc):
        rpc.ok('files.download', {'uploadId': 'u-1', 'url': 'https://storage/model', 'previewSize': 100, 'modelSize': 2048})

        response = client.get('/api/files/download/u-1', params={'redirect': '1'}, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers['location'] == 'https://storage/model'
        assert response.headers['X-Content-Preview-Size'] == '100'
        assert response.headers['X-Content-Model-Size'] == '2048'
        assert rpc.payloads('files.download') == [{'uploadId': 'u-1'}]

    def test_document(self, client, rpc):
        rpc.ok('files.download', {'uploadId': 'u-1', 'urls': ['https://a', 'https://b'], 'files': []})

        response = client.get('/api/files/download/u-1')

        assert response.status_code == 200
        data = response.json()['data']
        assert data == {
            'type': 'download',
            'id': 'u-1',
            'attributes': {'urls': ['https://a', 'https://b'], 'files': []},
        }


class TestPlayer:

    def test_player_meta(self, client, rpc):
        rpc.ok('files.download', {
            'name': 'Car',
            'username': 'bob',
            'files': [
                {'type': 'c-bin', 'contentLength': 10, 'decompressedLength': 40},
                {'type': 'c-texture'},
                {'type': 'c-preview'},
            ],
            'urls': ['https://bin', 'https://texture', 'https://preview'],
        })

        response = client.get('/api/files/player/u-1.json')

        assert response.status_code == 200
        assert response.json() == {
            'name': 'Car',
            'owner': 'bob',
            'file': 'https://bin',
            'size': 40,
            'materials': [{'texture': 'https://texture'}],
        }
        assert rpc.payloads('files.download') == [{'uploadId': 'u-1'}]

    def test_requires_json_suffix(self, client, rpc):
        assert client.get('/api/files/player/u-1').status_code == 404
        assert rpc.calls == []


class TestUpload:

    def test_requires_identity(self, client, rpc):
        response = client.post('/api/files', json=upload_body())

        assert response.status_code == 401
        assert rpc.calls == []

    def test_no_quota_fails_before_any_call(self, client, rpc, as_user):
        response = client.post('/api/files', json=upload_body(), headers=as_user(**BOB, attributes={'models': 0}))

        assert response.status_code == 402
        assert rpc.calls == []

    def test_success(self, client, rpc, as_user):
        rpc.ok('users.updateMetadata', {'$incr': {'models': 4}})
        rpc.ok('files.upload', {'uploadId': 'u-9', 'location': 'https://upload/session'})

        response = client.post(
            '/api/files',
            json=upload_body(meta={'name': 'Car', 'tags': [' Red ']}),
            headers={**as_user(**BOB, attributes={'models': 5}), 'Origin': 'https://app.test'},
        )

        assert response.status_code == 201
        assert response.json()['data'] == {
            'type': 'upload',
            'id': 'u-9',
            'links': {'self': 'https://upload/session'},
        }
        assert rpc.payloads('users.updateMetadata') == [{
            'username': 'bob@example.com',
            'audience': '*.test',
            'metadata': {'$incr': {'models': -1}},
        }]
        payload = rpc.payloads('files.upload')[0]
        assert payload['username'] == 'bob@example.com'
        assert payload['origin'] == 'https://app.test'
        assert payload['meta'] == {'name': 'Car', 'tags': ['red']}

    def test_exhausted_quota_is_refunded(self, client, rpc, as_user):
        rpc.reply(
            'users.updateMetadata',
            RpcResult(reply={'$incr': {'models': -1}}),
            RpcResult(reply={'$incr': {'models': 0}}),
        )

        response = client.post('/api/files', json=upload_body(), headers=as_user(**BOB))

        assert response.status_code == 402
        increments = [p['metadata']['$incr']['models'] for p in rpc.payloads('users.updateMetadata')]
        assert increments == [-1, 1]
        assert rpc.payloads('files.upload') == []

    def test_backend_payment_required_refunds(self, client, rpc, as_user):
        rpc.ok('users.updateMetadata', {'$incr': {'models': 2}})
        rpc.fail('files.upload', 402, 'no more models')

        response = client.post('/api/files', json=upload_body(), headers=as_user(**BOB))

        assert response.status_code == 402
        increments = [p['metadata']['$incr']['models'] for p in rpc.payloads('users.updateMetadata')]
        assert increments == [-1, 1]

    def test_refund_uses_longer_timeout(self, client, rpc, as_user):
        rpc.ok('users.updateMetadata', {'$incr': {'models': 2}})
        rpc.fail('files.upload', 402, 'no more models')

        client.post('/api/files', json=upload_body(), headers=as_user(**BOB))

        timeouts = [timeout for address, _, _, timeout in rpc.calls if address == 'users.updateMetadata']
        assert timeouts == [None, 10000]

    def test_other_backend_failure_keeps_quota(self, client, rpc, as_user):
        rpc.ok('users.updateMetadata', {'$incr': {'models': 2}})
        rpc.fail('files.upload', 400, 'bad checksum')

        response = client.post('/api/files', json=upload_body(), headers=as_user(**BOB))

        assert response.status_code == 400
        assert len(rpc.payloads('users.updateMetadata')) == 1

    def test_failed_refund_is_logged(self, client, rpc, as_user):
        rpc.reply(
            'users.updateMetadata',
            RpcResult(reply={'$incr': {'models': 2}}),
            RpcResult(error=RpcTimeoutError('request timed out')),
        )
        rpc.fail('files.upload', 402, 'no more models')

        with patch('gateway.services.quota_service.logger') as logger:
            response = client.post('/api/files', json=upload_body(), headers=as_user(**BOB))

        assert response.status_code == 402
        message = logger.error.call_args[0][0]
        assert 'quota reconciliation required' in message
        assert 'bob@example.com' in message

    def test_invalid_body(self, client, rpc, as_user):
        response = client.post('/api/files', json={'data': {'type': 'file', 'attributes': {}}}, headers=as_user(**BOB))

        assert response.status_code == 400
        assert rpc.calls == []

    def test_body_must_be_json(self, client, rpc, as_user):
        response = client.post(
            '/api/files',
            content=b'not json',
            headers={**as_user(**BOB), 'Content-Type': 'application/json'},
        )

        assert response.status_code == 400


class TestMutations:

    def test_finish(self, client, rpc, as_user):
        rpc.ok('files.finish', {'uploadId': 'u-1', 'alias': 'bob'})

        response = client.patch('/api/files', json={'data': {'type': 'upload', 'id': 'u-1'}}, headers=as_user(**BOB))

        assert response.status_code == 202
        assert response.headers['location'] == 'http://files.test/api/files/info/bob/u-1'
        assert rpc.payloads('files.finish') == [{'id': 'u-1', 'username': 'bob@example.com'}]

    def test_access(self, client, rpc, as_user):
        rpc.ok('files.access', None)

        response = client.put(
            '/api/files/access',
            json={'data': {'type': 'file', 'id': 'u-1', 'attributes': {'public': True}}},
            headers=as_user(**BOB),
        )

        assert response.status_code == 204
        assert rpc.payloads('files.access') == [{'filename': 'u-1', 'setPublic': True, 'username': 'bob@example.com'}]

    def test_access_requires_identity(self, client, rpc):
        response = client.put('/api/files/access', json={})

        assert response.status_code == 401
        assert response.json()['errors'][0]['status'] == '401'

    def test_update_normalizes_tags(self, client, rpc, as_user):
        rpc.ok('files.update', {'uploadId': 'u-1'})

        response = client.patch(
            '/api/files/update',
            json={'data': {'type': 'file', 'id': 'u-1', 'attributes': {'meta': {'tags': [' Car ', 'RED']}}}},
            headers=as_user(**BOB),
        )

        assert response.status_code == 204
        assert rpc.payloads('files.update') == [{
            'uploadId': 'u-1',
            'meta': {'tags': ['car', 'red']},
            'username': 'bob@example.com',
        }]

    def test_update_rejects_unknown_meta(self, client, rpc, as_user):
        response = client.patch(
            '/api/files/update',
            json={'data': {'type': 'file', 'id': 'u-1', 'attributes': {'meta': {'bogus': 1}}}},
            headers=as_user(**BOB),
        )

        assert response.status_code == 400
        assert rpc.calls == []

    def test_remove_by_owner(self, client, rpc, as_user):
        rpc.ok('files.remove', None)

        response = client.delete('/api/files/u-1', headers=as_user(**BOB))

        assert response.status_code == 200
        assert rpc.payloads('files.remove') == [{'filename': 'u-1', 'username': 'bob@example.com'}]

    def test_remove_by_admin(self, client, rpc, as_user):
        rpc.ok('files.remove', None)

        client.delete('/api/files/u-1', headers=as_user('root@example.com', admin=True))

        assert rpc.payloads('files.remove') == [{'filename': 'u-1'}]

    def test_process(self, client, rpc, as_user):
        rpc.ok('files.process', None)

        response = client.post(
            '/api/files/process',
            json={'data': {'type': 'file', 'id': 'u-1', 'attributes': {'export': {'type': 'stl'}}}},
            headers=as_user(**BOB),
        )

        assert response.status_code == 202
        assert rpc.payloads('files.process') == [{
            'uploadId': 'u-1',
            'username': 'bob@example.com',
            'export': {'type': 'stl', 'meta': {}},
        }]


class TestAppSurface:

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.json()['status'] == 'healthy'

    def test_ready(self, client, rpc):
        rpc.ok('files.list', {'files': []})

        assert client.get('/ready').status_code == 200

    def test_not_ready(self, client, rpc):
        rpc.reply('files.list', RpcResult(error=TransportError('backend unavailable')))

        assert client.get('/ready').status_code == 503

    def test_malformed_identity_attributes(self, client, rpc):
        response = client.get('/api/files', headers={'X-Auth-User-Id': 'bob', 'X-Auth-User-Attributes': '[1]'})

        assert response.status_code == 400
        assert rpc.calls == []

    def test_custom_identity_resolver(self, settings, rpc, codec, registry):
        app = create_app(
            settings=settings,
            rpc_client=rpc,
            codec_client=codec,
            route_registry=registry,
            identity_resolver=lambda request: User(id='svc@example.com', is_admin=True),
        )
        rpc.ok('files.remove', None)

        response = TestClient(app).delete('/api/files/u-1')

        assert response.status_code == 200
        assert rpc.payloads('files.remove') == [{'filename': 'u-1'}]

    def test_shutdown_closes_clients(self, app, rpc, codec):
        with TestClient(app):
            pass

        assert rpc.closed
        assert codec.closed
