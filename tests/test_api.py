"""Tests for the matching HTTP endpoint."""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from src import config
from src.matching.api import CORS_HEADERS, create_app
from src.matching.encoder import EncoderService
from src.matching.errors import ConfigurationError, SearchTimeoutError
from tests.conftest import FakeStore, make_row


@pytest.fixture
def match_store():
    return FakeStore(rows=[
        make_row(7, 'Asha', 0.83, skills=['python', 'sql'], description='data analyst'),
        make_row(1, 'Ravi', 0.5512, skills=['python', 'fastapi']),
        make_row(9, 'Mei', 0.2049, skills=['react']),
    ])


@pytest.fixture
def client(match_store, encoder):
    return TestClient(create_app(store=match_store, encoder=encoder))


def assert_cors(response):
    for header, value in CORS_HEADERS.items():
        assert response.headers[header] == value


def assert_timestamp(body):
    assert body['timestamp'].endswith('Z')
    datetime.fromisoformat(body['timestamp'].replace('Z', '+00:00'))


@pytest.mark.parametrize('path', ['/', '/match', '/anything/else'])
def test_preflight(client, path):
    response = client.options(path)
    assert response.status_code == 200
    assert response.content == b''
    assert_cors(response)


def test_preflight_does_not_touch_the_model():
    def broken_loader(cfg):
        raise OSError('should not load')

    client = TestClient(create_app(store=FakeStore(), encoder=EncoderService(loader=broken_loader)))
    response = client.options('/match')
    assert response.status_code == 200
    assert_cors(response)


def test_post_returns_ranked_results(client, match_store):
    response = client.post('/match', json={'task': 'query production data', 'matchCount': 5})

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['task'] == 'query production data'
    assert body['matchCount'] == 5
    assert len(body['results']) == 3
    for result in body['results']:
        assert result['similarity'] == f"{result['match_score'] * 100:.1f}%"
    assert body['results'][0]['id'] == 7
    assert body['results'][0]['similarity'] == '83.0%'
    assert_timestamp(body)
    assert_cors(response)


def test_post_at_root_path(client):
    response = client.post('/', json={'task': 'python'})
    assert response.status_code == 200
    assert response.json()['success'] is True


def test_match_count_defaults_to_five(client, match_store):
    response = client.post('/match', json={'task': 'python', 'matchCount': None})
    assert response.json()['matchCount'] == 5
    assert match_store.match_calls[0]['match_count'] == 5
    assert match_store.match_calls[0]['similarity_threshold'] == pytest.approx(config.MATCH_SIMILARITY_THRESHOLD)


def test_task_is_trimmed(client):
    response = client.post('/match', json={'task': '  python  '})
    assert response.json()['task'] == 'python'


def test_no_results_is_success(encoder):
    client = TestClient(create_app(store=FakeStore(rows=[]), encoder=encoder))
    response = client.post('/match', json={'task': 'cobol'})
    assert response.status_code == 200
    assert response.json()['results'] == []


@pytest.mark.parametrize('payload, message', [
    ({'task': 'python', 'matchCount': 100}, 'matchCount must be an integer between 1 and 50'),
    ({'task': 'python', 'matchCount': 0}, 'matchCount must be an integer between 1 and 50'),
    ({'task': 'python', 'matchCount': '5'}, 'matchCount must be an integer between 1 and 50'),
    ({'matchCount': 5}, 'Missing or invalid "task" field in request body'),
    ({'task': 42}, 'Missing or invalid "task" field in request body'),
    ({'task': '   '}, 'Task description cannot be empty'),
    (['python'], 'Request body must be a JSON object'),
])
def test_bad_request_bodies(client, match_store, payload, message):
    response = client.post('/match', json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body == {'success': False, 'error': message, 'timestamp': body['timestamp']}
    assert_timestamp(body)
    assert_cors(response)
    assert match_store.match_calls == []


def test_invalid_json(client, encoder):
    response = client.post('/match', content=b'{"task": ', headers={'content-type': 'application/json'})

    assert response.status_code == 400
    assert response.json()['error'] == 'Invalid JSON in request body'
    assert not encoder.is_loaded


def test_missing_body(client):
    response = client.post('/match')
    assert response.status_code == 400
    assert response.json()['success'] is False


@pytest.mark.parametrize('method', ['get', 'put', 'delete'])
def test_other_methods_not_allowed(client, method):
    response = client.request(method.upper(), '/match')

    assert response.status_code == 405
    body = response.json()
    assert body['success'] is False
    assert body['error'] == 'Method not allowed. Use POST.'
    assert_timestamp(body)


def test_search_failure_is_500_envelope(failing_search_store, encoder):
    client = TestClient(create_app(store=failing_search_store, encoder=encoder))

    response = client.post('/match', json={'task': 'python'})

    assert response.status_code == 500
    body = response.json()
    assert body['success'] is False
    assert 'match_members failed' in body['error']
    assert_timestamp(body)
    assert_cors(response)


def test_timeout_is_named_in_500_envelope(encoder):
    store = FakeStore()
    store.match_error = SearchTimeoutError('match_members timed out')
    client = TestClient(create_app(store=store, encoder=encoder))

    response = client.post('/match', json={'task': 'python'})

    assert response.status_code == 500
    assert 'timed out' in response.json()['error']


def test_model_load_failure_is_500_envelope(match_store):
    def broken_loader(cfg):
        raise OSError('disk full')

    client = TestClient(create_app(store=match_store, encoder=EncoderService(loader=broken_loader)))
    response = client.post('/match', json={'task': 'python'})

    assert response.status_code == 500
    assert 'disk full' in response.json()['error']


def test_unexpected_error_is_500_envelope(match_store, encoder, monkeypatch):
    def explode(*args, **kwargs):
        raise KeyError('surprise')

    monkeypatch.setattr(match_store, 'match_members', explode)
    client = TestClient(create_app(store=match_store, encoder=encoder))

    response = client.post('/match', json={'task': 'python'})

    assert response.status_code == 500
    assert response.json()['error'] == 'An unexpected error occurred'


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json() == {'status': 'ok', 'service': 'member-matcher', 'model_loaded': False}


def test_metrics_endpoint(client):
    response = client.get('/metrics/')
    assert response.status_code == 200
    assert 'member_matcher_search_latency_seconds' in response.text


def test_missing_store_config_fails_before_serving(monkeypatch):
    monkeypatch.setattr(config, 'STORE_URL', None)
    monkeypatch.setattr(config, 'STORE_SERVICE_KEY', None)

    with pytest.raises(ConfigurationError, match='STORE_URL, STORE_SERVICE_KEY'):
        create_app()


@pytest.mark.parametrize('path', ['/functions/v1/matchMembers', '/anything'])
def test_post_on_any_path(client, path):
    response = client.post(path, json={'task': 'python'})
    assert response.status_code == 200
    assert len(response.json()['results']) == 3


def test_other_methods_on_any_path_not_allowed(client):
    response = client.get('/functions/v1/matchMembers')
    assert response.status_code == 405
    assert response.json()['error'] == 'Method not allowed. Use POST.'


def test_integral_float_match_count_accepted(client, match_store):
    response = client.post('/match', json={'task': 'python', 'matchCount': 5.0})

    assert response.status_code == 200
    assert response.json()['matchCount'] == 5
    assert match_store.match_calls[0]['match_count'] == 5


def test_fractional_match_count_rejected(client):
    response = client.post('/match', json={'task': 'python', 'matchCount': 2.5})
    assert response.status_code == 400


def test_metrics_without_trailing_slash(client):
    response = client.get('/metrics')
    assert response.status_code == 200
    assert 'member_matcher_search_latency_seconds' in response.text
