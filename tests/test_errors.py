from config import TestConfig
from edutrack import create_app


class RateLimitedConfig(TestConfig):
    RATELIMIT_ENABLED = True


def test_health_check(client):
    response = client.get('/api/health')
    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'OK'
    assert body['environment'] == 'test'
    assert body['uptime'] >= 0


def test_unknown_api_route(client):
    response = client.get('/api/does-not-exist')
    assert response.status_code == 404
    assert response.get_json() == {'error': 'API endpoint not found'}


def test_non_object_body_is_rejected(client):
    response = client.post('/api/auth/login', json=['not', 'an', 'object'])
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Request body must be a JSON object'


def test_validation_errors_list_every_field(client):
    response = client.post('/api/auth/login', json={'email': 'not-an-email'})
    assert response.status_code == 400
    fields = {detail['field'] for detail in response.get_json()['details']}
    assert fields == {'email', 'password', 'role'}


def test_parent_cannot_use_student_routes(client, make_user):
    parent = make_user('parent')
    response = client.get('/api/students/dashboard', headers=parent.headers)
    assert response.status_code == 403


def test_auth_routes_are_rate_limited():
    app = create_app(RateLimitedConfig)
    client = app.test_client()
    for _ in range(5):
        assert client.post('/api/auth/forgot-password', json={}).status_code == 400
    response = client.post('/api/auth/forgot-password', json={})
    assert response.status_code == 429
    assert response.get_json()['error'] == 'Too many authentication attempts, please try again later.'

    # Health checks are exempt
    for _ in range(3):
        assert client.get('/api/health').status_code == 200
