from datetime import date, datetime, timedelta

import pytest

from conftest import PASSWORD
from edutrack import db
from edutrack.models import AuditLog, User


def registration_payload(**overrides):
    payload = {
        'firstName': 'Maya',
        'lastName': 'Lopez',
        'email': 'Maya.Lopez@School.edu',
        'password': 'secret123',
        'confirmPassword': 'secret123',
        'phone': '+15551234567',
        'dateOfBirth': '2009-04-12',
        'role': 'student',
        'address': {'street': '42 Oak Avenue', 'city': 'Boston', 'state': 'MA', 'zipCode': '02101'},
        'terms': True,
        'roleData': {'grade': '9'},
        'captchaToken': 'math-captcha-1',
    }
    payload.update(overrides)
    return payload


def login_payload(email, **overrides):
    payload = {'email': email, 'password': PASSWORD, 'role': 'student', 'captchaToken': 'math-captcha-1'}
    payload.update(overrides)
    return payload


def test_register_creates_user_and_profile(client):
    response = client.post('/api/auth/register', json=registration_payload())
    assert response.status_code == 201
    body = response.get_json()
    assert body['user']['email'] == 'maya.lopez@school.edu'
    assert body['profile']['studentId'] == f'STU{date.today().year}0001'
    assert body['profile']['grade'] == '9'
    assert body['token'] and body['rememberToken']
    assert body['requiresEmailVerification'] is True

    me = client.get('/api/auth/me', headers={'Authorization': f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.get_json()['profile']['studentId'] == body['profile']['studentId']


def test_register_teacher_uses_subject_as_department(client):
    response = client.post('/api/auth/register', json=registration_payload(
        email='t@school.edu', role='teacher',
        roleData={'subject': 'Physics', 'qualification': 'MSc', 'experience': '4'},
    ))
    assert response.status_code == 201
    profile = response.get_json()['profile']
    assert profile['teacherId'].startswith('TCH')
    assert profile['department'] == 'Physics'
    assert profile['subjects'] == ['Physics']
    assert profile['totalExperience'] == 4


def test_register_reports_field_errors(client):
    response = client.post('/api/auth/register', json=registration_payload(
        confirmPassword='different', address={'street': 'x', 'city': 'Boston', 'state': 'MA', 'zipCode': '02101'},
        terms=False,
    ))
    assert response.status_code == 400
    body = response.get_json()
    assert body['error'] == 'Validation failed'
    fields = {detail['field'] for detail in body['details']}
    assert {'confirmPassword', 'address.street', 'terms'} <= fields


def test_register_requires_grade_for_students(client):
    response = client.post('/api/auth/register', json=registration_payload(roleData={}))
    assert response.status_code == 400
    assert response.get_json()['details'][0]['field'] == 'roleData.grade'


def test_register_requires_captcha(client):
    payload = registration_payload()
    del payload['captchaToken']
    response = client.post('/api/auth/register', json=payload)
    assert response.status_code == 400
    assert response.get_json()['error'] == 'CAPTCHA verification required'


def test_register_rejects_duplicate_email(client, make_user):
    make_user('student', email='maya.lopez@school.edu')
    response = client.post('/api/auth/register', json=registration_payload())
    assert response.status_code == 409
    assert response.get_json()['error'] == 'User already exists with this email'


def test_recaptcha_rejection(client, monkeypatch):
    class FakeResponse:
        def raise_for_status(self):
            pass

        def json(self):
            return {'success': False, 'error-codes': ['invalid-input-response']}

    calls = []

    def fake_post(url, data=None, **kwargs):
        calls.append(data)
        return FakeResponse()

    monkeypatch.setattr('edutrack.auth.captcha.requests.post', fake_post)
    response = client.post('/api/auth/register', json=registration_payload(captchaToken='google-token'))
    assert response.status_code == 400
    assert response.get_json()['error'] == 'CAPTCHA verification failed'
    assert calls[0]['response'] == 'google-token'


def test_login_success_returns_token(client, make_user):
    user = make_user('student')
    response = client.post('/api/auth/login', json=login_payload(user.email))
    assert response.status_code == 200
    body = response.get_json()
    assert body['message'] == 'Login successful'
    assert body['token']
    assert body['rememberToken'] is None
    assert body['profile']['studentId'] == user.code


def test_login_with_wrong_role_is_rejected(client, make_user):
    user = make_user('student')
    response = client.post('/api/auth/login', json=login_payload(user.email, role='teacher'))
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Invalid credentials'


def test_repeated_failures_lock_the_account(app, client, make_user):
    user = make_user('student')
    for _ in range(5):
        response = client.post('/api/auth/login', json=login_payload(user.email, password='wrong-pass'))
        assert response.status_code == 401

    response = client.post('/api/auth/login', json=login_payload(user.email))
    assert response.status_code == 423

    with app.app_context():
        stored = db.session.get(User, user.id)
        assert stored.login_attempts == 5
        assert stored.is_locked
        assert AuditLog.query.filter_by(user_id=user.id, action='Failed Login').count() == 5


def test_remember_token_restores_session(app, make_user):
    user = make_user('student')
    response = app.test_client().post('/api/auth/login', json=login_payload(user.email, rememberMe=True))
    remember_token = response.get_json()['rememberToken']
    assert remember_token

    restored = app.test_client().post('/api/auth/restore-session', json={'rememberToken': remember_token})
    assert restored.status_code == 200
    assert restored.get_json()['user']['id'] == user.id

    rejected = app.test_client().post('/api/auth/restore-session', json={'rememberToken': 'bogus'})
    assert rejected.status_code == 401


def test_logout_clears_remember_token(app, client, make_user):
    user = make_user('student')
    client.post('/api/auth/login', json=login_payload(user.email, rememberMe=True))
    response = client.post('/api/auth/logout')
    assert response.status_code == 200
    with app.app_context():
        assert db.session.get(User, user.id).remember_token is None
    assert client.get('/api/auth/me').status_code == 401


def test_me_requires_token(client):
    response = client.get('/api/auth/me')
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Access token required'


def test_me_rejects_invalid_token(client):
    response = client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-jwt'})
    assert response.status_code == 401


def test_verify_email(app, client, make_user):
    user = make_user('parent')
    with app.app_context():
        stored = db.session.get(User, user.id)
        token = stored.generate_email_verification_token()
        db.session.commit()

    assert client.get('/api/auth/verify-email/wrong').status_code == 400
    response = client.get(f'/api/auth/verify-email/{token}')
    assert response.status_code == 200
    with app.app_context():
        assert db.session.get(User, user.id).is_email_verified
    assert client.get(f'/api/auth/verify-email/{token}').status_code == 400


@pytest.mark.parametrize('email', ['student1@school.edu', 'nobody@school.edu'])
def test_forgot_password_answer_does_not_leak_accounts(client, make_user, email):
    make_user('student')
    response = client.post('/api/auth/forgot-password', json={'email': email})
    assert response.status_code == 200
    assert response.get_json()['message'].startswith('If an account with that email exists')


def test_reset_password_unlocks_account(app, client, make_user):
    user = make_user('student')
    with app.app_context():
        stored = db.session.get(User, user.id)
        stored.login_attempts = 5
        stored.lock_until = None
        token = stored.generate_password_reset_token()
        db.session.commit()

    response = client.post('/api/auth/reset-password', json={
        'token': token, 'password': 'new-secret', 'confirmPassword': 'new-secret',
    })
    assert response.status_code == 200
    login = client.post('/api/auth/login', json=login_payload(user.email, password='new-secret'))
    assert login.status_code == 200

    reused = client.post('/api/auth/reset-password', json={
        'token': token, 'password': 'another1', 'confirmPassword': 'another1',
    })
    assert reused.status_code == 400


def test_bearer_token_decides_identity_over_session(client, make_user):
    first, second = make_user('student'), make_user('student')
    assert client.post('/api/auth/login', json=login_payload(first.email)).status_code == 200

    response = client.get('/api/auth/me', headers=second.headers)
    assert response.status_code == 200
    assert response.get_json()['user']['email'] == second.email


def test_session_cookie_alone_is_not_enough(client, make_user):
    user = make_user('student')
    assert client.post('/api/auth/login', json=login_payload(user.email)).status_code == 200

    assert client.get('/api/auth/me').status_code == 401
    garbage = client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-jwt'})
    assert garbage.status_code == 401
    assert client.get('/api/auth/me', headers=user.headers).status_code == 200


def test_login_after_lock_expiry_resets_attempts(app, client, make_user):
    user = make_user('student')
    with app.app_context():
        stored = db.session.get(User, user.id)
        stored.login_attempts = 5
        stored.lock_until = datetime.utcnow() - timedelta(minutes=1)
        db.session.commit()

    response = client.post('/api/auth/login', json=login_payload(user.email))
    assert response.status_code == 200
    with app.app_context():
        stored = db.session.get(User, user.id)
        assert stored.login_attempts == 0
        assert stored.lock_until is None


def test_register_builds_profile_without_session_warnings(client, recwarn):
    response = client.post('/api/auth/register', json=registration_payload(
        email='parent@school.edu', role='parent', roleData={'occupation': 'Nurse'},
    ))
    assert response.status_code == 201
    assert response.get_json()['profile']['parentId'].startswith('PAR')
    assert not [w for w in recwarn if 'not in session' in str(w.message)]
