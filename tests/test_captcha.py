from datetime import datetime, timedelta

from edutrack import db
from edutrack.models import CaptchaChallenge
from edutrack.services import clean_expired_captchas


def fetch_challenge(app, client):
    response = client.get('/api/captcha')
    assert response.status_code == 200
    assert response.mimetype == 'image/png'
    assert response.data.startswith(b'\x89PNG')
    captcha_id = response.headers['X-Captcha-Id']
    with app.app_context():
        return captcha_id, db.session.get(CaptchaChallenge, captcha_id).text


def test_challenge_is_served_as_png(app, client):
    captcha_id, text = fetch_challenge(app, client)
    assert len(captcha_id) == 32
    assert len(text) == 6
    assert not set(text) & set('0O1lI')


def test_correct_answer_is_case_insensitive_and_single_use(app, client):
    captcha_id, text = fetch_challenge(app, client)
    response = client.post('/api/verify-captcha', json={'id': captcha_id, 'text': text.swapcase()})
    assert response.get_json() == {'success': True, 'message': 'CAPTCHA verified'}

    reused = client.post('/api/verify-captcha', json={'id': captcha_id, 'text': text})
    assert reused.status_code == 404


def test_wrong_answer_consumes_the_challenge(app, client):
    captcha_id, _ = fetch_challenge(app, client)
    response = client.post('/api/verify-captcha', json={'id': captcha_id, 'text': '!!!!!!'})
    assert response.status_code == 200
    assert response.get_json()['success'] is False
    with app.app_context():
        assert db.session.get(CaptchaChallenge, captcha_id) is None


def test_missing_fields(client):
    response = client.post('/api/verify-captcha', json={'id': 'abc'})
    assert response.status_code == 400


def test_expired_challenge(app, client):
    captcha_id, text = fetch_challenge(app, client)
    with app.app_context():
        db.session.get(CaptchaChallenge, captcha_id).expires_at = datetime.utcnow() - timedelta(seconds=1)
        db.session.commit()
    response = client.post('/api/verify-captcha', json={'id': captcha_id, 'text': text})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'CAPTCHA expired'


def test_cleanup_removes_only_expired(app):
    with app.app_context():
        now = datetime.utcnow()
        db.session.add_all([
            CaptchaChallenge(id='a' * 32, text='ABCDEF', expires_at=now - timedelta(minutes=1)),
            CaptchaChallenge(id='b' * 32, text='ABCDEF', expires_at=now + timedelta(minutes=1)),
        ])
        db.session.commit()
        assert clean_expired_captchas() == 1
        assert CaptchaChallenge.query.count() == 1
