from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from config import TestConfig
from edutrack import create_app, db
from edutrack.models import User
from edutrack.security import create_access_token
from edutrack.services import create_role_profile

PASSWORD = 'secret123'


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def auth_headers(user):
    return {'Authorization': f'Bearer {create_access_token(user)}'}


@pytest.fixture
def make_user(app):
    """Creates a user with its role profile and returns plain ids plus bearer headers."""
    counter = {'n': 0}

    def _make(role='student', email=None, role_data=None, **profile_fields):
        counter['n'] += 1
        email = email or f'{role}{counter["n"]}@school.edu'
        if role_data is None:
            role_data = {'student': {'grade': '9'}, 'teacher': {'subject': 'Mathematics'},
                         'parent': {'occupation': 'Engineer'}}[role]
        with app.app_context():
            user = User(first_name='Test', last_name=f'{role.title()}{counter["n"]}', email=email,
                        phone='+15551234567', date_of_birth=date(1990, 1, 1), role=role,
                        street='12 Main Street', city='Springfield', state='Illinois', zip_code='62701')
            user.set_password(PASSWORD)
            db.session.add(user)
            db.session.flush()
            profile = create_role_profile(user, role_data)
            for field, value in profile_fields.items():
                setattr(profile, field, value)
            db.session.commit()
            return SimpleNamespace(
                id=user.id,
                email=user.email,
                profile_id=profile.id,
                code=getattr(profile, f'{role}_code'),
                headers=auth_headers(user),
            )
    return _make


@pytest.fixture
def teacher(make_user):
    return make_user('teacher')


@pytest.fixture
def student(make_user):
    return make_user('student', class_name='9A', section='A')


@pytest.fixture
def subject(client, teacher):
    response = client.post('/api/teachers/subjects', headers=teacher.headers, json={
        'name': 'Mathematics',
        'code': 'math9',
        'grade': '9',
        'schedule': [
            {'day': 'Monday', 'startTime': '10:00', 'endTime': '11:00', 'room': 'R1'},
            {'day': 'Monday', 'startTime': '08:00', 'endTime': '09:00', 'room': 'R1'},
        ],
    })
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def iso(moment):
    return moment.strftime('%Y-%m-%dT%H:%M:%S')


def in_days(days):
    return iso(datetime.utcnow() + timedelta(days=days))
