from datetime import datetime, timedelta

from conftest import in_days
from edutrack import db
from edutrack.models import Notification, User
from edutrack.services import clean_expired_notifications, create_notification


def announce(client, teacher, recipient_ids, **overrides):
    payload = {'title': 'Sports day', 'message': 'Friday at 9am', 'recipientIds': recipient_ids}
    payload.update(overrides)
    return client.post('/api/notifications', headers=teacher.headers, json=payload)


def test_teacher_announcement_reaches_recipients(client, teacher, student):
    response = announce(client, teacher, [student.id], priority='high')
    assert response.status_code == 201
    body = response.get_json()
    assert body['type'] == 'announcement'
    assert body['priority'] == 'high'

    listing = client.get('/api/notifications', headers=student.headers).get_json()
    assert listing['unreadCount'] == 1
    assert listing['notifications'][0]['read'] is False
    assert listing['notifications'][0]['createdBy'].startswith('Test Teacher')


def test_mark_as_read_is_idempotent(client, teacher, student):
    notification_id = announce(client, teacher, [student.id]).get_json()['id']
    url = f'/api/notifications/{notification_id}/read'

    first = client.post(url, headers=student.headers)
    assert first.status_code == 200
    second = client.post(url, headers=student.headers)
    assert second.get_json()['readAt'] == first.get_json()['readAt']
    assert client.get('/api/notifications/unread-count', headers=student.headers).get_json() == {'count': 0}


def test_non_recipient_cannot_read(client, make_user, teacher, student):
    notification_id = announce(client, teacher, [student.id]).get_json()['id']
    stranger = make_user('parent')
    response = client.post(f'/api/notifications/{notification_id}/read', headers=stranger.headers)
    assert response.status_code == 404


def test_unknown_recipient_is_rejected(client, teacher):
    response = announce(client, teacher, [9999])
    assert response.status_code == 400


def test_students_cannot_announce(client, student):
    assert announce(client, student, [student.id]).status_code == 403


def test_listing_filters(client, teacher, student):
    announce(client, teacher, [student.id], title='Exam moved', type='exam')
    read_id = announce(client, teacher, [student.id], title='Old news').get_json()['id']
    client.post(f'/api/notifications/{read_id}/read', headers=student.headers)

    unread = client.get('/api/notifications?unreadOnly=true', headers=student.headers).get_json()
    assert [n['title'] for n in unread['notifications']] == ['Exam moved']
    exams = client.get('/api/notifications?type=exam', headers=student.headers).get_json()
    assert [n['title'] for n in exams['notifications']] == ['Exam moved']
    paged = client.get('/api/notifications?limit=1&page=2', headers=student.headers).get_json()
    assert len(paged['notifications']) == 1
    assert paged['page'] == 2


def test_expired_notifications_are_hidden_and_cleaned(app, client, teacher, student):
    announce(client, teacher, [student.id], title='Tomorrow', expiresAt=in_days(1))
    with app.app_context():
        user = db.session.get(User, student.id)
        create_notification('Yesterday', 'Gone', [user], expires_at=datetime.utcnow() - timedelta(hours=1))
        db.session.commit()

    listing = client.get('/api/notifications', headers=student.headers).get_json()
    assert [n['title'] for n in listing['notifications']] == ['Tomorrow']

    with app.app_context():
        assert clean_expired_notifications() == 1
        assert Notification.query.count() == 1


def test_hidden_notifications_cannot_be_marked_read(app, client, student):
    with app.app_context():
        user = db.session.get(User, student.id)
        expired = create_notification('Yesterday', 'Gone', [user],
                                      expires_at=datetime.utcnow() - timedelta(hours=1))
        withdrawn = create_notification('Withdrawn', 'Cancelled', [user])
        withdrawn.is_active = False
        db.session.commit()
        hidden_ids = [expired.id, withdrawn.id]

    for notification_id in hidden_ids:
        response = client.post(f'/api/notifications/{notification_id}/read', headers=student.headers)
        assert response.status_code == 404
