from datetime import datetime, timedelta

from conftest import in_days
from edutrack import db
from edutrack.models import Assignment


def create_assignment(client, teacher, subject_id, **overrides):
    payload = {
        'title': 'Fractions worksheet',
        'description': 'Exercises 1-20',
        'subjectId': subject_id,
        'class': '9A',
        'dueDate': in_days(3),
        'totalMarks': 20,
        'type': 'homework',
        'status': 'published',
    }
    payload.update(overrides)
    response = client.post('/api/teachers/assignments', headers=teacher.headers, json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def test_students_only_see_published_work_for_their_class(client, teacher, student, subject):
    published = create_assignment(client, teacher, subject['id'])
    create_assignment(client, teacher, subject['id'], title='Draft', status='draft')
    create_assignment(client, teacher, subject['id'], title='Other class', **{'class': '9B'})

    response = client.get('/api/students/assignments', headers=student.headers)
    assert response.status_code == 200
    items = response.get_json()
    assert [item['id'] for item in items] == [published['id']]
    assert items[0]['submissionStatus'] == 'not_submitted'
    assert items[0]['submitted'] is False


def test_submission_notifies_the_teacher(client, teacher, student, subject):
    assignment = create_assignment(client, teacher, subject['id'])
    response = client.post(f"/api/students/assignments/{assignment['id']}/submit", headers=student.headers,
                           json={'fileUrl': 'https://files.school.edu/fractions.pdf'})
    assert response.status_code == 201
    assert response.get_json()['submission']['status'] == 'submitted'

    listed = client.get('/api/students/assignments', headers=student.headers).get_json()
    assert listed[0]['submissionStatus'] == 'submitted'

    notifications = client.get('/api/notifications', headers=teacher.headers).get_json()
    assert notifications['unreadCount'] == 1
    assert notifications['notifications'][0]['title'] == 'New Assignment Submission'
    assert notifications['notifications'][0]['relatedTo'] == {'type': 'assignment', 'id': assignment['id']}


def test_late_submission_and_resubmission(app, client, teacher, student, subject):
    assignment = create_assignment(client, teacher, subject['id'], dueDate=in_days(1))
    with app.app_context():
        stored = db.session.get(Assignment, assignment['id'])
        stored.due_date = datetime.utcnow() - timedelta(hours=1)
        db.session.commit()

    url = f"/api/students/assignments/{assignment['id']}/submit"
    client.post(url, headers=student.headers, json={'fileUrl': 'https://files.school.edu/v1.pdf'})
    response = client.post(url, headers=student.headers, json={'fileUrl': 'https://files.school.edu/v2.pdf'})
    assert response.status_code == 201
    submission = response.get_json()['submission']
    assert submission['status'] == 'late'
    assert submission['fileUrl'].endswith('v2.pdf')
    with app.app_context():
        assert len(db.session.get(Assignment, assignment['id']).submissions) == 1


def test_cannot_submit_to_a_draft(client, teacher, student, subject):
    draft = create_assignment(client, teacher, subject['id'], status='draft')
    response = client.post(f"/api/students/assignments/{draft['id']}/submit", headers=student.headers,
                           json={'fileUrl': 'https://files.school.edu/a.pdf'})
    assert response.status_code == 404


def test_submission_requires_file_url(client, teacher, student, subject):
    assignment = create_assignment(client, teacher, subject['id'])
    response = client.post(f"/api/students/assignments/{assignment['id']}/submit",
                           headers=student.headers, json={})
    assert response.status_code == 400
    assert response.get_json()['details'][0] == {'field': 'fileUrl', 'message': 'File URL is required'}


def test_publishing_notifies_the_class(client, teacher, student, subject):
    create_assignment(client, teacher, subject['id'])
    count = client.get('/api/notifications/unread-count', headers=student.headers).get_json()
    assert count == {'count': 1}


def test_teacher_lists_own_assignments(client, teacher, subject):
    create_assignment(client, teacher, subject['id'])
    create_assignment(client, teacher, subject['id'], title='Draft', status='draft')
    response = client.get('/api/teachers/assignments?status=draft', headers=teacher.headers)
    assert [item['title'] for item in response.get_json()] == ['Draft']


def test_students_cannot_use_teacher_routes(client, student, subject):
    response = client.get('/api/teachers/assignments', headers=student.headers)
    assert response.status_code == 403
    assert response.get_json()['error'] == 'Insufficient permissions'


def test_dashboard_counts_pending_work_and_tests(client, teacher, student, subject):
    create_assignment(client, teacher, subject['id'])
    create_assignment(client, teacher, subject['id'], title='Unit test', type='exam', dueDate=in_days(5))
    create_assignment(client, teacher, subject['id'], title='Final exam', type='exam', dueDate=in_days(30))
    create_assignment(client, teacher, subject['id'], title='Quiz', type='exam', dueDate=in_days(2))
    create_assignment(client, teacher, subject['id'], title='Midterm', type='exam', dueDate=in_days(20))

    response = client.get('/api/students/dashboard', headers=student.headers)
    assert response.status_code == 200
    body = response.get_json()
    assert body['pendingAssignments'] == 5
    # Only the next three exams, soonest first
    assert [test['title'] for test in body['upcomingTests']] == ['Quiz', 'Unit test', 'Midterm']
    assert len(body['recentNotifications']) == 5
    assert body['attendance']['totalClasses'] == 0


def test_schedule_is_sorted_by_start_time(client, student, subject):
    response = client.get('/api/students/schedule', headers=student.headers)
    assert response.status_code == 200
    schedule = response.get_json()
    assert list(schedule) == ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']
    assert [slot['startTime'] for slot in schedule['Monday']] == ['08:00', '10:00']
    assert schedule['Tuesday'] == []
