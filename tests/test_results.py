import pytest


@pytest.fixture
def science(client, teacher):
    response = client.post('/api/teachers/subjects', headers=teacher.headers,
                           json={'name': 'Science', 'code': 'SCI9', 'grade': '9'})
    assert response.status_code == 201
    return response.get_json()


def record(client, teacher, student_id, subject_id, marks, max_marks=50, exam_type='midterm', term='1'):
    return client.post('/api/teachers/results', headers=teacher.headers, json={
        'studentId': student_id,
        'subjectId': subject_id,
        'academicYear': '2024',
        'term': term,
        'examType': exam_type,
        'marksObtained': marks,
        'maxMarks': max_marks,
    })


def test_totals_are_recalculated_on_every_entry(client, teacher, student, subject, science):
    assert record(client, teacher, student.profile_id, subject['id'], 45).status_code == 200
    response = record(client, teacher, student.profile_id, science['id'], 40)
    body = response.get_json()
    assert body['totalMarks'] == 85
    assert body['percentage'] == pytest.approx(85.0)
    assert body['grade'] == 'A'
    assert body['class'] == '9A'

    # Same exam type and subject replaces the earlier entry
    body = record(client, teacher, student.profile_id, subject['id'], 20).get_json()
    assert len(body['examResults']) == 2
    assert body['totalMarks'] == 60
    assert body['grade'] == 'C'


def test_zero_marks_are_accepted(client, teacher, student, subject):
    response = record(client, teacher, student.profile_id, subject['id'], 0)
    assert response.status_code == 200
    assert response.get_json()['grade'] == 'F'


def test_marks_cannot_exceed_maximum(client, teacher, student, subject):
    response = record(client, teacher, student.profile_id, subject['id'], 60)
    assert response.status_code == 400
    assert response.get_json()['details'][0]['field'] == 'marksObtained'


def test_student_results_sorted_newest_term_first(client, teacher, student, subject):
    record(client, teacher, student.profile_id, subject['id'], 30, term='1')
    record(client, teacher, student.profile_id, subject['id'], 35, term='2')
    response = client.get('/api/students/results?academicYear=2024', headers=student.headers)
    assert [result['term'] for result in response.get_json()] == ['2', '1']
    assert client.get('/api/students/results?academicYear=2023', headers=student.headers).get_json() == []


def test_class_results_rank_published_results(client, make_user, teacher, student, subject):
    rival = make_user('student', class_name='9A')
    hidden = make_user('student', class_name='9A')
    first = record(client, teacher, student.profile_id, subject['id'], 30).get_json()
    second = record(client, teacher, rival.profile_id, subject['id'], 48).get_json()
    record(client, teacher, hidden.profile_id, subject['id'], 50)

    for result in (first, second):
        published = client.post(f"/api/teachers/results/{result['id']}/publish", headers=teacher.headers)
        assert published.status_code == 200

    response = client.get('/api/teachers/results/class/9A?academicYear=2024&term=1', headers=teacher.headers)
    ranking = [(row['student']['studentId'], row['rank']) for row in response.get_json()]
    assert ranking == [(rival.code, 1), (student.code, 2)]


def test_class_results_need_year_and_term(client, teacher):
    response = client.get('/api/teachers/results/class/9A', headers=teacher.headers)
    assert response.status_code == 400


def test_publishing_notifies_student_and_parents(client, make_user, teacher, student, subject):
    parent = make_user('parent')
    client.post(f'/api/parents/{parent.profile_id}/students', headers=parent.headers,
                json={'studentId': student.code, 'relationship': 'mother'})
    result = record(client, teacher, student.profile_id, subject['id'], 30).get_json()

    client.post(f"/api/teachers/results/{result['id']}/publish", headers=teacher.headers)
    again = client.post(f"/api/teachers/results/{result['id']}/publish", headers=teacher.headers)
    assert again.status_code == 409

    for user in (student, parent):
        notifications = client.get('/api/notifications', headers=user.headers).get_json()['notifications']
        assert notifications[0]['title'] == 'Result Published'
