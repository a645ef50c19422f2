from datetime import date

from edutrack import db
from edutrack.models import Attendance, Student
from edutrack.services import get_student_attendance


def take_attendance(client, teacher, subject_id, day, records, class_name='9A', term='1'):
    return client.post('/api/teachers/attendance', headers=teacher.headers, json={
        'subjectId': subject_id,
        'date': day,
        'class': class_name,
        'term': term,
        'records': records,
    })


def test_attendance_summary_weights_late_as_half(client, teacher, student, subject):
    first = take_attendance(client, teacher, subject['id'], '2024-09-02',
                            [{'studentId': student.profile_id, 'status': 'present'}])
    assert first.status_code == 201
    second = take_attendance(client, teacher, subject['id'], '2024-09-03',
                             [{'studentId': student.profile_id, 'status': 'late', 'remarks': 'Bus delay'}])
    assert second.status_code == 201

    response = client.get('/api/students/attendance', headers=student.headers)
    assert response.status_code == 200
    rows = response.get_json()
    assert len(rows) == 1
    row = rows[0]
    assert row['subject']['code'] == 'MATH9'
    assert row['term'] == '1'
    assert (row['totalClasses'], row['present'], row['late'], row['absent']) == (2, 1, 1, 0)
    assert row['attendancePercentage'] == 75.0


def test_retaking_attendance_updates_existing_records(app, client, teacher, student, subject):
    take_attendance(client, teacher, subject['id'], '2024-09-02',
                    [{'studentId': student.profile_id, 'status': 'absent'}])
    response = take_attendance(client, teacher, subject['id'], '2024-09-02',
                               [{'studentId': student.profile_id, 'status': 'excused'}])
    assert response.status_code == 201
    assert [record['status'] for record in response.get_json()['records']] == ['excused']
    with app.app_context():
        assert Attendance.query.count() == 1


def test_locked_attendance_cannot_change(client, teacher, student, subject):
    created = take_attendance(client, teacher, subject['id'], '2024-09-02',
                              [{'studentId': student.profile_id}]).get_json()
    assert created['records'][0]['status'] == 'present'

    locked = client.post(f"/api/teachers/attendance/{created['id']}/lock", headers=teacher.headers)
    assert locked.status_code == 200
    assert locked.get_json()['isLocked'] is True

    response = take_attendance(client, teacher, subject['id'], '2024-09-02',
                               [{'studentId': student.profile_id, 'status': 'absent'}])
    assert response.status_code == 409
    assert response.get_json()['error'] == 'Attendance is locked and cannot be modified'


def test_students_must_belong_to_the_class(client, make_user, teacher, subject):
    outsider = make_user('student', class_name='9B')
    response = take_attendance(client, teacher, subject['id'], '2024-09-02',
                               [{'studentId': outsider.profile_id, 'status': 'present'}])
    assert response.status_code == 400


def test_only_the_subject_teacher_records_attendance(client, make_user, student, subject):
    other = make_user('teacher')
    response = take_attendance(client, other, subject['id'], '2024-09-02',
                               [{'studentId': student.profile_id}])
    assert response.status_code == 403


def test_invalid_status_is_a_validation_error(client, teacher, student, subject):
    response = take_attendance(client, teacher, subject['id'], '2024-09-02',
                               [{'studentId': student.profile_id, 'status': 'sleeping'}])
    assert response.status_code == 400
    assert response.get_json()['details'][0]['field'] == 'records[0].status'


def test_teacher_view_of_student_attendance(client, teacher, student, subject):
    take_attendance(client, teacher, subject['id'], '2024-09-02',
                    [{'studentId': student.profile_id, 'status': 'absent'}])
    response = client.get(f'/api/teachers/attendance/student/{student.profile_id}', headers=teacher.headers)
    assert response.status_code == 200
    body = response.get_json()
    assert body['student']['studentId'] == student.code
    assert body['attendance'][0]['absent'] == 1
    assert body['attendance'][0]['attendancePercentage'] == 0.0


def test_summary_only_counts_the_requested_class(app, client, teacher, student, subject):
    take_attendance(client, teacher, subject['id'], '2024-09-02',
                    [{'studentId': student.profile_id, 'status': 'present'}])
    with app.app_context():
        stored = db.session.get(Student, student.profile_id)
        assert get_student_attendance(stored, class_name='10C') == []
        assert get_student_attendance(stored, academic_year=str(date.today().year))[0]['present'] == 1
