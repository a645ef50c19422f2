# FILE: edutrack/services.py

import json
from datetime import date, datetime
from flask import current_app, has_request_context, request
from flask_login import current_user
from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from edutrack import db
from edutrack.exceptions import BadRequest, NotFound
from edutrack.models import (STUDENT_VISIBLE_ASSIGNMENT_STATUSES, WEEKDAYS, Assignment, Attendance,
                             AttendanceRecord, AuditLog, CaptchaChallenge, IdSequence, Notification,
                             NotificationRecipient, Parent, Result, Student, Subject, Teacher,
                             default_contact_preferences)
from edutrack.utils import (calculate_attendance_percentage, current_academic_year,
                            format_profile_code)

PROFILE_PREFIXES = {'student': 'STU', 'teacher': 'TCH', 'parent': 'PAR'}


# --- Profile codes and creation ---

def next_sequence_value(name):
    """
    Atomically increments and returns the counter called `name`.

    The increment is a single UPDATE, so concurrent callers never read the
    same value. The first caller for a new name inserts the row; a caller
    that loses that insert race falls back to the UPDATE.
    """
    increment = update(IdSequence).where(IdSequence.name == name).values(value=IdSequence.value + 1)
    if db.session.execute(increment).rowcount == 0:
        try:
            with db.session.begin_nested():
                db.session.add(IdSequence(name=name, value=1))
            return 1
        except IntegrityError:
            db.session.execute(increment)
    return db.session.execute(select(IdSequence.value).where(IdSequence.name == name)).scalar_one()


def assign_profile_code(profile, role, year=None):
    """Gives a new profile its STU/TCH/PAR code for the given year."""
    year = year or date.today().year
    prefix = PROFILE_PREFIXES[role]
    code = format_profile_code(prefix, year, next_sequence_value(f'{prefix}{year}'))
    setattr(profile, f'{role}_code', code)
    return code


def _parse_experience(value):
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def create_role_profile(user, role_data=None):
    """
    Builds the Student/Teacher/Parent row for a freshly registered user.
    Does not commit the session.
    """
    role_data = role_data or {}
    if user.role == 'student':
        profile = Student(grade=str(role_data.get('grade')),
                          academic_year=current_academic_year(), status='active')
    elif user.role == 'teacher':
        subject = role_data.get('subject')
        profile = Teacher(department=subject, subjects=[subject],
                          qualification=role_data.get('qualification') or 'Not specified',
                          total_experience=_parse_experience(role_data.get('experience')),
                          assigned_classes=[])
        profile.update_salary_total()
    elif user.role == 'parent':
        profile = Parent(occupation=role_data.get('occupation'),
                         contact_preferences=default_contact_preferences())
    else:
        raise BadRequest(f'Unknown role: {user.role}')

    # The code is drawn before the profile joins the session, so the
    # counter query never flushes a row without one
    assign_profile_code(profile, user.role)
    profile.user = user
    db.session.add(profile)
    return profile


# --- Attendance ---

def _attendance_counts():
    return (
        func.count(AttendanceRecord.id).label('total'),
        func.sum(case((AttendanceRecord.status == 'present', 1), else_=0)).label('present'),
        func.sum(case((AttendanceRecord.status == 'absent', 1), else_=0)).label('absent'),
        func.sum(case((AttendanceRecord.status == 'late', 1), else_=0)).label('late'),
        func.sum(case((AttendanceRecord.status == 'excused', 1), else_=0)).label('excused'),
    )


def get_student_attendance(student, class_name=None, academic_year=None):
    """
    Per-subject, per-term attendance summary for one student.

    Only attendance taken for `class_name` (the student's own class by
    default) is counted. Rows are sorted by subject name, then term.
    """
    class_name = class_name or student.class_name
    query = db.session.query(Subject.id, Subject.name, Subject.code, Attendance.term, *_attendance_counts()) \
        .join(Attendance, AttendanceRecord.attendance_id == Attendance.id) \
        .join(Subject, Attendance.subject_id == Subject.id) \
        .filter(AttendanceRecord.student_id == student.id, Attendance.class_name == class_name)
    if academic_year:
        query = query.filter(Attendance.academic_year == academic_year)

    rows = query.group_by(Subject.id, Subject.name, Subject.code, Attendance.term) \
        .order_by(Subject.name, Attendance.term).all()

    summary = []
    for row in rows:
        present, late = int(row.present or 0), int(row.late or 0)
        summary.append({
            'subject': {'id': row.id, 'name': row.name, 'code': row.code},
            'term': row.term,
            'totalClasses': row.total,
            'present': present,
            'absent': int(row.absent or 0),
            'late': late,
            'excused': int(row.excused or 0),
            'attendancePercentage': calculate_attendance_percentage(present, late, row.total),
        })
    return summary


def get_attendance_overview(student):
    """Whole-class attendance figures for the dashboard, using the same late weight."""
    row = db.session.query(*_attendance_counts()) \
        .join(Attendance, AttendanceRecord.attendance_id == Attendance.id) \
        .filter(AttendanceRecord.student_id == student.id, Attendance.class_name == student.class_name) \
        .one()
    total, present, late = row.total or 0, int(row.present or 0), int(row.late or 0)
    return {
        'totalClasses': total,
        'present': present,
        'absent': int(row.absent or 0),
        'late': late,
        'excused': int(row.excused or 0),
        'attendancePercentage': calculate_attendance_percentage(present, late, total),
    }


def record_attendance(teacher, subject, attendance_date, class_name, academic_year, term, entries):
    """
    Creates or updates the attendance sheet for (date, subject, class).

    `entries` is a list of dicts with student_id, status and remarks.
    Every student must belong to `class_name`.
    """
    attendance = Attendance.query.filter_by(date=attendance_date, subject_id=subject.id,
                                            class_name=class_name).first()
    if attendance is None:
        attendance = Attendance(date=attendance_date, subject=subject, class_name=class_name,
                                academic_year=academic_year, term=term)
        db.session.add(attendance)

    resolved = []
    for entry in entries:
        student = db.session.get(Student, entry['student_id'])
        if student is None:
            raise NotFound(f"Student {entry['student_id']} not found")
        if student.class_name != class_name:
            raise BadRequest(f'Student {student.student_code} is not in class {class_name}')
        resolved.append((student, entry.get('status'), entry.get('remarks')))

    attendance.mark_attendance(resolved, teacher)
    db.session.flush()
    log_action('Record Attendance', model=Attendance, record_id=attendance.id,
               new_value={'date': attendance_date.isoformat(), 'class': class_name, 'count': len(resolved)})
    db.session.commit()
    current_app.logger.info(
        f'Attendance for {class_name} on {attendance_date} recorded by teacher {teacher.teacher_code}'
    )
    return attendance


# --- Assignments ---

def _visible_assignments(student):
    return Assignment.query.filter(
        Assignment.class_name == student.class_name,
        Assignment.status.in_(STUDENT_VISIBLE_ASSIGNMENT_STATUSES)
    )


def find_assignments_for_student(student, status=None):
    query = _visible_assignments(student)
    if status:
        query = query.filter(Assignment.status == status)
    assignments = query.order_by(Assignment.due_date.asc()).all()
    return [assignment.to_dict(student=student) for assignment in assignments]


def find_assignments_for_teacher(teacher, status=None):
    query = Assignment.query.filter_by(teacher_id=teacher.id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Assignment.due_date.desc()).all()


def count_pending_assignments(student, now=None):
    now = now or datetime.utcnow()
    return _visible_assignments(student).filter(
        Assignment.due_date >= now,
        ~Assignment.submissions.any(student_id=student.id)
    ).count()


def get_upcoming_tests(student, now=None):
    now = now or datetime.utcnow()
    tests = _visible_assignments(student).filter(
        Assignment.assignment_type == 'exam',
        Assignment.due_date >= now
    ).order_by(Assignment.due_date.asc()).limit(current_app.config['UPCOMING_TEST_LIMIT']).all()
    return [{
        'id': test.id,
        'title': test.title,
        'subject': test.subject.summary() if test.subject else None,
        'dueDate': test.due_date.isoformat(),
        'totalMarks': test.total_marks,
    } for test in tests]


def submit_assignment(assignment_id, student, file_url):
    """
    Records a student's submission and notifies the assignment's teacher.
    Raises NotFound for assignments the student cannot see.
    """
    assignment = _visible_assignments(student).filter(Assignment.id == assignment_id).first()
    if assignment is None:
        raise NotFound('Assignment not found')

    submission = assignment.add_submission(student, file_url)
    create_notification(
        title='New Assignment Submission',
        message=f'{student.user.full_name} has submitted {assignment.title}',
        recipients=[assignment.teacher.user],
        notification_type='assignment',
        related_type='assignment',
        related_id=assignment.id,
        created_by=student.user,
    )
    db.session.commit()
    current_app.logger.info(
        f'Student {student.student_code} submitted assignment {assignment.id} ({submission.status})'
    )
    return submission


# --- Results ---

def get_or_create_result(student, academic_year, term, class_name=None):
    result = Result.query.filter_by(student_id=student.id, academic_year=academic_year, term=term).first()
    if result is None:
        result = Result(student=student, academic_year=academic_year, term=term,
                        class_name=class_name or student.class_name)
        db.session.add(result)
    return result


def update_exam_result(student, academic_year, term, exam_type, subject, marks_obtained, max_marks,
                       grade=None, remarks=None, class_name=None):
    """Upserts one exam entry on the student's term result and refreshes its totals."""
    result = get_or_create_result(student, academic_year, term, class_name)
    if not result.class_name:
        raise BadRequest('Student has no class assigned')
    result.update_exam_result(exam_type, subject, marks_obtained, max_marks, grade=grade, remarks=remarks)
    db.session.commit()
    return result


def get_student_results(student, academic_year=None):
    query = Result.query.filter_by(student_id=student.id)
    if academic_year:
        query = query.filter_by(academic_year=academic_year)
    return query.order_by(Result.academic_year.desc(), Result.term.desc()).all()


def get_class_results(class_name, academic_year, term):
    """Published results for a class, best first, with rank = position + 1."""
    results = Result.query.filter_by(class_name=class_name, academic_year=academic_year,
                                     term=term, is_published=True) \
        .order_by(Result.total_marks.desc(), Result.id).all()
    return [result.to_dict(rank=position + 1) for position, result in enumerate(results)]


# --- Schedule and dashboard ---

def get_student_schedule(student):
    schedule = {day: [] for day in WEEKDAYS}
    subjects = Subject.query.filter_by(grade=student.grade, academic_year=student.academic_year,
                                       is_active=True).all()
    for subject in subjects:
        for slot in subject.schedule:
            schedule[slot.day].append({
                'subject': subject.summary(),
                'teacher': subject.teacher.user.full_name if subject.teacher else None,
                'startTime': slot.start_time,
                'endTime': slot.end_time,
                'room': slot.room,
            })
    for day in schedule:
        schedule[day].sort(key=lambda entry: entry['startTime'])
    return schedule


def get_student_dashboard_data(student):
    """Attendance, workload and recent notifications for the student's home page."""
    now = datetime.utcnow()
    return {
        'student': student.summary(),
        'attendance': get_attendance_overview(student),
        'pendingAssignments': count_pending_assignments(student, now),
        'upcomingTests': get_upcoming_tests(student, now),
        'recentNotifications': get_user_notifications(
            student.user, limit=current_app.config['DASHBOARD_NOTIFICATION_LIMIT']
        ),
    }


# --- Notifications ---

def create_notification(title, message, recipients, notification_type='info', priority='medium',
                        related_type=None, related_id=None, action_url=None, expires_at=None,
                        created_by=None):
    """Adds a notification for each distinct recipient. Does not commit the session."""
    notification = Notification(title=title, message=message, notification_type=notification_type,
                                priority=priority, related_type=related_type, related_id=related_id,
                                action_url=action_url, expires_at=expires_at, created_by=created_by)
    seen = set()
    for user in recipients:
        if user is None or user.id in seen:
            continue
        seen.add(user.id)
        notification.recipients.append(NotificationRecipient(user=user))
    db.session.add(notification)
    return notification


def _visible_notifications(user):
    return db.session.query(Notification, NotificationRecipient) \
        .join(NotificationRecipient, NotificationRecipient.notification_id == Notification.id) \
        .filter(
            NotificationRecipient.user_id == user.id,
            Notification.is_active.is_(True),
            or_(Notification.expires_at.is_(None), Notification.expires_at > datetime.utcnow())
        )


def get_unread_count(user):
    return _visible_notifications(user).filter(NotificationRecipient.read.is_(False)).count()


def get_user_notifications(user, limit=10, page=1, unread_only=False, notification_type=None):
    query = _visible_notifications(user)
    if unread_only:
        query = query.filter(NotificationRecipient.read.is_(False))
    if notification_type:
        query = query.filter(Notification.notification_type == notification_type)
    rows = query.order_by(Notification.created_at.desc(), Notification.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()
    return [notification.to_dict(recipient) for notification, recipient in rows]


def mark_notification_as_read(notification_id, user):
    row = _visible_notifications(user).filter(Notification.id == notification_id).first()
    notification = row[0] if row is not None else None
    if notification is None or not notification.mark_as_read(user.id):
        raise NotFound('Notification not found')
    db.session.commit()
    return notification


def clean_expired_notifications(include_inactive=False):
    """
    [CLI] Deletes notifications whose expiry time has passed.
    Returns the number of deleted notifications.
    """
    condition = Notification.expires_at <= datetime.utcnow()
    if include_inactive:
        condition = or_(condition, Notification.is_active.is_(False))
    expired = Notification.query.filter(condition).all()
    for notification in expired:
        db.session.delete(notification)
    db.session.commit()
    current_app.logger.info(f'Deleted {len(expired)} expired notifications')
    return len(expired)


def clean_expired_captchas():
    deleted = CaptchaChallenge.query.filter(CaptchaChallenge.expires_at < datetime.utcnow()) \
        .delete(synchronize_session=False)
    db.session.commit()
    return deleted


# --- Audit log ---

def log_action(action: str, user=None, model=None, record_id=None, old_value=None, new_value=None):
    """
    Creates an audit log entry. Does not commit the session.

    Args:
        action (str): What happened (e.g. "Login", "Update Student Profile").
        user (User, optional): Acting user. Defaults to current_user.
        model (db.Model class, optional): Model class of the affected record.
        record_id (optional): Primary key of the affected record.
        old_value / new_value (optional): Simple values or dicts/lists, stored as JSON.
    """
    try:
        log_user = user if user is not None else current_user
        if not getattr(log_user, 'is_authenticated', False):
            current_app.logger.warning(f"Audit log skipped for action '{action}': no authenticated user")
            return

        def _serialize(value):
            if value is None:
                return None
            if isinstance(value, (dict, list)):
                return json.dumps(value, ensure_ascii=False, default=str)
            return str(value)

        entry = AuditLog(
            user_id=log_user.id,
            action=action,
            model_name=model.__tablename__ if model is not None and hasattr(model, '__tablename__') else None,
            record_id=str(record_id) if record_id is not None else None,
            old_value=_serialize(old_value),
            new_value=_serialize(new_value),
            ip_address=request.remote_addr if has_request_context() else None,
        )
        db.session.add(entry)
    except Exception as e:
        # The action being audited must still go through
        current_app.logger.error(f"Error creating audit log for action '{action}': {e}", exc_info=True)
