# FILE: edutrack/teacher/routes.py
from flask import current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import select

from edutrack import db
from edutrack.decorators import management_required, teacher_required
from edutrack.exceptions import BadRequest, Conflict, Forbidden, NotFound
from edutrack.models import (Assignment, Attendance, PerformanceRating, Result, ScheduleSlot, Student,
                             Subject, Teacher, User)
from edutrack.services import (create_notification, find_assignments_for_teacher, get_class_results,
                               get_student_attendance, log_action, record_attendance, update_exam_result)
from edutrack.teacher import bp
from edutrack.teacher.forms import (AssignClassForm, AssignmentForm, AttendanceForm, ExamResultForm,
                                    PerformanceForm, SubjectForm, TeacherUpdateForm)
from edutrack.utils import camelize, current_academic_year


def _current_teacher():
    teacher = current_user.teacher_profile
    if teacher is None:
        raise NotFound('Teacher profile not found')
    return teacher


def _sees_private(teacher):
    return teacher.user_id == current_user.id or current_user.is_manager


def _owned_subject(teacher, subject_id):
    subject = db.session.get(Subject, subject_id)
    if subject is None:
        raise NotFound('Subject not found')
    if subject.teacher_id != teacher.id:
        raise Forbidden('You do not teach this subject')
    return subject


# --- Teacher profiles ---

@bp.route('', methods=['GET'])
@login_required
def list_teachers():
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('limit', 10, type=int), 100)
    query = select(Teacher).join(User, Teacher.user_id == User.id) \
        .where(Teacher.status == request.args.get('status', 'active'))
    if request.args.get('department'):
        query = query.where(Teacher.department == request.args['department'])
    query = query.order_by(User.first_name, User.last_name, Teacher.id)

    teachers = db.paginate(query, page=page, per_page=per_page, error_out=False)
    return jsonify({
        'teachers': [teacher.to_dict() for teacher in teachers.items],
        'totalPages': teachers.pages,
        'currentPage': teachers.page,
        'total': teachers.total,
    })


@bp.route('/<int:teacher_id>', methods=['GET'])
@login_required
def get_teacher(teacher_id):
    teacher = db.get_or_404(Teacher, teacher_id, description='Teacher not found')
    return jsonify(teacher.to_dict(include_private=_sees_private(teacher)))


@bp.route('/user/<int:user_id>', methods=['GET'])
@login_required
def get_teacher_by_user(user_id):
    teacher = Teacher.query.filter_by(user_id=user_id).first()
    if teacher is None:
        raise NotFound('Teacher not found')
    return jsonify(teacher.to_dict(include_private=_sees_private(teacher)))


@bp.route('/<int:teacher_id>', methods=['PUT'])
@teacher_required
def update_teacher(teacher_id):
    teacher = db.get_or_404(Teacher, teacher_id, description='Teacher not found')
    if teacher.user_id != current_user.id:
        raise Forbidden('Not authorized to update this teacher')

    form = TeacherUpdateForm.from_json().validate_or_raise()
    changes = form.changes()
    for field, value in changes.items():
        if field == 'emergency_contact':
            value = camelize({k: v for k, v in value.items() if v})
        setattr(teacher, field, value)

    log_action('Update Teacher Profile', model=Teacher, record_id=teacher.id, new_value=changes)
    db.session.commit()
    return jsonify(teacher.to_dict(include_private=True))


@bp.route('/<int:teacher_id>/performance', methods=['POST'])
@management_required
def add_performance_rating(teacher_id):
    teacher = db.get_or_404(Teacher, teacher_id, description='Teacher not found')
    form = PerformanceForm.from_json().validate_or_raise()

    rating = PerformanceRating(academic_year=form.academic_year.data, rating=form.rating.data,
                               feedback=form.feedback.data, evaluated_by=current_user.teacher_profile)
    teacher.performance_ratings.append(rating)
    log_action('Rate Teacher Performance', model=Teacher, record_id=teacher.id,
               new_value={'academicYear': rating.academic_year, 'rating': rating.rating})
    db.session.commit()
    current_app.logger.info(f'Teacher {teacher.teacher_code} rated {rating.rating} by user {current_user.id}')
    return jsonify(teacher.to_dict(include_private=True)), 201


@bp.route('/<int:teacher_id>/classes', methods=['POST'])
@management_required
def assign_class(teacher_id):
    teacher = db.get_or_404(Teacher, teacher_id, description='Teacher not found')
    form = AssignClassForm.from_json().validate_or_raise()

    entry = teacher.assign_class(form.grade.data, form.section.data, form.subject.data, form.academic_year.data)
    log_action('Assign Class', model=Teacher, record_id=teacher.id, new_value=entry)
    db.session.commit()
    return jsonify({'message': 'Class assigned successfully', 'assignedClasses': teacher.assigned_classes}), 201


@bp.route('/department/<department>', methods=['GET'])
@login_required
def teachers_by_department(department):
    teachers = Teacher.query.filter_by(department=department, status='active').all()
    return jsonify([teacher.to_dict() for teacher in teachers])


@bp.route('/subject/<subject>', methods=['GET'])
@login_required
def teachers_by_subject(subject):
    # Subjects are stored as a JSON list, so the match happens here
    teachers = Teacher.query.filter_by(status='active').all()
    return jsonify([teacher.to_dict() for teacher in teachers if teacher.teaches(subject)])


# --- Subjects and assignments ---

@bp.route('/subjects', methods=['POST'])
@teacher_required
def create_subject():
    teacher = _current_teacher()
    form = SubjectForm.from_json().validate_or_raise()
    academic_year = form.academic_year.data or current_academic_year()
    if Subject.query.filter_by(code=form.code.data, academic_year=academic_year).first():
        raise Conflict('Subject code already exists for this academic year')

    subject = Subject(name=form.name.data, code=form.code.data, description=form.description.data,
                      credits=form.credits.data or 1, grade=form.grade.data,
                      academic_year=academic_year, teacher=teacher)
    for slot in form.schedule.data:
        subject.schedule.append(ScheduleSlot(day=slot['day'], start_time=slot['start_time'],
                                             end_time=slot['end_time'], room=slot['room'] or None))
    db.session.add(subject)
    db.session.flush()
    log_action('Create Subject', model=Subject, record_id=subject.id, new_value=subject.summary())
    db.session.commit()
    return jsonify(subject.to_dict()), 201


@bp.route('/assignments', methods=['POST'])
@teacher_required
def create_assignment():
    teacher = _current_teacher()
    form = AssignmentForm.from_json().validate_or_raise()
    subject = _owned_subject(teacher, form.subject_id.data)

    assignment = Assignment(
        title=form.title.data,
        description=form.description.data,
        subject=subject,
        teacher=teacher,
        class_name=form.class_name.data,
        due_date=form.due_date.data,
        total_marks=form.total_marks.data,
        assignment_type=form.assignment_type.data or 'homework',
        attachments=[url for url in form.attachments.data if url],
        status=form.status.data or 'draft',
        academic_year=form.academic_year.data or subject.academic_year,
    )
    db.session.add(assignment)
    db.session.flush()

    if assignment.status == 'published':
        students = Student.query.filter_by(class_name=assignment.class_name, status='active').all()
        create_notification(
            title='New Assignment',
            message=f'{assignment.title} is due {assignment.due_date:%Y-%m-%d %H:%M}',
            recipients=[student.user for student in students],
            notification_type='exam' if assignment.assignment_type == 'exam' else 'assignment',
            related_type='assignment',
            related_id=assignment.id,
            created_by=current_user._get_current_object(),
        )
    log_action('Create Assignment', model=Assignment, record_id=assignment.id,
               new_value={'title': assignment.title, 'class': assignment.class_name})
    db.session.commit()
    return jsonify(assignment.to_dict()), 201


@bp.route('/assignments', methods=['GET'])
@teacher_required
def list_assignments():
    assignments = find_assignments_for_teacher(_current_teacher(), status=request.args.get('status'))
    return jsonify([assignment.to_dict() for assignment in assignments])


# --- Attendance ---

@bp.route('/attendance', methods=['POST'])
@teacher_required
def take_attendance():
    teacher = _current_teacher()
    form = AttendanceForm.from_json().validate_or_raise()
    subject = _owned_subject(teacher, form.subject_id.data)

    attendance = record_attendance(
        teacher, subject, form.date.data, form.class_name.data,
        form.academic_year.data or subject.academic_year, form.term.data,
        form.records.data,
    )
    return jsonify(attendance.to_dict()), 201


@bp.route('/attendance/<int:attendance_id>/lock', methods=['POST'])
@teacher_required
def lock_attendance(attendance_id):
    teacher = _current_teacher()
    attendance = db.get_or_404(Attendance, attendance_id, description='Attendance not found')
    if attendance.subject.teacher_id != teacher.id and not current_user.is_manager:
        raise Forbidden('You do not teach this subject')
    if attendance.is_locked:
        raise Conflict('Attendance is already locked')

    attendance.lock(teacher)
    log_action('Lock Attendance', model=Attendance, record_id=attendance.id)
    db.session.commit()
    return jsonify(attendance.to_dict())


@bp.route('/attendance/student/<int:student_id>', methods=['GET'])
@teacher_required
def student_attendance(student_id):
    student = db.get_or_404(Student, student_id, description='Student not found')
    summary = get_student_attendance(student, class_name=request.args.get('class'),
                                     academic_year=request.args.get('academicYear'))
    return jsonify({'student': student.summary(), 'attendance': summary})


# --- Results ---

@bp.route('/results', methods=['POST'])
@teacher_required
def record_result():
    form = ExamResultForm.from_json().validate_or_raise()
    student = db.session.get(Student, form.student_id.data)
    if student is None:
        raise NotFound('Student not found')
    subject = db.session.get(Subject, form.subject_id.data)
    if subject is None:
        raise NotFound('Subject not found')

    result = update_exam_result(student, form.academic_year.data, form.term.data, form.exam_type.data,
                                subject, form.marks_obtained.data, form.max_marks.data,
                                grade=form.grade.data or None, remarks=form.remarks.data or None)
    log_action('Record Exam Result', model=Result, record_id=result.id,
               new_value={'student': student.student_code, 'subject': subject.code,
                          'examType': form.exam_type.data, 'marks': form.marks_obtained.data})
    db.session.commit()
    return jsonify(result.to_dict())


@bp.route('/results/<int:result_id>/publish', methods=['POST'])
@teacher_required
def publish_result(result_id):
    result = db.get_or_404(Result, result_id, description='Result not found')
    if result.is_published:
        raise Conflict('Result is already published')

    result.publish(_current_teacher())
    student = result.student
    recipients = [student.user] + [link.parent.user for link in student.parent_links]
    create_notification(
        title='Result Published',
        message=f'Term {result.term} results for {result.academic_year} are available',
        recipients=recipients,
        notification_type='info',
        related_type='result',
        related_id=result.id,
        created_by=current_user._get_current_object(),
    )
    log_action('Publish Result', model=Result, record_id=result.id)
    db.session.commit()
    return jsonify(result.to_dict())


@bp.route('/results/class/<class_name>', methods=['GET'])
@teacher_required
def class_results(class_name):
    academic_year = request.args.get('academicYear')
    term = request.args.get('term')
    if not academic_year or not term:
        raise BadRequest('academicYear and term are required')
    return jsonify(get_class_results(class_name, academic_year, term))
