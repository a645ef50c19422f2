# FILE: edutrack/student/routes.py
from flask import current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import select

from edutrack import db
from edutrack.decorators import student_required, teacher_required
from edutrack.exceptions import Forbidden, NotFound
from edutrack.models import Parent, Student, User
from edutrack.services import (find_assignments_for_student, get_student_attendance,
                               get_student_dashboard_data, get_student_results, get_student_schedule,
                               log_action, submit_assignment)
from edutrack.student import bp
from edutrack.student.forms import MedicalInfoForm, StudentParentForm, StudentUpdateForm, SubmissionForm
from edutrack.utils import camelize


def _current_student():
    student = current_user.student_profile
    if student is None:
        raise NotFound('Student profile not found')
    return student


def _get_accessible_student(student_id):
    student = db.get_or_404(Student, student_id, description='Student not found')
    if not student.is_accessible_by(current_user):
        raise Forbidden('Not authorized to view this student')
    return student


def _can_edit(student):
    return current_user.role == 'teacher' or student.user_id == current_user.id


# --- Student self-service ---

@bp.route('/dashboard')
@student_required
def dashboard():
    return jsonify(get_student_dashboard_data(_current_student()))


@bp.route('/attendance')
@student_required
def attendance():
    student = _current_student()
    return jsonify(get_student_attendance(student, academic_year=request.args.get('academicYear')))


@bp.route('/assignments')
@student_required
def assignments():
    return jsonify(find_assignments_for_student(_current_student(), status=request.args.get('status')))


@bp.route('/assignments/<int:assignment_id>/submit', methods=['POST'])
@student_required
def submit(assignment_id):
    form = SubmissionForm.from_json().validate_or_raise()
    submission = submit_assignment(assignment_id, _current_student(), form.file_url.data)
    return jsonify({'message': 'Assignment submitted successfully', 'submission': submission.to_dict()}), 201


@bp.route('/results')
@student_required
def results():
    student = _current_student()
    return jsonify([result.to_dict() for result in
                    get_student_results(student, academic_year=request.args.get('academicYear'))])


@bp.route('/schedule')
@student_required
def schedule():
    return jsonify(get_student_schedule(_current_student()))


# --- Student profiles ---

@bp.route('', methods=['GET'])
@teacher_required
def list_students():
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('limit', 10, type=int), 100)
    query = select(Student).join(User, Student.user_id == User.id) \
        .where(Student.status == request.args.get('status', 'active'))
    if request.args.get('grade'):
        query = query.where(Student.grade == request.args['grade'])
    if request.args.get('academicYear'):
        query = query.where(Student.academic_year == request.args['academicYear'])
    query = query.order_by(Student.grade, User.first_name, User.last_name, Student.id)

    students = db.paginate(query, page=page, per_page=per_page, error_out=False)
    return jsonify({
        'students': [student.to_dict() for student in students.items],
        'totalPages': students.pages,
        'currentPage': students.page,
        'total': students.total,
    })


@bp.route('/<int:student_id>', methods=['GET'])
@login_required
def get_student(student_id):
    return jsonify(_get_accessible_student(student_id).to_dict())


@bp.route('/user/<int:user_id>', methods=['GET'])
@login_required
def get_student_by_user(user_id):
    student = Student.query.filter_by(user_id=user_id).first()
    if student is None:
        raise NotFound('Student not found')
    if not student.is_accessible_by(current_user):
        raise Forbidden('Not authorized to view this student')
    return jsonify(student.to_dict())


@bp.route('/<int:student_id>', methods=['PUT'])
@login_required
def update_student(student_id):
    student = db.get_or_404(Student, student_id, description='Student not found')
    if not _can_edit(student):
        raise Forbidden('Not authorized to update this student')

    form = StudentUpdateForm.from_json().validate_or_raise()
    changes = form.changes()
    if 'status' in changes and current_user.role != 'teacher':
        raise Forbidden('Only teachers can change student status')

    old_value = {field: getattr(student, field) for field in changes}
    for field, value in changes.items():
        if field in ('emergency_contact', 'transportation'):
            value = camelize({k: v for k, v in value.items() if v})
        setattr(student, field, value)

    log_action('Update Student Profile', model=Student, record_id=student.id,
               old_value=old_value, new_value=changes)
    db.session.commit()
    current_app.logger.info(f'Student {student.student_code} updated by user {current_user.id}')
    return jsonify(student.to_dict())


@bp.route('/<int:student_id>/parents', methods=['POST'])
@login_required
def add_parent(student_id):
    student = db.get_or_404(Student, student_id, description='Student not found')
    if not _can_edit(student):
        raise Forbidden('Not authorized to update this student')

    form = StudentParentForm.from_json().validate_or_raise()
    parent = db.session.get(Parent, form.parent_id.data)
    if parent is None:
        raise NotFound('Parent not found')

    parent.add_student(student, form.relationship.data, is_primary=bool(form.is_primary.data),
                       emergency_contact=bool(form.emergency_contact.data))
    log_action('Link Parent', model=Student, record_id=student.id,
               new_value={'parent': parent.parent_code, 'relationship': form.relationship.data})
    db.session.commit()
    return jsonify(student.to_dict()), 201


@bp.route('/<int:student_id>/medical', methods=['PUT'])
@login_required
def update_medical_info(student_id):
    student = _get_accessible_student(student_id)
    form = MedicalInfoForm.from_json().validate_or_raise()

    medical_info = dict(student.medical_info or {})
    medical_info.update(camelize(form.changes()))
    student.medical_info = medical_info
    log_action('Update Medical Info', model=Student, record_id=student.id)
    db.session.commit()
    return jsonify({'message': 'Medical information updated', 'medicalInfo': student.medical_info})
