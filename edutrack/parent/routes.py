# FILE: edutrack/parent/routes.py
from flask import jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import select

from edutrack import db
from edutrack.decorators import teacher_required
from edutrack.exceptions import BadRequest, Forbidden, NotFound
from edutrack.forms import get_json_body
from edutrack.models import DEFAULT_NOTIFICATION_SETTINGS, Parent, Student, User
from edutrack.parent import bp
from edutrack.parent.forms import ContactPreferencesForm, ParentStudentForm, ParentUpdateForm
from edutrack.services import log_action
from edutrack.utils import camelize


def _check_owner(parent):
    if parent.user_id != current_user.id:
        raise Forbidden('Not authorized to update this parent')


def _check_visible(parent):
    if current_user.role != 'teacher' and parent.user_id != current_user.id:
        raise Forbidden('Not authorized to view this parent')


def _get_visible_student(student_id):
    student = db.get_or_404(Student, student_id, description='Student not found')
    if not student.is_accessible_by(current_user):
        raise Forbidden('Not authorized to view this student')
    return student


@bp.route('', methods=['GET'])
@teacher_required
def list_parents():
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('limit', 10, type=int), 100)
    query = select(Parent).join(User, Parent.user_id == User.id) \
        .where(Parent.status == request.args.get('status', 'active')) \
        .order_by(User.first_name, User.last_name, Parent.id)

    parents = db.paginate(query, page=page, per_page=per_page, error_out=False)
    return jsonify({
        'parents': [parent.to_dict() for parent in parents.items],
        'totalPages': parents.pages,
        'currentPage': parents.page,
        'total': parents.total,
    })


@bp.route('/<int:parent_id>', methods=['GET'])
@login_required
def get_parent(parent_id):
    parent = db.get_or_404(Parent, parent_id, description='Parent not found')
    _check_visible(parent)
    return jsonify(parent.to_dict())


@bp.route('/user/<int:user_id>', methods=['GET'])
@login_required
def get_parent_by_user(user_id):
    parent = Parent.query.filter_by(user_id=user_id).first()
    if parent is None:
        raise NotFound('Parent not found')
    _check_visible(parent)
    return jsonify(parent.to_dict())


@bp.route('/<int:parent_id>', methods=['PUT'])
@login_required
def update_parent(parent_id):
    parent = db.get_or_404(Parent, parent_id, description='Parent not found')
    _check_owner(parent)

    form = ParentUpdateForm.from_json().validate_or_raise()
    changes = form.changes()
    for field, value in changes.items():
        if field == 'workplace':
            value = camelize({k: v for k, v in value.items() if v})
        setattr(parent, field, value)

    log_action('Update Parent Profile', model=Parent, record_id=parent.id, new_value=changes)
    db.session.commit()
    return jsonify(parent.to_dict())


@bp.route('/<int:parent_id>/students', methods=['POST'])
@login_required
def add_student(parent_id):
    parent = db.get_or_404(Parent, parent_id, description='Parent not found')
    if current_user.role != 'teacher':
        _check_owner(parent)

    form = ParentStudentForm.from_json().validate_or_raise()
    student = Student.query.filter_by(student_code=form.student_id.data).first()
    if student is None:
        raise NotFound('Student not found')

    parent.add_student(student, form.relationship.data, is_primary=bool(form.is_primary.data),
                       emergency_contact=bool(form.emergency_contact.data))
    log_action('Link Student', model=Parent, record_id=parent.id,
               new_value={'student': student.student_code, 'relationship': form.relationship.data})
    db.session.commit()
    return jsonify(parent.to_dict()), 201


@bp.route('/<int:parent_id>/contact-preferences', methods=['PUT'])
@login_required
def update_contact_preferences(parent_id):
    parent = db.get_or_404(Parent, parent_id, description='Parent not found')
    _check_owner(parent)

    payload = get_json_body()
    form = ContactPreferencesForm.from_json(payload).validate_or_raise()
    updates = camelize(form.changes())

    settings = payload.get('notificationSettings')
    if settings is not None:
        if not isinstance(settings, dict):
            raise BadRequest('notificationSettings must be an object')
        updates['notificationSettings'] = {key: bool(value) for key, value in settings.items()
                                           if key in DEFAULT_NOTIFICATION_SETTINGS}

    preferences = parent.merge_contact_preferences(updates)
    log_action('Update Contact Preferences', model=Parent, record_id=parent.id, new_value=updates)
    db.session.commit()
    return jsonify({'message': 'Contact preferences updated', 'contactPreferences': preferences})


@bp.route('/student/<int:student_id>', methods=['GET'])
@login_required
def parents_of_student(student_id):
    student = _get_visible_student(student_id)
    return jsonify([parent.to_dict() for parent in Parent.find_by_student(student.id)])


@bp.route('/emergency-contacts/<int:student_id>', methods=['GET'])
@login_required
def emergency_contacts(student_id):
    student = _get_visible_student(student_id)
    contacts = []
    for parent in Parent.find_emergency_contacts(student.id):
        link = parent.link_for(student)
        contacts.append(dict(parent.summary(), relationship=link.relation, isPrimary=link.is_primary))
    # Primary contacts first
    contacts.sort(key=lambda contact: not contact['isPrimary'])
    return jsonify(contacts)
