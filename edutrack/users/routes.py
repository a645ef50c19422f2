# FILE: edutrack/users/routes.py
from flask import current_app, jsonify, request, session
from flask_login import current_user, login_required, logout_user
from sqlalchemy import or_, select

from edutrack import db
from edutrack.decorators import management_required
from edutrack.exceptions import BadRequest, Forbidden
from edutrack.models import ROLES, User
from edutrack.services import log_action
from edutrack.users import bp
from edutrack.users.forms import ChangePasswordForm, UserUpdateForm


@bp.route('', methods=['GET'])
@management_required
def list_users():
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('limit', 10, type=int), 100)
    query = select(User)

    role = request.args.get('role')
    if role:
        if role not in ROLES:
            raise BadRequest('Invalid role')
        query = query.where(User.role == role)
    search = request.args.get('search', '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.where(or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern),
                                User.email.ilike(pattern)))
    query = query.order_by(User.created_at.desc(), User.id.desc())

    users = db.paginate(query, page=page, per_page=per_page, error_out=False)
    return jsonify({
        'users': [user.to_dict() for user in users.items],
        'totalPages': users.pages,
        'currentPage': users.page,
        'total': users.total,
    })


@bp.route('/<int:user_id>', methods=['GET'])
@login_required
def get_user(user_id):
    if user_id != current_user.id and not current_user.is_manager:
        raise Forbidden('Not authorized to view this user')
    user = db.get_or_404(User, user_id, description='User not found')
    return jsonify(user.to_dict())


@bp.route('/<int:user_id>', methods=['PUT'])
@login_required
def update_user(user_id):
    if user_id != current_user.id:
        raise Forbidden('Not authorized to update this user')
    user = db.get_or_404(User, user_id, description='User not found')

    form = UserUpdateForm.from_json().validate_or_raise()
    changes = {field: value for field, value in form.changes(exclude=('address',)).items() if value}
    for field, value in changes.items():
        setattr(user, field, value)
    if 'address' in form.submitted_fields:
        for field, value in form.address.data.items():
            if value:
                setattr(user, field, value)
                changes[field] = value

    log_action('Update User', model=User, record_id=user.id, new_value=changes)
    db.session.commit()
    return jsonify(user.to_dict())


@bp.route('/<int:user_id>/password', methods=['PUT'])
@login_required
def change_password(user_id):
    if user_id != current_user.id:
        raise Forbidden('Not authorized to change this password')
    user = db.get_or_404(User, user_id, description='User not found')

    form = ChangePasswordForm.from_json().validate_or_raise()
    if not user.check_password(form.current_password.data):
        raise BadRequest('Current password is incorrect')

    user.set_password(form.new_password.data)
    log_action('Change Password', model=User, record_id=user.id)
    db.session.commit()
    current_app.logger.info(f'Password changed for {user.email}')
    return jsonify({'message': 'Password updated successfully'})


@bp.route('/<int:user_id>', methods=['DELETE'])
@login_required
def deactivate_user(user_id):
    is_self = user_id == current_user.id
    if not is_self and not current_user.is_manager:
        raise Forbidden('Not authorized to delete this user')
    user = db.get_or_404(User, user_id, description='User not found')

    user.is_active = False
    user.clear_remember_token()
    log_action('Deactivate User', model=User, record_id=user.id)
    db.session.commit()
    current_app.logger.warning(f'User {user.email} deactivated by user {current_user.id}')

    response = jsonify({'message': 'User deactivated successfully'})
    if is_self:
        logout_user()
        session.clear()
        response.delete_cookie(current_app.config['REMEMBER_COOKIE'])
    return response
