# FILE: edutrack/auth/routes.py
from flask import current_app, jsonify, request, session
from flask_login import current_user, login_required, login_user, logout_user

from edutrack import db
from edutrack.auth import bp
from edutrack.auth.captcha import verify_captcha_token
from edutrack.auth.forms import ForgotPasswordForm, LoginForm, RegisterForm, ResetPasswordForm
from edutrack.exceptions import AccountLocked, AuthenticationFailed, BadRequest, Conflict, ValidationFailed
from edutrack.forms import get_json_body
from edutrack.models import GRADES, User
from edutrack.security import create_access_token
from edutrack.services import create_role_profile, log_action


def _validate_role_data(role, role_data):
    """Registration carries the profile seed data in roleData."""
    if not isinstance(role_data, dict):
        raise ValidationFailed([{'field': 'roleData', 'message': 'roleData must be an object'}])
    if role == 'student' and str(role_data.get('grade')) not in GRADES:
        raise ValidationFailed([{'field': 'roleData.grade', 'message': 'Grade must be between 1 and 12'}])
    if role == 'teacher' and not role_data.get('subject'):
        raise ValidationFailed([{'field': 'roleData.subject', 'message': 'Subject is required for teachers'}])
    return role_data


def _start_session(user):
    login_user(user)
    session['role'] = user.role
    session.permanent = True


def _set_remember_cookie(response, token):
    response.set_cookie(
        current_app.config['REMEMBER_COOKIE'], token,
        max_age=int(current_app.config['REMEMBER_TOKEN_EXPIRES'].total_seconds()),
        httponly=True,
        secure=current_app.config['APP_ENV'] == 'production',
        samesite='Lax',
    )


def _deliver_token(kind, user):
    # Mail delivery is not wired up yet; the token only lives in the database
    current_app.logger.info(f'{kind} token issued for {user.email}')


def _profile_dict(user):
    profile = user.profile
    if profile is None:
        return None
    if user.role == 'teacher':
        return profile.to_dict(include_private=True)
    return profile.to_dict()


@bp.route('/register', methods=['POST'])
def register():
    payload = get_json_body()
    form = RegisterForm.from_json(payload).validate_or_raise()
    verify_captcha_token(payload.get('captchaToken'), request.remote_addr)

    if User.query.filter_by(email=form.email.data).first():
        raise Conflict('User already exists with this email')
    role_data = _validate_role_data(form.role.data, payload.get('roleData') or {})

    address = form.address.data
    user = User(
        first_name=form.first_name.data,
        last_name=form.last_name.data,
        email=form.email.data,
        phone=form.phone.data,
        date_of_birth=form.date_of_birth.data,
        role=form.role.data,
        street=address['street'],
        city=address['city'],
        state=address['state'],
        zip_code=address['zip_code'],
        role_data=role_data,
    )
    user.set_password(form.password.data)
    user.generate_email_verification_token()
    remember_token = user.generate_remember_token()
    db.session.add(user)
    db.session.flush()

    create_role_profile(user, role_data)
    db.session.commit()
    current_app.logger.info(f'Registered {user.role} account {user.email}')
    _deliver_token('Email verification', user)

    _start_session(user)
    response = jsonify({
        'message': 'User registered successfully',
        'user': user.to_dict(),
        'profile': _profile_dict(user),
        'token': create_access_token(user),
        'rememberToken': remember_token,
        'requiresEmailVerification': True,
    })
    _set_remember_cookie(response, remember_token)
    return response, 201


@bp.route('/login', methods=['POST'])
def login():
    payload = get_json_body()
    form = LoginForm.from_json(payload).validate_or_raise()
    verify_captcha_token(payload.get('captchaToken'), request.remote_addr)

    user = User.query.filter_by(email=form.email.data, role=form.role.data, is_active=True).first()
    if user is None:
        raise AuthenticationFailed('Invalid credentials')
    if user.is_locked:
        raise AccountLocked()

    if not user.check_password(form.password.data):
        locked = user.register_failed_login(current_app.config['MAX_LOGIN_ATTEMPTS'],
                                            current_app.config['LOCKOUT_DURATION'])
        log_action('Failed Login', user=user, model=User, record_id=user.id,
                   new_value={'attempts': user.login_attempts})
        db.session.commit()
        if locked:
            current_app.logger.warning(f'Account {user.email} locked after {user.login_attempts} failed logins')
        raise AuthenticationFailed('Invalid credentials')

    remember = bool(form.remember_me.data)
    user.register_successful_login()
    remember_token = user.generate_remember_token() if remember else None
    log_action('Login', user=user, model=User, record_id=user.id)
    db.session.commit()

    _start_session(user)
    response = jsonify({
        'message': 'Login successful',
        'user': user.to_dict(),
        'profile': _profile_dict(user),
        'token': create_access_token(user, remember=remember),
        'rememberToken': remember_token,
    })
    if remember_token:
        _set_remember_cookie(response, remember_token)
    return response


@bp.route('/logout', methods=['POST'])
def logout():
    user = current_user if current_user.is_authenticated else None
    if user is None:
        user = User.find_by_remember_token(request.cookies.get(current_app.config['REMEMBER_COOKIE']))
    if user is not None:
        user.clear_remember_token()
        log_action('Logout', user=user, model=User, record_id=user.id)
        db.session.commit()
    logout_user()
    session.clear()
    response = jsonify({'message': 'Logout successful'})
    response.delete_cookie(current_app.config['REMEMBER_COOKIE'])
    return response


@bp.route('/restore-session', methods=['POST'])
def restore_session():
    """Trades a remember token (cookie or body) for a fresh access token."""
    token = request.cookies.get(current_app.config['REMEMBER_COOKIE']) or get_json_body().get('rememberToken')
    user = User.find_by_remember_token(token)
    if user is None or not user.is_active:
        raise AuthenticationFailed('Invalid or expired remember token')

    user.register_successful_login()
    db.session.commit()
    _start_session(user)
    return jsonify({
        'user': user.to_dict(),
        'token': create_access_token(user, remember=True),
    })


@bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': current_user.to_dict(), 'profile': _profile_dict(current_user)})


@bp.route('/verify-email/<token>', methods=['GET'])
def verify_email(token):
    user = User.find_by_verification_token(token)
    if user is None:
        raise BadRequest('Invalid or expired verification token')
    user.mark_email_verified()
    db.session.commit()
    return jsonify({'message': 'Email verified successfully'})


@bp.route('/resend-verification', methods=['POST'])
@login_required
def resend_verification():
    if current_user.is_email_verified:
        raise BadRequest('Email is already verified')
    current_user.generate_email_verification_token()
    db.session.commit()
    _deliver_token('Email verification', current_user)
    return jsonify({'message': 'Verification email sent'})


@bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    form = ForgotPasswordForm.from_json().validate_or_raise()
    user = User.query.filter_by(email=form.email.data, is_active=True).first()
    if user is not None:
        user.generate_password_reset_token()
        db.session.commit()
        _deliver_token('Password reset', user)
    # Same answer whether or not the account exists
    return jsonify({'message': 'If an account with that email exists, a password reset link has been sent'})


@bp.route('/reset-password', methods=['POST'])
def reset_password():
    form = ResetPasswordForm.from_json().validate_or_raise()
    user = User.find_by_reset_token(form.token.data)
    if user is None:
        raise BadRequest('Invalid or expired reset token')

    user.set_password(form.password.data)
    user.clear_password_reset_token()
    user.login_attempts = 0
    user.lock_until = None
    log_action('Reset Password', user=user, model=User, record_id=user.id)
    db.session.commit()
    return jsonify({'message': 'Password reset successful'})
