# path: edutrack/decorators.py

from functools import wraps
from flask_login import current_user

from edutrack import login
from edutrack.exceptions import Forbidden


def role_required(*roles):
    """
    Decorator that admits authenticated users whose role is one of `roles`.
    With no roles given, any authenticated user is admitted. Handlers read
    the caller's id and role from current_user.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Bearer token or session cookie, whichever Flask-Login resolved
            if not current_user.is_authenticated:
                return login.unauthorized()
            if roles and current_user.role not in roles:
                raise Forbidden('Insufficient permissions')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


student_required = role_required('student')
teacher_required = role_required('teacher')
parent_required = role_required('parent')


def management_required(f):
    """Teachers with a head_teacher, vice_principal or principal designation."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return login.unauthorized()
        if not current_user.is_manager:
            raise Forbidden('Only school management can perform this action')
        return f(*args, **kwargs)
    return decorated_function
