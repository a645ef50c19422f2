# FILE: edutrack/security.py
from datetime import datetime, timezone

import jwt
from flask import current_app


def _jwt_secret():
    secret = current_app.config.get('JWT_SECRET') or current_app.config.get('SECRET_KEY')
    if not secret:
        raise RuntimeError('JWT_SECRET is not configured')
    return secret


def create_access_token(user, remember=False):
    """Issues a signed token carrying userId, email and role."""
    lifetime = current_app.config['JWT_REMEMBER_EXPIRES' if remember else 'JWT_EXPIRES']
    issued_at = datetime.now(timezone.utc)
    payload = {
        'userId': user.id,
        'email': user.email,
        'role': user.role,
        'iat': issued_at,
        'exp': issued_at + lifetime,
    }
    return jwt.encode(payload, _jwt_secret(), algorithm=current_app.config['JWT_ALGORITHM'])


def decode_access_token(token):
    """Returns the token claims, or None when the token is expired or invalid."""
    try:
        return jwt.decode(token, _jwt_secret(), algorithms=[current_app.config['JWT_ALGORITHM']])
    except jwt.ExpiredSignatureError:
        current_app.logger.info('Rejected expired access token')
    except jwt.InvalidTokenError as e:
        current_app.logger.info(f'Rejected invalid access token: {e}')
    return None
