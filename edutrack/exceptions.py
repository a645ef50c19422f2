# FILE: edutrack/exceptions.py
"""
Errors raised by models, services and routes. The errors blueprint turns
each of them into a JSON response with the matching status code.
"""


class APIError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None, status_code=None, details=None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        body = {'error': self.message}
        if self.details:
            body['details'] = self.details
        return body


class BadRequest(APIError):
    status_code = 400
    default_message = 'Bad request'


class ValidationFailed(BadRequest):
    default_message = 'Validation failed'

    def __init__(self, details, message=None):
        super().__init__(message, details=details)


class AuthenticationFailed(APIError):
    status_code = 401
    default_message = 'Invalid credentials'


class Forbidden(APIError):
    status_code = 403
    default_message = 'Access denied'


class NotFound(APIError):
    status_code = 404
    default_message = 'Resource not found'


class Conflict(APIError):
    status_code = 409
    default_message = 'Duplicate field value entered'


class AccountLocked(APIError):
    status_code = 423
    default_message = 'Account temporarily locked due to too many failed login attempts'
