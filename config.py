import os
from datetime import timedelta
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '.env'))

class Config:
    # Secrets come from the environment (.env in development)
    SECRET_KEY = os.environ.get('SESSION_SECRET') or os.environ.get('SECRET_KEY')
    JWT_SECRET = os.environ.get('JWT_SECRET')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'edutrack.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    APP_ENV = os.environ.get('APP_ENV', 'development')
    PORT = int(os.environ.get('PORT', 5000))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:3000')

    # Google's public test key, accepted by siteverify for any response
    RECAPTCHA_SECRET_KEY = os.environ.get('RECAPTCHA_SECRET_KEY') or \
        '6LeIxAcTAAAAAGG-vFI1TnRWxMZNFuojJ4WifJWe'
    RECAPTCHA_VERIFY_URL = 'https://www.google.com/recaptcha/api/siteverify'
    RECAPTCHA_TIMEOUT = 10
    CAPTCHA_TTL = timedelta(minutes=5)

    # Session cookie kept alongside the bearer token
    SESSION_COOKIE_NAME = 'edutrack.sid'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = APP_ENV == 'production'
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)

    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRES = timedelta(hours=24)
    JWT_REMEMBER_EXPIRES = timedelta(days=30)
    REMEMBER_COOKIE = 'rememberToken'
    REMEMBER_TOKEN_EXPIRES = timedelta(days=30)
    EMAIL_VERIFICATION_EXPIRES = timedelta(hours=24)
    PASSWORD_RESET_EXPIRES = timedelta(minutes=10)

    MAX_LOGIN_ATTEMPTS = 5
    LOCKOUT_DURATION = timedelta(minutes=30)

    # Flask-Limiter
    RATELIMIT_ENABLED = True
    RATELIMIT_DEFAULT = '100 per 15 minutes'
    AUTH_RATE_LIMIT = '5 per 15 minutes'
    RATELIMIT_STRATEGY = 'moving-window'
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL') or 'memory://'
    RATELIMIT_HEADERS_ENABLED = True

    UPCOMING_TEST_LIMIT = 3
    DASHBOARD_NOTIFICATION_LIMIT = 5


class TestConfig(Config):
    TESTING = True
    APP_ENV = 'test'
    SECRET_KEY = 'test-session-secret'
    JWT_SECRET = 'test-jwt-secret-with-at-least-32-bytes'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = 'memory://'
    SESSION_COOKIE_SECURE = False
    LOG_LEVEL = 'WARNING'
