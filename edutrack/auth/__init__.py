from flask import Blueprint, current_app

from edutrack import limiter

bp = Blueprint('auth', __name__)

# Stricter per-IP budget for credential endpoints
limiter.limit(lambda: current_app.config['AUTH_RATE_LIMIT'])(bp)

from edutrack.auth import routes
