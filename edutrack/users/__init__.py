from flask import Blueprint

bp = Blueprint('users', __name__)

from edutrack.users import routes
