from flask import Blueprint

bp = Blueprint('errors', __name__)

from edutrack.errors import handlers
