from flask import Blueprint

bp = Blueprint('student', __name__)

from edutrack.student import routes
