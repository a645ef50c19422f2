from flask import Blueprint

bp = Blueprint('teacher', __name__)

from edutrack.teacher import routes
