from flask import Blueprint

bp = Blueprint('parent', __name__)

from edutrack.parent import routes
