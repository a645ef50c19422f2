# FILE: edutrack/utils.py

import hashlib
import re
import secrets
from datetime import date

GRADE_THRESHOLDS = (
    (90, 'A+'),
    (80, 'A'),
    (70, 'B'),
    (60, 'C'),
    (50, 'D'),
)

# Late arrivals earn half credit in every attendance figure
LATE_WEIGHT = 0.5


def get_grade_from_percentage(percentage):
    for threshold, grade in GRADE_THRESHOLDS:
        if percentage >= threshold:
            return grade
    return 'F'


def calculate_result_totals(exam_results):
    """
    Derives the summary fields of a term result from its exam entries.

    Each entry needs `marks_obtained` and `max_marks`. Returns a dict with
    total_marks, percentage (0 when there are no marks to compare against)
    and the letter grade for that percentage.
    """
    total_obtained = sum(exam.marks_obtained for exam in exam_results)
    total_max = sum(exam.max_marks for exam in exam_results)
    percentage = (total_obtained / total_max) * 100 if total_max > 0 else 0
    return {
        'total_marks': total_obtained,
        'percentage': percentage,
        'grade': get_grade_from_percentage(percentage),
    }


def calculate_attendance_percentage(present, late, total_classes):
    """(present + 0.5 * late) / max(1, total) * 100, deliberately unclamped."""
    return (present + LATE_WEIGHT * late) / max(1, total_classes) * 100


def get_submission_status(submitted_on, due_date):
    return 'late' if submitted_on > due_date else 'submitted'


def format_profile_code(prefix, year, sequence):
    return f'{prefix}{year}{sequence:04d}'


def current_academic_year():
    return str(date.today().year)


def generate_token(nbytes=32):
    return secrets.token_hex(nbytes)


def hash_token(token):
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def isoformat(value):
    return value.isoformat() if value else None


_camel_boundary = re.compile(r'(?<!^)(?=[A-Z])')


def camel_to_snake(name):
    return _camel_boundary.sub('_', name).lower()


def snake_to_camel(name):
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def camelize(value):
    """Recursively renames dict keys from snake_case to camelCase."""
    if isinstance(value, dict):
        return {snake_to_camel(key): camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [camelize(item) for item in value]
    return value
