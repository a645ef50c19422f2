# edutrack/student/forms.py
from wtforms import BooleanField, FieldList, Form, FormField, IntegerField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, Length, Optional, Regexp

from edutrack.forms import JSONForm, strip_filter
from edutrack.models import BLOOD_GROUPS, GRADES, PARENT_RELATIONSHIPS, STUDENT_STATUSES

ACADEMIC_YEAR_PATTERN = r'^\d{4}(-\d{4})?$'


class EmergencyContactForm(Form):
    name = StringField('Name', filters=[strip_filter], validators=[Optional(), Length(max=100)])
    relationship = StringField('Relationship', filters=[strip_filter], validators=[Optional(), Length(max=50)])
    phone = StringField('Phone', filters=[strip_filter], validators=[Optional(), Length(max=20)])
    email = StringField('Email', validators=[Optional(), Email()])


class TransportationForm(Form):
    mode = StringField('Mode', validators=[Optional(), AnyOf(('bus', 'private', 'walk', 'other'))])
    route = StringField('Route', validators=[Optional(), Length(max=50)])
    pickup_point = StringField('Pickup point', validators=[Optional(), Length(max=100)])


class StudentUpdateForm(JSONForm):
    grade = StringField('Grade', validators=[Optional(), AnyOf(GRADES, message='Invalid grade')])
    class_name = StringField('Class', filters=[strip_filter], validators=[Optional(), Length(max=20)])
    section = StringField('Section', filters=[strip_filter], validators=[Optional(), Length(max=10)])
    academic_year = StringField('Academic year', validators=[Optional(), Regexp(ACADEMIC_YEAR_PATTERN)])
    status = StringField('Status', validators=[Optional(), AnyOf(STUDENT_STATUSES, message='Invalid status')])
    emergency_contact = FormField(EmergencyContactForm)
    transportation = FormField(TransportationForm)


class StudentParentForm(JSONForm):
    parent_id = IntegerField('Parent', validators=[DataRequired(message='Parent ID is required')])
    relationship = StringField('Relationship', validators=[DataRequired(), AnyOf(PARENT_RELATIONSHIPS)])
    is_primary = BooleanField('Primary', validators=[Optional()])
    emergency_contact = BooleanField('Emergency contact', validators=[Optional()])


class MedicalInfoForm(JSONForm):
    blood_group = StringField('Blood group', validators=[Optional(), AnyOf(BLOOD_GROUPS, message='Invalid blood group')])
    allergies = FieldList(StringField('Allergy', filters=[strip_filter], validators=[Length(max=100)]))
    medications = FieldList(StringField('Medication', filters=[strip_filter], validators=[Length(max=100)]))
    medical_conditions = FieldList(StringField('Condition', filters=[strip_filter], validators=[Length(max=100)]))
    emergency_instructions = StringField('Emergency instructions', filters=[strip_filter],
                                         validators=[Optional(), Length(max=500)])


class SubmissionForm(JSONForm):
    file_url = StringField('File URL', filters=[strip_filter],
                           validators=[DataRequired(message='File URL is required'), Length(max=500)])
