# edutrack/parent/forms.py
from wtforms import BooleanField, Form, FormField, StringField
from wtforms.validators import AnyOf, DataRequired, Length, Optional

from edutrack.forms import JSONForm, strip_filter, upper_filter
from edutrack.models import CONTACT_METHODS, MARITAL_STATUSES, PARENT_RELATIONSHIPS


class WorkplaceForm(Form):
    name = StringField('Name', filters=[strip_filter], validators=[Optional(), Length(max=100)])
    address = StringField('Address', filters=[strip_filter], validators=[Optional(), Length(max=200)])
    phone = StringField('Phone', filters=[strip_filter], validators=[Optional(), Length(max=20)])
    position = StringField('Position', filters=[strip_filter], validators=[Optional(), Length(max=100)])


class ParentUpdateForm(JSONForm):
    marital_status = StringField('Marital status', validators=[Optional(), AnyOf(MARITAL_STATUSES)])
    occupation = StringField('Occupation', filters=[strip_filter], validators=[Optional(), Length(max=100)])
    workplace = FormField(WorkplaceForm)


class ParentStudentForm(JSONForm):
    student_id = StringField('Student ID', filters=[upper_filter],
                             validators=[DataRequired(message='Student ID is required')])
    relationship = StringField('Relationship', validators=[DataRequired(), AnyOf(PARENT_RELATIONSHIPS)])
    is_primary = BooleanField('Primary', validators=[Optional()])
    emergency_contact = BooleanField('Emergency contact', validators=[Optional()])


class ContactPreferencesForm(JSONForm):
    """Only checks the scalar preferences; notificationSettings is merged key by key."""
    preferred_method = StringField('Preferred method', validators=[Optional(), AnyOf(CONTACT_METHODS)])
    communication_language = StringField('Language', filters=[strip_filter], validators=[Optional(), Length(min=2, max=5)])
