# edutrack/users/forms.py
from wtforms import DateField, Form, FormField, PasswordField, StringField
from wtforms.validators import DataRequired, EqualTo, Length, Optional, Regexp

from edutrack.auth.forms import ISO_DATE_FORMATS, PHONE_PATTERN
from edutrack.forms import JSONForm, strip_filter


class AddressUpdateForm(Form):
    street = StringField('Street', filters=[strip_filter], validators=[Optional(), Length(min=5, max=200)])
    city = StringField('City', filters=[strip_filter], validators=[Optional(), Length(min=2, max=100)])
    state = StringField('State', filters=[strip_filter], validators=[Optional(), Length(min=2, max=100)])
    zip_code = StringField('ZIP code', filters=[strip_filter], validators=[Optional(), Length(min=3, max=20)])


class UserUpdateForm(JSONForm):
    first_name = StringField('First name', filters=[strip_filter], validators=[Optional(), Length(min=2, max=50)])
    last_name = StringField('Last name', filters=[strip_filter], validators=[Optional(), Length(min=2, max=50)])
    phone = StringField('Phone', filters=[strip_filter],
                        validators=[Optional(), Regexp(PHONE_PATTERN, message='Please provide a valid phone number')])
    date_of_birth = DateField('Date of birth', format=ISO_DATE_FORMATS, validators=[Optional()])
    address = FormField(AddressUpdateForm)


class ChangePasswordForm(JSONForm):
    current_password = PasswordField('Current password', validators=[DataRequired(message='Current password is required')])
    new_password = PasswordField('New password',
                                 validators=[DataRequired(), Length(min=6, message='Password must be at least 6 characters')])
    confirm_password = PasswordField('Confirm password',
                                     validators=[DataRequired(), EqualTo('new_password', message='Passwords do not match')])
