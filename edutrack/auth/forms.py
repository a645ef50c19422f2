# edutrack/auth/forms.py
from wtforms import BooleanField, DateField, Form, FormField, PasswordField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, EqualTo, Length, Optional, Regexp

from edutrack.forms import JSONForm, lower_filter, strip_filter
from edutrack.models import ROLES

PHONE_PATTERN = r'^\+?[0-9][0-9\s\-()]{6,19}$'
ISO_DATE_FORMATS = ['%Y-%m-%d', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M:%S.%fZ', '%Y-%m-%dT%H:%M:%SZ']


class AddressForm(Form):
    street = StringField('Street', filters=[strip_filter],
                         validators=[DataRequired(), Length(min=5, max=200, message='Street address must be at least 5 characters')])
    city = StringField('City', filters=[strip_filter],
                       validators=[DataRequired(), Length(min=2, max=100, message='City must be at least 2 characters')])
    state = StringField('State', filters=[strip_filter],
                        validators=[DataRequired(), Length(min=2, max=100, message='State must be at least 2 characters')])
    zip_code = StringField('ZIP code', filters=[strip_filter],
                           validators=[DataRequired(), Length(min=3, max=20, message='ZIP code must be at least 3 characters')])


class RegisterForm(JSONForm):
    first_name = StringField('First name', filters=[strip_filter],
                             validators=[DataRequired(), Length(min=2, max=50, message='First name must be 2-50 characters')])
    last_name = StringField('Last name', filters=[strip_filter],
                            validators=[DataRequired(), Length(min=2, max=50, message='Last name must be 2-50 characters')])
    email = StringField('Email', filters=[lower_filter],
                        validators=[DataRequired(), Email(message='Please provide a valid email')])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6, message='Password must be at least 6 characters')])
    confirm_password = PasswordField('Confirm password',
                                     validators=[DataRequired(), EqualTo('password', message='Passwords do not match')])
    phone = StringField('Phone', filters=[strip_filter],
                        validators=[DataRequired(), Regexp(PHONE_PATTERN, message='Please provide a valid phone number')])
    date_of_birth = DateField('Date of birth', format=ISO_DATE_FORMATS,
                              validators=[DataRequired(message='Please provide a valid date of birth')])
    role = StringField('Role', validators=[DataRequired(), AnyOf(ROLES, message='Invalid role')])
    address = FormField(AddressForm)
    terms = BooleanField('Terms', validators=[DataRequired(message='You must accept the terms and conditions')])


class LoginForm(JSONForm):
    email = StringField('Email', filters=[lower_filter],
                        validators=[DataRequired(), Email(message='Please provide a valid email')])
    password = PasswordField('Password', validators=[DataRequired(message='Password is required')])
    role = StringField('Role', validators=[DataRequired(), AnyOf(ROLES, message='Invalid role')])
    remember_me = BooleanField('Remember me', validators=[Optional()])


class ForgotPasswordForm(JSONForm):
    email = StringField('Email', filters=[lower_filter],
                        validators=[DataRequired(), Email(message='Please provide a valid email')])


class ResetPasswordForm(JSONForm):
    token = StringField('Token', validators=[DataRequired(message='Reset token is required')])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6, message='Password must be at least 6 characters')])
    confirm_password = PasswordField('Confirm password',
                                     validators=[DataRequired(), EqualTo('password', message='Passwords do not match')])
