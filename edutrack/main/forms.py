# edutrack/main/forms.py
from wtforms import DateTimeField, FieldList, IntegerField, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Length, Optional

from edutrack.forms import JSONForm, strip_filter
from edutrack.models import NOTIFICATION_TYPES, PRIORITIES, RELATED_TYPES

DATETIME_FORMATS = ['%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M', '%Y-%m-%dT%H:%M:%S.%fZ',
                    '%Y-%m-%dT%H:%M:%SZ', '%Y-%m-%d %H:%M:%S', '%Y-%m-%d']


class NotificationForm(JSONForm):
    json_aliases = {'type': 'notificationType'}

    title = StringField('Title', filters=[strip_filter], validators=[DataRequired(), Length(max=200)])
    message = TextAreaField('Message', filters=[strip_filter], validators=[DataRequired(), Length(max=2000)])
    notification_type = StringField('Type', validators=[Optional(), AnyOf(NOTIFICATION_TYPES)])
    priority = StringField('Priority', validators=[Optional(), AnyOf(PRIORITIES)])
    recipient_ids = FieldList(IntegerField('Recipient', validators=[DataRequired()]), min_entries=1)
    related_type = StringField('Related type', validators=[Optional(), AnyOf(RELATED_TYPES)])
    related_id = IntegerField('Related id', validators=[Optional()])
    action_url = StringField('Action URL', validators=[Optional(), Length(max=500)])
    expires_at = DateTimeField('Expires at', format=DATETIME_FORMATS, validators=[Optional()])
