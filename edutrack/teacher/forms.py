# edutrack/teacher/forms.py
from wtforms import (DateField, DateTimeField, FieldList, FloatField, Form, FormField, IntegerField,
                     StringField, TextAreaField, ValidationError)
from wtforms.validators import AnyOf, DataRequired, InputRequired, Length, NumberRange, Optional, Regexp

from edutrack.auth.forms import ISO_DATE_FORMATS
from edutrack.forms import JSONForm, strip_filter, upper_filter
from edutrack.main.forms import DATETIME_FORMATS
from edutrack.models import (ASSIGNMENT_STATUSES, ASSIGNMENT_TYPES, ATTENDANCE_STATUSES, EMPLOYMENT_TYPES,
                             EXAM_TYPES, GRADES, TERMS, WEEKDAYS)
from edutrack.student.forms import ACADEMIC_YEAR_PATTERN, EmergencyContactForm

TIME_PATTERN = r'^([01]\d|2[0-3]):[0-5]\d$'


class TeacherUpdateForm(JSONForm):
    department = StringField('Department', filters=[strip_filter], validators=[Optional(), Length(max=100)])
    subjects = FieldList(StringField('Subject', filters=[strip_filter], validators=[DataRequired(), Length(max=100)]))
    qualification = StringField('Qualification', filters=[strip_filter], validators=[Optional(), Length(max=200)])
    specialization = StringField('Specialization', filters=[strip_filter], validators=[Optional(), Length(max=200)])
    employment_type = StringField('Employment type', validators=[Optional(), AnyOf(EMPLOYMENT_TYPES)])
    total_experience = IntegerField('Experience', validators=[Optional(), NumberRange(min=0, max=60)])
    emergency_contact = FormField(EmergencyContactForm)


class PerformanceForm(JSONForm):
    academic_year = StringField('Academic year', validators=[DataRequired(), Regexp(ACADEMIC_YEAR_PATTERN)])
    rating = IntegerField('Rating', validators=[InputRequired(), NumberRange(min=1, max=5, message='Rating must be between 1 and 5')])
    feedback = TextAreaField('Feedback', filters=[strip_filter], validators=[Optional(), Length(max=1000)])


class AssignClassForm(JSONForm):
    grade = StringField('Grade', validators=[DataRequired(), AnyOf(GRADES, message='Invalid grade')])
    section = StringField('Section', filters=[upper_filter], validators=[DataRequired(), Length(max=10)])
    subject = StringField('Subject', filters=[strip_filter], validators=[DataRequired(), Length(max=100)])
    academic_year = StringField('Academic year', validators=[DataRequired(), Regexp(ACADEMIC_YEAR_PATTERN)])


class ScheduleSlotForm(Form):
    day = StringField('Day', validators=[DataRequired(), AnyOf(WEEKDAYS, message='Invalid day')])
    start_time = StringField('Start time', validators=[DataRequired(), Regexp(TIME_PATTERN, message='Use HH:MM')])
    end_time = StringField('End time', validators=[DataRequired(), Regexp(TIME_PATTERN, message='Use HH:MM')])
    room = StringField('Room', filters=[strip_filter], validators=[Optional(), Length(max=50)])

    def validate_end_time(self, field):
        if self.start_time.data and field.data and field.data <= self.start_time.data:
            raise ValidationError('End time must be after start time')


class SubjectForm(JSONForm):
    name = StringField('Name', filters=[strip_filter], validators=[DataRequired(), Length(max=100)])
    code = StringField('Code', filters=[upper_filter], validators=[DataRequired(), Length(max=20)])
    description = TextAreaField('Description', filters=[strip_filter], validators=[Optional(), Length(max=1000)])
    credits = IntegerField('Credits', default=1, validators=[Optional(), NumberRange(min=1, max=10)])
    grade = StringField('Grade', validators=[DataRequired(), AnyOf(GRADES, message='Invalid grade')])
    academic_year = StringField('Academic year', validators=[Optional(), Regexp(ACADEMIC_YEAR_PATTERN)])
    schedule = FieldList(FormField(ScheduleSlotForm))


class AssignmentForm(JSONForm):
    json_aliases = {'class': 'className', 'type': 'assignmentType'}

    title = StringField('Title', filters=[strip_filter], validators=[DataRequired(), Length(max=200)])
    description = TextAreaField('Description', filters=[strip_filter], validators=[DataRequired()])
    subject_id = IntegerField('Subject', validators=[DataRequired(message='Subject is required')])
    class_name = StringField('Class', filters=[strip_filter], validators=[DataRequired(), Length(max=20)])
    due_date = DateTimeField('Due date', format=DATETIME_FORMATS,
                             validators=[DataRequired(message='Please provide a valid due date')])
    total_marks = IntegerField('Total marks', validators=[InputRequired(), NumberRange(min=1)])
    assignment_type = StringField('Type', validators=[Optional(), AnyOf(ASSIGNMENT_TYPES)])
    attachments = FieldList(StringField('Attachment', validators=[Length(max=500)]))
    status = StringField('Status', validators=[Optional(), AnyOf(ASSIGNMENT_STATUSES)])
    academic_year = StringField('Academic year', validators=[Optional(), Regexp(ACADEMIC_YEAR_PATTERN)])


class AttendanceEntryForm(Form):
    student_id = IntegerField('Student', validators=[DataRequired(message='Student is required')])
    status = StringField('Status', validators=[Optional(), AnyOf(ATTENDANCE_STATUSES, message='Invalid status')])
    remarks = StringField('Remarks', filters=[strip_filter], validators=[Optional(), Length(max=200)])


class AttendanceForm(JSONForm):
    subject_id = IntegerField('Subject', validators=[DataRequired(message='Subject is required')])
    date = DateField('Date', format=ISO_DATE_FORMATS, validators=[DataRequired(message='Please provide a valid date')])
    class_name = StringField('Class', filters=[strip_filter], validators=[DataRequired(), Length(max=20)])
    academic_year = StringField('Academic year', validators=[Optional(), Regexp(ACADEMIC_YEAR_PATTERN)])
    term = StringField('Term', validators=[DataRequired(), AnyOf(TERMS, message='Invalid term')])
    records = FieldList(FormField(AttendanceEntryForm), min_entries=1)


class ExamResultForm(JSONForm):
    student_id = IntegerField('Student', validators=[DataRequired(message='Student is required')])
    subject_id = IntegerField('Subject', validators=[DataRequired(message='Subject is required')])
    academic_year = StringField('Academic year', validators=[DataRequired(), Regexp(ACADEMIC_YEAR_PATTERN)])
    term = StringField('Term', validators=[DataRequired(), AnyOf(TERMS, message='Invalid term')])
    exam_type = StringField('Exam type', validators=[DataRequired(), AnyOf(EXAM_TYPES, message='Invalid exam type')])
    marks_obtained = FloatField('Marks obtained', validators=[InputRequired(), NumberRange(min=0)])
    max_marks = FloatField('Maximum marks', validators=[InputRequired(), NumberRange(min=1)])
    grade = StringField('Grade', validators=[Optional(), Length(max=2)])
    remarks = StringField('Remarks', filters=[strip_filter], validators=[Optional(), Length(max=500)])

    def validate_marks_obtained(self, field):
        if field.data is not None and self.max_marks.data and field.data > self.max_marks.data:
            raise ValidationError('Marks obtained cannot exceed maximum marks')
