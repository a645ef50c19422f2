# FILE: edutrack/models.py
from datetime import date, datetime
from flask import current_app, request
from flask_login import UserMixin
from sqlalchemy import UniqueConstraint
from werkzeug.security import generate_password_hash, check_password_hash

from edutrack import db, login
from edutrack.exceptions import Conflict, NotFound
from edutrack.security import decode_access_token
from edutrack.utils import (calculate_result_totals, generate_token, get_submission_status,
                            hash_token, isoformat)

# --- Enumerations ---
ROLES = ('student', 'teacher', 'parent')
GRADES = tuple(str(n) for n in range(1, 13))
TERMS = ('1', '2', '3')
WEEKDAYS = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday')

STUDENT_STATUSES = ('active', 'inactive', 'graduated', 'transferred', 'suspended')
PARENT_RELATIONSHIPS = ('mother', 'father', 'guardian', 'grandparent', 'other')
BLOOD_GROUPS = ('A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-')

EMPLOYMENT_TYPES = ('full-time', 'part-time', 'contract', 'substitute')
DESIGNATIONS = ('teacher', 'senior_teacher', 'head_teacher', 'vice_principal', 'principal', 'coordinator')
MANAGEMENT_DESIGNATIONS = ('head_teacher', 'vice_principal', 'principal')
TEACHER_STATUSES = ('active', 'inactive', 'on_leave', 'terminated', 'retired')

MARITAL_STATUSES = ('single', 'married', 'divorced', 'widowed', 'separated')
CONTACT_METHODS = ('email', 'phone', 'sms', 'app_notification')
PARENT_STATUSES = ('active', 'inactive', 'suspended')

ASSIGNMENT_STATUSES = ('draft', 'published', 'graded', 'archived')
ASSIGNMENT_TYPES = ('homework', 'project', 'exam')
SUBMISSION_STATUSES = ('submitted', 'late', 'graded')
# Drafts and archived work are hidden from students
STUDENT_VISIBLE_ASSIGNMENT_STATUSES = ('published', 'graded')

ATTENDANCE_STATUSES = ('present', 'absent', 'late', 'excused')
EXAM_TYPES = ('quiz', 'midterm', 'final', 'assignment', 'project')

NOTIFICATION_TYPES = ('info', 'success', 'warning', 'error', 'announcement',
                      'assignment', 'exam', 'fee', 'attendance')
RELATED_TYPES = ('assignment', 'exam', 'fee', 'attendance', 'result', 'other')
PRIORITIES = ('low', 'medium', 'high')

DEFAULT_NOTIFICATION_SETTINGS = {
    'academicUpdates': True,
    'attendanceAlerts': True,
    'gradeNotifications': True,
    'eventReminders': True,
    'emergencyAlerts': True,
}


def default_contact_preferences():
    return {
        'preferredMethod': 'email',
        'notificationSettings': dict(DEFAULT_NOTIFICATION_SETTINGS),
        'communicationLanguage': 'en',
    }


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(120), index=True, unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=False)
    role = db.Column(db.String(20), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_email_verified = db.Column(db.Boolean, default=False, nullable=False)

    street = db.Column(db.String(200))
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    zip_code = db.Column(db.String(20))
    role_data = db.Column(db.JSON)

    last_login = db.Column(db.DateTime)
    login_attempts = db.Column(db.Integer, default=0, nullable=False)
    lock_until = db.Column(db.DateTime)

    # Only SHA-256 digests of issued tokens are stored
    remember_token = db.Column(db.String(64), index=True)
    remember_expires = db.Column(db.DateTime)
    email_verification_token = db.Column(db.String(64), index=True)
    email_verification_expires = db.Column(db.DateTime)
    password_reset_token = db.Column(db.String(64), index=True)
    password_reset_expires = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    logs = db.relationship('AuditLog', back_populates='user', lazy='dynamic')

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'

    @property
    def address(self):
        return {
            'street': self.street,
            'city': self.city,
            'state': self.state,
            'zipCode': self.zip_code,
        }

    @property
    def profile(self):
        """The role-specific profile (Student, Teacher or Parent) of this user."""
        return {
            'student': self.student_profile,
            'teacher': self.teacher_profile,
            'parent': self.parent_profile,
        }.get(self.role)

    @property
    def is_manager(self):
        """Teachers holding a management designation may administer other accounts."""
        return (self.role == 'teacher' and self.teacher_profile is not None
                and self.teacher_profile.designation in MANAGEMENT_DESIGNATIONS)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password, method='pbkdf2:sha256:260000')

    def check_password(self, password):
        if self.password_hash:
            return check_password_hash(self.password_hash, password)
        return False

    # --- Lockout ---
    @property
    def is_locked(self):
        return bool(self.lock_until and self.lock_until > datetime.utcnow())

    def register_failed_login(self, max_attempts, lock_duration):
        """
        Counts a wrong password. Returns True when this attempt locked the account.
        A lock window that has already elapsed starts a fresh count.
        """
        if self.lock_until and not self.is_locked:
            self.login_attempts = 0
            self.lock_until = None
        self.login_attempts = (self.login_attempts or 0) + 1
        if self.login_attempts >= max_attempts:
            self.lock_until = datetime.utcnow() + lock_duration
            return True
        return False

    def register_successful_login(self):
        self.login_attempts = 0
        self.lock_until = None
        self.last_login = datetime.utcnow()

    # --- One-time tokens ---
    def _issue_token(self, kind, lifetime):
        token = generate_token()
        setattr(self, f'{kind}_token', hash_token(token))
        setattr(self, f'{kind}_expires', datetime.utcnow() + lifetime)
        return token

    def _clear_token(self, kind):
        setattr(self, f'{kind}_token', None)
        setattr(self, f'{kind}_expires', None)

    @classmethod
    def _find_by_token(cls, kind, token):
        if not token:
            return None
        return cls.query.filter(
            getattr(cls, f'{kind}_token') == hash_token(token),
            getattr(cls, f'{kind}_expires') > datetime.utcnow()
        ).first()

    def generate_email_verification_token(self):
        return self._issue_token('email_verification', current_app.config['EMAIL_VERIFICATION_EXPIRES'])

    def generate_password_reset_token(self):
        return self._issue_token('password_reset', current_app.config['PASSWORD_RESET_EXPIRES'])

    def generate_remember_token(self):
        return self._issue_token('remember', current_app.config['REMEMBER_TOKEN_EXPIRES'])

    def mark_email_verified(self):
        self.is_email_verified = True
        self._clear_token('email_verification')

    def clear_password_reset_token(self):
        self._clear_token('password_reset')

    def clear_remember_token(self):
        self._clear_token('remember')

    @classmethod
    def find_by_verification_token(cls, token):
        return cls._find_by_token('email_verification', token)

    @classmethod
    def find_by_reset_token(cls, token):
        return cls._find_by_token('password_reset', token)

    @classmethod
    def find_by_remember_token(cls, token):
        return cls._find_by_token('remember', token)

    def to_dict(self):
        return {
            'id': self.id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'fullName': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'dateOfBirth': isoformat(self.date_of_birth),
            'role': self.role,
            'isActive': self.is_active,
            'isEmailVerified': self.is_email_verified,
            'address': self.address,
            'roleData': self.role_data or {},
            'lastLogin': isoformat(self.last_login),
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'


class Student(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, nullable=False)
    student_code = db.Column(db.String(20), unique=True, index=True, nullable=False)
    grade = db.Column(db.String(2), nullable=False, index=True)
    class_name = db.Column(db.String(20), index=True)
    section = db.Column(db.String(10))
    enrollment_date = db.Column(db.Date, default=date.today)
    academic_year = db.Column(db.String(9), nullable=False, index=True)
    status = db.Column(db.String(20), default='active', nullable=False, index=True)
    emergency_contact = db.Column(db.JSON)
    medical_info = db.Column(db.JSON)
    transportation = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('student_profile', uselist=False))
    parent_links = db.relationship('StudentParent', back_populates='student', cascade='all, delete-orphan')

    def is_accessible_by(self, user):
        """Teachers see every student; students see themselves; parents see linked children."""
        if user.role == 'teacher':
            return True
        if user.role == 'student':
            return self.user_id == user.id
        if user.role == 'parent' and user.parent_profile is not None:
            return user.parent_profile.link_for(self) is not None
        return False

    def summary(self):
        return {
            'id': self.id,
            'studentId': self.student_code,
            'name': self.user.full_name,
            'grade': self.grade,
            'class': self.class_name,
            'section': self.section,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'studentId': self.student_code,
            'user': self.user.to_dict(),
            'grade': self.grade,
            'class': self.class_name,
            'section': self.section,
            'enrollmentDate': isoformat(self.enrollment_date),
            'academicYear': self.academic_year,
            'status': self.status,
            'parents': [link.to_dict(side='parent') for link in self.parent_links],
            'emergencyContact': self.emergency_contact or {},
            'medicalInfo': self.medical_info or {},
            'transportation': self.transportation or {},
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Student {self.student_code}>'


class Teacher(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, nullable=False)
    teacher_code = db.Column(db.String(20), unique=True, index=True, nullable=False)
    employee_number = db.Column(db.String(30), unique=True)
    department = db.Column(db.String(100), nullable=False, index=True)
    subjects = db.Column(db.JSON, default=list)
    qualification = db.Column(db.String(200), nullable=False)
    specialization = db.Column(db.String(200))
    joining_date = db.Column(db.Date, default=date.today)
    employment_type = db.Column(db.String(20), default='full-time', nullable=False)
    designation = db.Column(db.String(30), default='teacher', nullable=False)
    status = db.Column(db.String(20), default='active', nullable=False, index=True)
    total_experience = db.Column(db.Integer, default=0, nullable=False)
    assigned_classes = db.Column(db.JSON, default=list)
    emergency_contact = db.Column(db.JSON)
    salary_basic = db.Column(db.Float, default=0)
    salary_allowances = db.Column(db.Float, default=0)
    salary_total = db.Column(db.Float, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('teacher_profile', uselist=False))
    performance_ratings = db.relationship('PerformanceRating', back_populates='teacher',
                                          foreign_keys='PerformanceRating.teacher_id',
                                          cascade='all, delete-orphan',
                                          order_by='PerformanceRating.evaluated_at')
    subjects_taught = db.relationship('Subject', back_populates='teacher', lazy='dynamic')

    @property
    def is_management(self):
        return self.designation in MANAGEMENT_DESIGNATIONS

    def teaches(self, subject_name):
        wanted = subject_name.lower()
        return any(s.lower() == wanted for s in (self.subjects or []))

    def update_salary_total(self):
        self.salary_total = (self.salary_basic or 0) + (self.salary_allowances or 0)

    def assign_class(self, grade, section, subject, academic_year):
        entry = {'grade': grade, 'section': section, 'subject': subject, 'academicYear': academic_year}
        current = list(self.assigned_classes or [])
        if entry in current:
            raise Conflict('Class already assigned to this teacher')
        # JSON columns only register changes on reassignment
        self.assigned_classes = current + [entry]
        return entry

    def summary(self):
        return {
            'id': self.id,
            'teacherId': self.teacher_code,
            'name': self.user.full_name,
            'department': self.department,
        }

    def to_dict(self, include_private=False):
        data = {
            'id': self.id,
            'teacherId': self.teacher_code,
            'employeeNumber': self.employee_number,
            'user': self.user.to_dict(),
            'department': self.department,
            'subjects': self.subjects or [],
            'qualification': self.qualification,
            'specialization': self.specialization,
            'joiningDate': isoformat(self.joining_date),
            'employmentType': self.employment_type,
            'designation': self.designation,
            'status': self.status,
            'totalExperience': self.total_experience,
            'assignedClasses': self.assigned_classes or [],
            'performanceRatings': [r.to_dict() for r in self.performance_ratings],
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }
        if include_private:
            data['emergencyContact'] = self.emergency_contact or {}
            data['salary'] = {
                'basic': self.salary_basic,
                'allowances': self.salary_allowances,
                'total': self.salary_total,
            }
        return data

    def __repr__(self):
        return f'<Teacher {self.teacher_code}>'


class PerformanceRating(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('teacher.id'), nullable=False, index=True)
    academic_year = db.Column(db.String(9), nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    feedback = db.Column(db.Text)
    evaluated_by_id = db.Column(db.Integer, db.ForeignKey('teacher.id'))
    evaluated_at = db.Column(db.DateTime, default=datetime.utcnow)

    teacher = db.relationship('Teacher', foreign_keys=[teacher_id], back_populates='performance_ratings')
    evaluated_by = db.relationship('Teacher', foreign_keys=[evaluated_by_id])

    def to_dict(self):
        return {
            'id': self.id,
            'academicYear': self.academic_year,
            'rating': self.rating,
            'feedback': self.feedback,
            'evaluatedBy': self.evaluated_by.summary() if self.evaluated_by else None,
            'evaluatedAt': isoformat(self.evaluated_at),
        }


class Parent(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, nullable=False)
    parent_code = db.Column(db.String(20), unique=True, index=True, nullable=False)
    marital_status = db.Column(db.String(20))
    occupation = db.Column(db.String(100))
    workplace = db.Column(db.JSON)
    contact_preferences = db.Column(db.JSON, default=default_contact_preferences)
    status = db.Column(db.String(20), default='active', nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('parent_profile', uselist=False))
    student_links = db.relationship('StudentParent', back_populates='parent', cascade='all, delete-orphan')

    def link_for(self, student):
        return next((link for link in self.student_links if link.student_id == student.id), None)

    def add_student(self, student, relation, is_primary=False, emergency_contact=False):
        if self.link_for(student) is not None:
            raise Conflict('Student already associated with this parent')
        link = StudentParent(student=student, relation=relation,
                             is_primary=is_primary, emergency_contact=emergency_contact)
        self.student_links.append(link)
        return link

    def remove_student(self, student):
        link = self.link_for(student)
        if link is None:
            raise NotFound('Student is not associated with this parent')
        self.student_links.remove(link)

    def update_student_relationship(self, student, **changes):
        link = self.link_for(student)
        if link is None:
            raise NotFound('Student is not associated with this parent')
        for field in ('relation', 'is_primary', 'emergency_contact'):
            if changes.get(field) is not None:
                setattr(link, field, changes[field])
        return link

    def merge_contact_preferences(self, updates):
        """Applies a partial update on top of the stored preferences."""
        merged = default_contact_preferences()
        stored = self.contact_preferences or {}
        merged.update({k: v for k, v in stored.items() if k != 'notificationSettings'})
        merged['notificationSettings'].update(stored.get('notificationSettings') or {})

        settings = updates.get('notificationSettings')
        merged.update({k: v for k, v in updates.items() if k != 'notificationSettings'})
        if settings:
            merged['notificationSettings'].update(settings)
        self.contact_preferences = merged
        return merged

    @classmethod
    def find_by_student(cls, student_id):
        return cls.query.join(StudentParent).filter(StudentParent.student_id == student_id).all()

    @classmethod
    def find_emergency_contacts(cls, student_id):
        return cls.query.join(StudentParent).filter(
            StudentParent.student_id == student_id,
            StudentParent.emergency_contact.is_(True),
            cls.status == 'active'
        ).all()

    def summary(self):
        return {
            'id': self.id,
            'parentId': self.parent_code,
            'name': self.user.full_name,
            'phone': self.user.phone,
            'email': self.user.email,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'parentId': self.parent_code,
            'user': self.user.to_dict(),
            'maritalStatus': self.marital_status,
            'occupation': self.occupation,
            'workplace': self.workplace or {},
            'students': [link.to_dict(side='student') for link in self.student_links],
            'contactPreferences': self.contact_preferences or default_contact_preferences(),
            'status': self.status,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Parent {self.parent_code}>'


class StudentParent(db.Model):
    """A single guardian link, read from both the student and the parent side."""
    __tablename__ = 'student_parent'
    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('parent.id'), nullable=False, index=True)
    relation = db.Column(db.String(20), nullable=False)
    is_primary = db.Column(db.Boolean, default=False, nullable=False)
    emergency_contact = db.Column(db.Boolean, default=False, nullable=False)

    student = db.relationship('Student', back_populates='parent_links')
    parent = db.relationship('Parent', back_populates='student_links')

    __table_args__ = (UniqueConstraint('student_id', 'parent_id', name='_student_parent_uc'),)

    def to_dict(self, side):
        other = self.parent if side == 'parent' else self.student
        return {
            side: other.summary(),
            'relationship': self.relation,
            'isPrimary': self.is_primary,
            'emergencyContact': self.emergency_contact,
        }


class Subject(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(20), nullable=False, index=True)
    description = db.Column(db.Text)
    credits = db.Column(db.Integer, default=1, nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey('teacher.id'), nullable=False)
    grade = db.Column(db.String(2), nullable=False, index=True)
    academic_year = db.Column(db.String(9), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    teacher = db.relationship('Teacher', back_populates='subjects_taught')
    schedule = db.relationship('ScheduleSlot', back_populates='subject', cascade='all, delete-orphan',
                               order_by='ScheduleSlot.start_time')

    __table_args__ = (UniqueConstraint('code', 'academic_year', name='_subject_code_year_uc'),)

    def summary(self):
        return {'id': self.id, 'name': self.name, 'code': self.code}

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'description': self.description,
            'credits': self.credits,
            'teacher': self.teacher.summary() if self.teacher else None,
            'grade': self.grade,
            'academicYear': self.academic_year,
            'isActive': self.is_active,
            'schedule': [slot.to_dict() for slot in self.schedule],
        }

    def __repr__(self):
        return f'<Subject {self.code} {self.academic_year}>'


class ScheduleSlot(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    subject_id = db.Column(db.Integer, db.ForeignKey('subject.id'), nullable=False, index=True)
    day = db.Column(db.String(10), nullable=False)
    start_time = db.Column(db.String(5), nullable=False)
    end_time = db.Column(db.String(5), nullable=False)
    room = db.Column(db.String(50))

    subject = db.relationship('Subject', back_populates='schedule')

    def to_dict(self):
        return {'day': self.day, 'startTime': self.start_time, 'endTime': self.end_time, 'room': self.room}


class Assignment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey('subject.id'), nullable=False, index=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('teacher.id'), nullable=False, index=True)
    class_name = db.Column(db.String(20), nullable=False, index=True)
    due_date = db.Column(db.DateTime, nullable=False, index=True)
    total_marks = db.Column(db.Integer, nullable=False)
    assignment_type = db.Column(db.String(20), default='homework', nullable=False)
    attachments = db.Column(db.JSON, default=list)
    status = db.Column(db.String(20), default='draft', nullable=False, index=True)
    academic_year = db.Column(db.String(9), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    subject = db.relationship('Subject')
    teacher = db.relationship('Teacher')
    submissions = db.relationship('Submission', back_populates='assignment', cascade='all, delete-orphan')

    def submission_for(self, student):
        return next((s for s in self.submissions if s.student_id == student.id), None)

    def add_submission(self, student, file_url, now=None):
        """Stores the student's submission, replacing any earlier one."""
        now = now or datetime.utcnow()
        submission = self.submission_for(student)
        if submission is None:
            submission = Submission(student=student)
            self.submissions.append(submission)
        submission.submitted_on = now
        submission.file_url = file_url
        submission.status = get_submission_status(now, self.due_date)
        submission.grade = None
        submission.feedback = None
        submission.graded_by = None
        submission.graded_at = None
        return submission

    def to_dict(self, student=None):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'subject': self.subject.summary() if self.subject else None,
            'teacher': self.teacher.summary() if self.teacher else None,
            'class': self.class_name,
            'dueDate': isoformat(self.due_date),
            'totalMarks': self.total_marks,
            'type': self.assignment_type,
            'attachments': self.attachments or [],
            'status': self.status,
            'academicYear': self.academic_year,
            'createdAt': isoformat(self.created_at),
        }
        if student is not None:
            submission = self.submission_for(student)
            data['submissionStatus'] = submission.status if submission else 'not_submitted'
            data['grade'] = submission.grade if submission else None
            data['submitted'] = submission is not None
        else:
            data['submissionCount'] = len(self.submissions)
        return data

    def __repr__(self):
        return f'<Assignment {self.title}>'


class Submission(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey('assignment.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False, index=True)
    submitted_on = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    status = db.Column(db.String(20), default='submitted', nullable=False)
    file_url = db.Column(db.String(500), nullable=False)
    grade = db.Column(db.Float)
    feedback = db.Column(db.Text)
    graded_by_id = db.Column(db.Integer, db.ForeignKey('teacher.id'))
    graded_at = db.Column(db.DateTime)

    assignment = db.relationship('Assignment', back_populates='submissions')
    student = db.relationship('Student')
    graded_by = db.relationship('Teacher')

    __table_args__ = (UniqueConstraint('assignment_id', 'student_id', name='_assignment_student_uc'),)

    def to_dict(self):
        return {
            'id': self.id,
            'assignmentId': self.assignment_id,
            'student': self.student.summary() if self.student else None,
            'submittedOn': isoformat(self.submitted_on),
            'status': self.status,
            'fileUrl': self.file_url,
            'grade': self.grade,
            'feedback': self.feedback,
            'gradedAt': isoformat(self.graded_at),
        }


class Attendance(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, index=True)
    subject_id = db.Column(db.Integer, db.ForeignKey('subject.id'), nullable=False, index=True)
    class_name = db.Column(db.String(20), nullable=False, index=True)
    academic_year = db.Column(db.String(9), nullable=False)
    term = db.Column(db.String(1), nullable=False)
    is_locked = db.Column(db.Boolean, default=False, nullable=False)
    locked_by_id = db.Column(db.Integer, db.ForeignKey('teacher.id'))
    locked_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    subject = db.relationship('Subject')
    locked_by = db.relationship('Teacher')
    records = db.relationship('AttendanceRecord', back_populates='attendance', cascade='all, delete-orphan')

    __table_args__ = (UniqueConstraint('date', 'subject_id', 'class_name', name='_attendance_date_subject_class_uc'),)

    def mark_attendance(self, entries, recorded_by):
        """
        Upserts per-student records. `entries` is an iterable of
        (student, status, remarks) tuples.
        """
        if self.is_locked:
            raise Conflict('Attendance is locked and cannot be modified')
        existing = {record.student_id: record for record in self.records}
        for student, status, remarks in entries:
            record = existing.get(student.id)
            if record is None:
                record = AttendanceRecord(student=student)
                self.records.append(record)
                existing[student.id] = record
            record.status = status or 'present'
            record.remarks = remarks
            record.recorded_by = recorded_by
        return self.records

    def lock(self, teacher):
        self.is_locked = True
        self.locked_by = teacher
        self.locked_at = datetime.utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'date': isoformat(self.date),
            'subject': self.subject.summary() if self.subject else None,
            'class': self.class_name,
            'academicYear': self.academic_year,
            'term': self.term,
            'isLocked': self.is_locked,
            'lockedAt': isoformat(self.locked_at),
            'records': [record.to_dict() for record in self.records],
        }


class AttendanceRecord(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    attendance_id = db.Column(db.Integer, db.ForeignKey('attendance.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False, index=True)
    status = db.Column(db.String(10), default='present', nullable=False)
    remarks = db.Column(db.String(200))
    recorded_by_id = db.Column(db.Integer, db.ForeignKey('teacher.id'))

    attendance = db.relationship('Attendance', back_populates='records')
    student = db.relationship('Student')
    recorded_by = db.relationship('Teacher')

    __table_args__ = (UniqueConstraint('attendance_id', 'student_id', name='_attendance_student_uc'),)

    def to_dict(self):
        return {
            'student': self.student.summary() if self.student else None,
            'status': self.status,
            'remarks': self.remarks,
        }


class Result(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False, index=True)
    class_name = db.Column(db.String(20), nullable=False, index=True)
    academic_year = db.Column(db.String(9), nullable=False)
    term = db.Column(db.String(1), nullable=False)
    total_marks = db.Column(db.Float, default=0, nullable=False)
    percentage = db.Column(db.Float, default=0, nullable=False)
    grade = db.Column(db.String(2), default='F', nullable=False)
    remarks = db.Column(db.Text)
    is_published = db.Column(db.Boolean, default=False, nullable=False)
    published_at = db.Column(db.DateTime)
    published_by_id = db.Column(db.Integer, db.ForeignKey('teacher.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = db.relationship('Student')
    published_by = db.relationship('Teacher')
    exam_results = db.relationship('ExamResult', back_populates='result', cascade='all, delete-orphan',
                                   order_by='ExamResult.id')

    __table_args__ = (UniqueConstraint('student_id', 'academic_year', 'term', name='_result_student_year_term_uc'),)

    def recalculate(self):
        """Refreshes total_marks, percentage and grade from the exam entries."""
        totals = calculate_result_totals(self.exam_results)
        self.total_marks = totals['total_marks']
        self.percentage = totals['percentage']
        self.grade = totals['grade']
        return totals

    def update_exam_result(self, exam_type, subject, marks_obtained, max_marks, grade=None, remarks=None):
        """Replaces the entry for (exam_type, subject) or appends a new one."""
        exam = next((e for e in self.exam_results
                     if e.exam_type == exam_type and e.subject_id == subject.id), None)
        if exam is None:
            exam = ExamResult(exam_type=exam_type, subject=subject)
            self.exam_results.append(exam)
        exam.marks_obtained = marks_obtained
        exam.max_marks = max_marks
        exam.grade = grade
        exam.remarks = remarks
        self.recalculate()
        return exam

    def publish(self, teacher):
        self.is_published = True
        self.published_at = datetime.utcnow()
        self.published_by = teacher

    def to_dict(self, rank=None):
        return {
            'id': self.id,
            'student': self.student.summary() if self.student else None,
            'class': self.class_name,
            'academicYear': self.academic_year,
            'term': self.term,
            'examResults': [exam.to_dict() for exam in self.exam_results],
            'totalMarks': self.total_marks,
            'percentage': self.percentage,
            'grade': self.grade,
            'rank': rank,
            'remarks': self.remarks,
            'isPublished': self.is_published,
            'publishedAt': isoformat(self.published_at),
        }


class ExamResult(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    result_id = db.Column(db.Integer, db.ForeignKey('result.id'), nullable=False, index=True)
    exam_type = db.Column(db.String(20), nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey('subject.id'), nullable=False)
    marks_obtained = db.Column(db.Float, nullable=False)
    max_marks = db.Column(db.Float, nullable=False)
    grade = db.Column(db.String(3))
    remarks = db.Column(db.String(500))

    result = db.relationship('Result', back_populates='exam_results')
    subject = db.relationship('Subject')

    def to_dict(self):
        return {
            'examType': self.exam_type,
            'subject': self.subject.summary() if self.subject else None,
            'marksObtained': self.marks_obtained,
            'maxMarks': self.max_marks,
            'grade': self.grade,
            'remarks': self.remarks,
        }


class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    notification_type = db.Column(db.String(20), default='info', nullable=False, index=True)
    related_type = db.Column(db.String(20))
    related_id = db.Column(db.Integer)
    priority = db.Column(db.String(10), default='medium', nullable=False)
    action_url = db.Column(db.String(500))
    expires_at = db.Column(db.DateTime, index=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    created_by = db.relationship('User')
    recipients = db.relationship('NotificationRecipient', back_populates='notification',
                                 cascade='all, delete-orphan')

    def recipient_for(self, user_id):
        return next((r for r in self.recipients if r.user_id == user_id), None)

    def mark_as_read(self, user_id):
        """Idempotent: the first read time is kept. Returns False for non-recipients."""
        recipient = self.recipient_for(user_id)
        if recipient is None:
            return False
        if not recipient.read:
            recipient.read = True
            recipient.read_at = datetime.utcnow()
        return True

    def to_dict(self, recipient=None):
        return {
            'id': self.id,
            'title': self.title,
            'message': self.message,
            'type': self.notification_type,
            'relatedTo': {'type': self.related_type, 'id': self.related_id} if self.related_type else None,
            'priority': self.priority,
            'actionUrl': self.action_url,
            'expiresAt': isoformat(self.expires_at),
            'createdBy': self.created_by.full_name if self.created_by else None,
            'createdAt': isoformat(self.created_at),
            'read': recipient.read if recipient else False,
            'readAt': isoformat(recipient.read_at) if recipient else None,
        }

    def __repr__(self):
        return f'<Notification {self.title}>'


class NotificationRecipient(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    notification_id = db.Column(db.Integer, db.ForeignKey('notification.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    read = db.Column(db.Boolean, default=False, nullable=False, index=True)
    read_at = db.Column(db.DateTime)

    notification = db.relationship('Notification', back_populates='recipients')
    user = db.relationship('User', backref=db.backref('notification_receipts', lazy='dynamic'))

    __table_args__ = (UniqueConstraint('notification_id', 'user_id', name='_notification_user_uc'),)


class IdSequence(db.Model):
    """Per-prefix counters for human-readable profile codes."""
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(20), unique=True, nullable=False)
    value = db.Column(db.Integer, default=0, nullable=False)


class CaptchaChallenge(db.Model):
    id = db.Column(db.String(32), primary_key=True)
    text = db.Column(db.String(10), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    @property
    def is_expired(self):
        return self.expires_at < datetime.utcnow()


class AuditLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    action = db.Column(db.String(255), nullable=False)
    model_name = db.Column(db.String(50), nullable=True)
    record_id = db.Column(db.String(50), nullable=True)
    old_value = db.Column(db.Text, nullable=True)
    new_value = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User', back_populates='logs')

    def __repr__(self):
        return f'<AuditLog {self.action} by User:{self.user_id}>'


@login.user_loader
def load_user(id):
    # A session only counts when the Bearer token names the same user
    user = load_user_from_request(request)
    return user if user is not None and str(user.id) == str(id) else None


@login.request_loader
def load_user_from_request(request):
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None
    claims = decode_access_token(auth_header[len('Bearer '):].strip())
    if not claims:
        return None
    user_id = claims.get('userId')
    user = db.session.get(User, user_id) if user_id is not None else None
    if user is None or not user.is_active:
        return None
    return user
