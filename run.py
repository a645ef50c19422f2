# FILE: run.py
from datetime import date

import click

from edutrack import create_app, db
from edutrack.services import clean_expired_captchas, clean_expired_notifications

app = create_app()


@app.shell_context_processor
def make_shell_context():
    from edutrack.models import (Assignment, Attendance, AuditLog, Notification, Parent, Result,
                                 Student, Subject, Teacher, User)
    return {
        'db': db, 'User': User, 'Student': Student, 'Teacher': Teacher, 'Parent': Parent,
        'Subject': Subject, 'Assignment': Assignment, 'Attendance': Attendance, 'Result': Result,
        'Notification': Notification, 'AuditLog': AuditLog,
    }


@app.cli.command('clean-notifications')
@click.option('--include-inactive', is_flag=True, help='Also delete notifications that were switched off.')
def clean_notifications(include_inactive):
    """Deletes notifications whose expiry time has passed."""
    deleted = clean_expired_notifications(include_inactive=include_inactive)
    print(f'Deleted {deleted} notification(s).')


@app.cli.command('clean-captchas')
def clean_captchas():
    """Deletes expired image CAPTCHA challenges."""
    deleted = clean_expired_captchas()
    print(f'Deleted {deleted} expired CAPTCHA challenge(s).')


@app.cli.command('create-manager')
@click.option('--email', required=True)
@click.option('--password', required=True)
@click.option('--first-name', default='School')
@click.option('--last-name', default='Principal')
@click.option('--department', default='Administration')
@click.option('--designation', default='principal',
              type=click.Choice(['head_teacher', 'vice_principal', 'principal']))
def create_manager(email, password, first_name, last_name, department, designation):
    """Creates a teacher account with a management designation."""
    from edutrack.models import User
    from edutrack.services import create_role_profile

    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        print(f"!!! User '{email}' already exists")
        return

    user = User(first_name=first_name, last_name=last_name, email=email, phone='0000000',
                date_of_birth=date(1970, 1, 1), role='teacher', is_email_verified=True)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    teacher = create_role_profile(user, {'subject': department})
    teacher.designation = designation
    db.session.commit()
    print(f'Created {designation} {teacher.teacher_code} for {email}')


if __name__ == '__main__':
    app.run(port=app.config['PORT'])
