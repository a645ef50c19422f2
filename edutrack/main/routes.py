# FILE: edutrack/main/routes.py
import time
from datetime import datetime
from flask import current_app, jsonify, make_response, request
from flask_login import current_user, login_required

from edutrack import db, limiter
from edutrack.auth.captcha import check_captcha_answer, create_captcha_challenge
from edutrack.decorators import teacher_required
from edutrack.exceptions import BadRequest
from edutrack.forms import get_json_body
from edutrack.main import bp
from edutrack.main.forms import NotificationForm
from edutrack.models import Notification, User
from edutrack.services import (create_notification, get_unread_count, get_user_notifications,
                               log_action, mark_notification_as_read)

_started_at = time.monotonic()


@bp.route('/health')
@limiter.exempt
def health():
    return jsonify({
        'status': 'OK',
        'timestamp': datetime.utcnow().isoformat() + 'Z',
        'uptime': round(time.monotonic() - _started_at, 3),
        'environment': current_app.config['APP_ENV'],
    })


# --- CAPTCHA ---

@bp.route('/captcha')
def captcha_image():
    captcha_id, png = create_captcha_challenge()
    response = make_response(png)
    response.headers['Content-Type'] = 'image/png'
    response.headers['Cache-Control'] = 'no-store'
    response.headers['X-Captcha-Id'] = captcha_id
    return response


@bp.route('/verify-captcha', methods=['POST'])
def verify_captcha():
    payload = get_json_body()
    if check_captcha_answer(payload.get('id'), payload.get('text')):
        return jsonify({'success': True, 'message': 'CAPTCHA verified'})
    return jsonify({'success': False, 'message': 'Incorrect CAPTCHA'})


# --- Notifications ---

def _int_arg(name, default, minimum=1, maximum=None):
    value = request.args.get(name, default, type=int)
    if value is None or value < minimum:
        value = default
    return min(value, maximum) if maximum else value


@bp.route('/notifications')
@login_required
def get_notifications():
    page = _int_arg('page', 1)
    limit = _int_arg('limit', 10, maximum=100)
    unread_only = request.args.get('unreadOnly', 'false').lower() == 'true'
    notifications = get_user_notifications(current_user, limit=limit, page=page, unread_only=unread_only,
                                           notification_type=request.args.get('type'))
    return jsonify({
        'notifications': notifications,
        'unreadCount': get_unread_count(current_user),
        'page': page,
        'limit': limit,
    })


@bp.route('/notifications/unread-count')
@login_required
def unread_count():
    return jsonify({'count': get_unread_count(current_user)})


@bp.route('/notifications/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_notification_read(notification_id):
    notification = mark_notification_as_read(notification_id, current_user)
    recipient = notification.recipient_for(current_user.id)
    return jsonify({'message': 'Notification marked as read', 'readAt': recipient.read_at.isoformat()})


@bp.route('/notifications', methods=['POST'])
@teacher_required
def send_notification():
    form = NotificationForm.from_json().validate_or_raise()
    recipient_ids = set(form.recipient_ids.data)
    recipients = User.query.filter(User.id.in_(recipient_ids), User.is_active.is_(True)).all()
    if len(recipients) != len(recipient_ids):
        raise BadRequest('One or more recipients do not exist')

    notification = create_notification(
        title=form.title.data,
        message=form.message.data,
        recipients=recipients,
        notification_type=form.notification_type.data or 'announcement',
        priority=form.priority.data or 'medium',
        related_type=form.related_type.data,
        related_id=form.related_id.data,
        action_url=form.action_url.data,
        expires_at=form.expires_at.data,
        created_by=current_user._get_current_object(),
    )
    db.session.flush()
    log_action('Send Notification', model=Notification, record_id=notification.id,
               new_value={'recipients': sorted(recipient_ids)})
    db.session.commit()
    return jsonify(notification.to_dict()), 201
