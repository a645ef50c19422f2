# FILE: edutrack/auth/captcha.py
"""
CAPTCHA support: verification of the token sent with register/login, and
the locally generated image challenge served from /api/captcha.
"""
import random
import secrets
from datetime import datetime
from io import BytesIO

import certifi
import requests
from flask import current_app
from PIL import Image, ImageDraw, ImageFont

from edutrack import db
from edutrack.exceptions import APIError, BadRequest, NotFound
from edutrack.models import CaptchaChallenge
from edutrack.utils import generate_token

MATH_CAPTCHA_PREFIX = 'math-captcha-'
CAPTCHA_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnopqrstuvwxyz23456789'
CAPTCHA_LENGTH = 6
IMAGE_SIZE = (200, 80)


def verify_captcha_token(token, remote_ip=None):
    """
    Raises unless `token` passes verification.

    Tokens issued by the front-end math challenge are accepted as-is; anything
    else is checked against Google reCAPTCHA.
    """
    if not token:
        raise BadRequest('CAPTCHA verification required')
    if token.startswith(MATH_CAPTCHA_PREFIX):
        return True

    try:
        response = requests.post(
            current_app.config['RECAPTCHA_VERIFY_URL'],
            data={
                'secret': current_app.config['RECAPTCHA_SECRET_KEY'],
                'response': token,
                'remoteip': remote_ip,
            },
            timeout=current_app.config['RECAPTCHA_TIMEOUT'],
            verify=certifi.where(),
        )
        response.raise_for_status()
        result = response.json()
    except (requests.RequestException, ValueError) as e:
        current_app.logger.error(f'reCAPTCHA verification request failed: {e}', exc_info=True)
        raise APIError('CAPTCHA verification failed')

    if not result.get('success'):
        current_app.logger.info(f"reCAPTCHA rejected token: {result.get('error-codes')}")
        raise BadRequest('CAPTCHA verification failed')
    return True


def generate_captcha_text(length=CAPTCHA_LENGTH):
    return ''.join(secrets.choice(CAPTCHA_ALPHABET) for _ in range(length))


def _random_color(low, high):
    return tuple(random.randint(low, high) for _ in range(3))


def render_captcha_image(text):
    """Draws `text` with per-glyph rotation and noise; returns PNG bytes."""
    width, height = IMAGE_SIZE
    image = Image.new('RGB', IMAGE_SIZE, (248, 249, 250))
    draw = ImageDraw.Draw(image)

    for _ in range(5):
        start = (random.randint(0, width), random.randint(0, height))
        end = (random.randint(0, width), random.randint(0, height))
        draw.line([start, end], fill=_random_color(150, 220), width=1)

    font = ImageFont.load_default(size=36)
    step = width // (len(text) + 1)
    for index, char in enumerate(text):
        glyph = Image.new('RGBA', (48, 56), (0, 0, 0, 0))
        ImageDraw.Draw(glyph).text((8, 4), char, font=font, fill=_random_color(20, 120))
        glyph = glyph.rotate(random.uniform(-25, 25), resample=Image.Resampling.BICUBIC)
        x = step * (index + 1) - 24 + random.randint(-4, 4)
        y = (height - 56) // 2 + random.randint(-6, 6)
        image.paste(glyph, (x, y), glyph)

    for _ in range(80):
        draw.point((random.randint(0, width - 1), random.randint(0, height - 1)),
                   fill=_random_color(100, 200))

    buffer = BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


def create_captcha_challenge():
    """Stores a new challenge (pruning expired ones) and returns (id, png_bytes)."""
    now = datetime.utcnow()
    CaptchaChallenge.query.filter(CaptchaChallenge.expires_at < now).delete(synchronize_session=False)

    text = generate_captcha_text()
    challenge = CaptchaChallenge(id=generate_token(16), text=text,
                                 expires_at=now + current_app.config['CAPTCHA_TTL'])
    db.session.add(challenge)
    db.session.commit()
    return challenge.id, render_captcha_image(text)


def check_captcha_answer(captcha_id, text):
    """
    One-time check of an image challenge. The challenge is consumed whether
    or not the answer matches. Returns True on a case-insensitive match.
    """
    if not captcha_id or not text:
        raise BadRequest('CAPTCHA ID and text are required')

    challenge = db.session.get(CaptchaChallenge, captcha_id)
    if challenge is None:
        raise NotFound('CAPTCHA not found or expired')
    db.session.delete(challenge)
    db.session.commit()

    if challenge.is_expired:
        raise BadRequest('CAPTCHA expired')
    return challenge.text.lower() == str(text).strip().lower()
