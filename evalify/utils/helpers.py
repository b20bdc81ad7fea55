"""
Helper Functions
Utility functions used across the application
"""
from datetime import datetime, timezone
from functools import wraps
import math
import re

from flask import current_app, session
import pytz

from evalify.errors import AuthenticationError, NotFoundError, PermissionDenied


def now_utc():
    """Current UTC time as a naive datetime (the database stores naive UTC)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_local(utc_dt, tz_name=None):
    """Convert a naive UTC datetime to the configured timezone for display"""
    if not utc_dt:
        return None
    tz = pytz.timezone(tz_name or current_app.config.get('TIMEZONE', 'UTC'))
    return utc_dt.replace(tzinfo=pytz.utc).astimezone(tz)


def parse_datetime(value):
    """Parse an ISO-8601 string into naive UTC; None passes through"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def isoformat(dt):
    return dt.isoformat() if dt else None


def parse_number(value):
    """Coerce to a finite float; None when the value is not a usable number"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def clean_text(value):
    """Stripped text, or an empty string for anything that is not a string"""
    return value.strip() if isinstance(value, str) else ''


def strip_html_tags(html_text):
    """Strip HTML tags from text for plain text comparison"""
    if not html_text:
        return ""
    clean = re.compile('<.*?>')
    return re.sub(clean, '', html_text)


def get_current_user():
    """Get current logged-in user"""
    from evalify.extensions import db
    from evalify.models import User

    user_id = session.get("user_id")
    if user_id is None:
        return None
    return db.session.get(User, user_id)


def require_role(*roles):
    """
    Decorator to require one of the given roles.
    ADMIN passes every check.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            role = session.get("role")
            if "user_id" not in session or not role:
                raise AuthenticationError("Login required")
            if role != "ADMIN" and role not in roles:
                raise PermissionDenied("Insufficient role")
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def get_json_body():
    """Request JSON as a dict, empty when missing or malformed"""
    from flask import request

    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def get_or_404(model, ident, message=None):
    """Fetch by primary key or raise NotFoundError"""
    from evalify.extensions import db

    obj = db.session.get(model, ident) if ident is not None else None
    if obj is None:
        raise NotFoundError(message or f'{model.__name__} not found')
    return obj


def get_managed_quiz(quiz_id):
    """Quiz the current user may manage, else NotFoundError/PermissionDenied"""
    from evalify.models import Quiz

    quiz = get_or_404(Quiz, quiz_id, 'Quiz not found')
    user = get_current_user()
    if user is None or not quiz.can_manage(user):
        raise PermissionDenied('You do not manage this quiz')
    return quiz
