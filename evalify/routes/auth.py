"""
Authentication Routes
Handles login, logout and the current session's profile
"""
import logging

from flask import Blueprint, jsonify, session

from evalify.extensions import db
from evalify.errors import AuthenticationError, ValidationError
from evalify.models import User
from evalify.utils import get_current_user, get_json_body, now_utc, clean_text

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)


def _login_required():
    user = get_current_user()
    if not user:
        raise AuthenticationError('Login required')
    return user


@auth_bp.route('/login', methods=['POST'])
def login():
    """Email/password login; stores the user in the session cookie"""
    data = get_json_body()
    email = clean_text(data.get('email')).lower()
    password = data.get('password') or ''

    if not email or not password:
        raise ValidationError('Email and password are required')

    user = User.query.filter_by(email=email).first()
    if not user or not user.is_active or not user.check_password(password):
        logger.info('Failed login for %s', email)
        raise AuthenticationError('Invalid email or password')

    session.clear()
    session['user_id'] = user.id
    session['role'] = user.role
    session['name'] = user.name

    user.last_login = now_utc()
    db.session.commit()
    logger.info('User %s logged in as %s', user.id, user.role)

    return jsonify({'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'message': 'Logged out'})


@auth_bp.route('/me')
def me():
    user = _login_required()
    return jsonify({'user': user.to_dict()})


@auth_bp.route('/password', methods=['POST'])
def change_password():
    """Change own password"""
    user = _login_required()
    data = get_json_body()

    if not user.check_password(data.get('current_password') or ''):
        raise AuthenticationError('Current password is incorrect')
    new_password = data.get('new_password') or ''
    if len(new_password) < 8:
        raise ValidationError('New password must be at least 8 characters')

    user.set_password(new_password)
    db.session.commit()
    return jsonify({'message': 'Password updated'})
