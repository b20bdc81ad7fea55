"""
Socket.IO Event Handlers
Staff subscribe to evaluation progress of a quiz
"""
import logging

from flask import session, request
from flask_socketio import emit, join_room, leave_room

from evalify.extensions import db, socketio
from evalify.models import Quiz, User
from evalify.services.evaluation_monitor import evaluation_monitor, room_name

logger = logging.getLogger(__name__)

STAFF_ROLES = ('ADMIN', 'MANAGER', 'STAFF')


def _quiz_id(data):
    try:
        return int((data or {}).get('quiz_id'))
    except (TypeError, ValueError):
        return None


def register_socket_events():
    """Register all Socket.IO event handlers"""

    @socketio.on('join_evaluation')
    def join_evaluation(data):
        """Staff joins the evaluation room of a quiz"""
        quiz_id = _quiz_id(data)
        if quiz_id is None:
            emit('evaluation_error', {'error': 'quiz_id is required'})
            return
        if session.get('role') not in STAFF_ROLES:
            emit('evaluation_error', {'error': 'Login required', 'quiz_id': quiz_id})
            return

        user = db.session.get(User, session.get('user_id'))
        quiz = db.session.get(Quiz, quiz_id)
        if user is None or quiz is None or not quiz.can_manage(user):
            emit('evaluation_error', {'error': 'You do not manage this quiz', 'quiz_id': quiz_id})
            return

        join_room(room_name(quiz_id))
        logger.debug('Socket %s joined %s', request.sid, room_name(quiz_id))
        emit('evaluation_joined', {
            'quiz_id': quiz_id,
            'evaluation_status': quiz.evaluation_status,
            'is_polling': evaluation_monitor.is_polling(quiz_id),
        })

    @socketio.on('leave_evaluation')
    def leave_evaluation(data):
        quiz_id = _quiz_id(data)
        if quiz_id is None:
            return
        leave_room(room_name(quiz_id))
        logger.debug('Socket %s left %s', request.sid, room_name(quiz_id))
