"""
Evaluation Monitor
Polls the evaluation worker for each running quiz and relays progress to Socket.IO rooms
"""
import logging
import threading

from sqlalchemy.exc import SQLAlchemyError

from evalify.extensions import db, socketio
from evalify.errors import ExternalServiceError
from evalify.models import Quiz
from evalify.models.quiz import QUIZ_EVALUATION_STATUSES
from evalify.services.evaluation_client import EvaluationClient, normalize_status, describe_status

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ('QUEUED', 'EVALUATING')
TERMINAL_STATUSES = ('COMPLETED', 'FAILED', 'EVALUATED')
NO_EVALUATION_MESSAGE = 'No Evaluation is Running'


def room_name(quiz_id):
    return f'evaluation_{quiz_id}'


def _socketio_emit(event, data, room):
    socketio.emit(event, data, room=room)


class EvaluationMonitor:
    """
    One polling loop per quiz.

    Each loop owns a token; starting a quiz again replaces the token so the
    old loop exits on its next iteration.
    """

    def __init__(self, client=None, interval=1.0, emit=None, sleep=None, spawn=None):
        self.client = client
        self.interval = interval
        self._emit = emit or _socketio_emit
        self._sleep = sleep or socketio.sleep
        self._spawn = spawn or socketio.start_background_task
        self._app = None
        self._lock = threading.Lock()
        self._loops = {}

    def init_app(self, app, client=None):
        self._app = app
        self.client = client or EvaluationClient.from_config(app.config)
        self.interval = app.config.get('EVAL_POLL_INTERVAL', 1.0)
        with self._lock:
            self._loops = {}
        app.extensions['evaluation_monitor'] = self

    def start(self, quiz_id):
        """Start polling a quiz, replacing any loop already running for it"""
        token = object()
        with self._lock:
            if quiz_id in self._loops:
                logger.info('Replacing evaluation polling for quiz %s', quiz_id)
            self._loops[quiz_id] = token
        logger.info('Starting evaluation polling for quiz %s', quiz_id)
        self._spawn(self._run, quiz_id, token)
        return token

    def stop(self, quiz_id):
        with self._lock:
            token = self._loops.pop(quiz_id, None)
        if token is not None:
            logger.info('Stopping evaluation polling for quiz %s', quiz_id)
        return token is not None

    def resume(self, quiz):
        """Start polling a quiz still marked QUEUED or EVALUATING that has no loop"""
        if quiz.evaluation_status not in ACTIVE_STATUSES or self.is_polling(quiz.id):
            return False
        logger.info('Resuming evaluation polling for quiz %s', quiz.id)
        self.start(quiz.id)
        return True

    def is_polling(self, quiz_id):
        with self._lock:
            return quiz_id in self._loops

    def active_quizzes(self):
        with self._lock:
            return sorted(self._loops)

    def _is_current(self, quiz_id, token):
        with self._lock:
            return self._loops.get(quiz_id) is token

    def _discard(self, quiz_id, token):
        with self._lock:
            if self._loops.get(quiz_id) is token:
                del self._loops[quiz_id]

    def _run(self, quiz_id, token):
        with self._app.app_context():
            try:
                while self._is_current(quiz_id, token):
                    try:
                        self.check(quiz_id)
                    except SQLAlchemyError:
                        db.session.rollback()
                        logger.exception('Database error while polling quiz %s', quiz_id)
                    if not self._is_current(quiz_id, token):
                        break
                    self._sleep(self.interval)
            finally:
                self._discard(quiz_id, token)
                db.session.remove()

    def check(self, quiz_id):
        """Poll once; upstream failures are logged and polling continues"""
        try:
            payload = self.client.get_status(quiz_id)
        except ExternalServiceError as exc:
            logger.warning('Evaluation status check failed for quiz %s: %s', quiz_id, exc.message)
            return None
        return self.handle_status(quiz_id, payload)

    def handle_status(self, quiz_id, payload):
        """Apply one status payload; returns the normalized progress or None"""
        room = room_name(quiz_id)
        progress = normalize_status(payload)

        if progress is not None:
            progress['status_text'] = describe_status(progress)
            self._emit('evaluation_progress', dict(progress, quiz_id=quiz_id), room)

            status = progress['job_status']
            if status in TERMINAL_STATUSES:
                self.stop(quiz_id)
                if status == 'FAILED':
                    self._set_quiz_status(quiz_id, 'FAILED')
                else:
                    self._set_quiz_status(quiz_id, 'EVALUATED')
                    self._emit('evaluation_finished', {'quiz_id': quiz_id, 'job_status': status}, room)
            elif status in ACTIVE_STATUSES:
                self._set_quiz_status(quiz_id, status)
            return progress

        if isinstance(payload, dict) and payload.get('message') == NO_EVALUATION_MESSAGE:
            self.stop(quiz_id)
            quiz = db.session.get(Quiz, quiz_id)
            if quiz is not None and quiz.evaluation_status in ACTIVE_STATUSES:
                self._set_quiz_status(quiz_id, 'NOT_EVALUATED')
            self._emit('evaluation_cleared', {'quiz_id': quiz_id}, room)
        return None

    def _set_quiz_status(self, quiz_id, status):
        if status not in QUIZ_EVALUATION_STATUSES:
            logger.warning('Ignoring unknown evaluation status %s for quiz %s', status, quiz_id)
            return
        quiz = db.session.get(Quiz, quiz_id)
        if quiz is None or quiz.evaluation_status == status:
            return
        logger.info('Quiz %s evaluation status %s -> %s', quiz_id, quiz.evaluation_status, status)
        quiz.evaluation_status = status
        db.session.commit()


evaluation_monitor = EvaluationMonitor()
