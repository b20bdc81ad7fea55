"""
Class Report Client
Builds the class-report request from local data and fetches the xlsx from the report service
"""
import logging

import requests

from evalify.errors import ExternalServiceError
from evalify.models import QuizResult
from evalify.utils.helpers import now_utc, to_local

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

logger = logging.getLogger(__name__)


def _local_iso(dt, tz_name=None):
    local = to_local(dt, tz_name)
    return local.isoformat() if local else None


def build_class_report_payload(course, quizzes, tz_name=None):
    """Course, quizzes and one score row per enrolled student"""
    quiz_ids = [q.id for q in quizzes]
    scores = {}
    if quiz_ids:
        for result in QuizResult.query.filter(QuizResult.quiz_id.in_(quiz_ids)).all():
            scores[(result.student_id, result.quiz_id)] = result.score if result.is_submitted else None

    students = sorted(course.students, key=lambda s: (s.roll_no or '', s.name))
    return {
        'course': {'id': course.id, 'name': course.name, 'code': course.code},
        'generatedAt': _local_iso(now_utc(), tz_name),
        'quizzes': [
            {
                'id': quiz.id,
                'name': quiz.name,
                'startTime': _local_iso(quiz.start_time, tz_name),
                'totalMarks': quiz.total_marks(),
            }
            for quiz in quizzes
        ],
        'students': [
            {
                'id': student.id,
                'name': student.name,
                'email': student.email,
                'rollNo': student.roll_no,
                'scores': {str(qid): scores.get((student.id, qid)) for qid in quiz_ids},
            }
            for student in students
        ],
    }


class ClassReportClient:
    def __init__(self, base_url, timeout=60):
        self.base_url = base_url.rstrip('/')
        self.timeout = float(timeout)

    @classmethod
    def from_config(cls, config):
        return cls(config['REPORT_SERVICE_URL'], config.get('REPORT_SERVICE_TIMEOUT', 60))

    def generate(self, payload):
        """POST the payload and return the xlsx bytes"""
        url = f'{self.base_url}/misc/class-report'
        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning('Report service unreachable: %s', exc)
            raise ExternalServiceError('Report service unavailable')

        if not response.ok:
            logger.warning('Report service returned %s', response.status_code)
            raise ExternalServiceError(
                'Failed to generate class report',
                payload={'upstream_status': response.status_code},
            )
        return response.content
