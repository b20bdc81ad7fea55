"""
Evaluation Client
HTTP client for the external evaluation worker service
"""
import logging

import requests

from evalify.errors import ExternalServiceError

logger = logging.getLogger(__name__)

PHASE_TEXT = {
    'initializing': 'Initializing evaluation',
    'validation': 'Validating submissions',
    'evaluation_start': 'Starting evaluation',
    'evaluation_in_progress': 'Evaluation in progress',
    'evaluation_completed': 'Finalizing evaluation',
}

DEFAULT_TYPES_TO_EVALUATE = {
    'MCQ': True,
    'DESCRIPTIVE': True,
    'CODING': True,
    'TRUE_FALSE': True,
    'FILL_IN_BLANK': True,
}


def normalize_status(payload):
    """
    Normalize a status payload from the worker.
    Returns None when no job is reported.
    """
    if not isinstance(payload, dict) or not payload.get('job_status'):
        return None
    return {
        'job_status': payload['job_status'],
        'current_phase': payload.get('phase') or 'waiting',
        'progress': payload.get('progress') or 0,
        'current': payload.get('current'),
        'total': payload.get('total'),
        'elapsed': payload.get('elapsed'),
        'rate': payload.get('rate'),
        'remaining': payload.get('remaining'),
    }


def describe_status(progress):
    """Display text for a normalized status"""
    if not progress:
        return 'Status unknown'
    status = progress.get('job_status')
    if status == 'QUEUED':
        return 'Queued for evaluation'
    if status == 'EVALUATING':
        return PHASE_TEXT.get(progress.get('current_phase'), 'Evaluating')
    if status in ('COMPLETED', 'EVALUATED'):
        return 'Evaluation completed'
    if status == 'FAILED':
        return 'Evaluation failed'
    return 'Status unknown'


class EvaluationClient:
    def __init__(self, base_url, timeout=10):
        self.base_url = base_url.rstrip('/')
        self.timeout = float(timeout)

    @classmethod
    def from_config(cls, config):
        return cls(config['EVAL_SERVICE_URL'], config.get('EVAL_SERVICE_TIMEOUT', 10))

    def _request(self, method, path, payload=None):
        url = f'{self.base_url}{path}'
        try:
            response = requests.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning('Evaluation service unreachable (%s %s): %s', method, url, exc)
            raise ExternalServiceError('Evaluation service unavailable')

        if not response.ok:
            raise ExternalServiceError(
                _error_text(response, 'Evaluation service error'),
                payload={'upstream_status': response.status_code},
            )
        try:
            return response.json()
        except ValueError:
            return {}

    def get_status(self, quiz_id):
        return self._request('GET', f'/evaluation/status/{quiz_id}')

    def evaluate(self, quiz_id, override_evaluated=False, types_to_evaluate=None):
        body = {
            'quiz_id': str(quiz_id),
            'override_evaluated': bool(override_evaluated),
            'types_to_evaluate': types_to_evaluate or dict(DEFAULT_TYPES_TO_EVALUATE),
        }
        return self._request('POST', '/evaluation/evaluate', body)

    def stop(self, quiz_id):
        return self._request('POST', f'/workers/jobs/stop/{quiz_id}')

    def regenerate_report(self, quiz_id):
        return self._request('POST', f'/evaluation/regenerate-quiz-report/{quiz_id}')


def _error_text(response, default):
    try:
        body = response.json()
    except ValueError:
        return response.text or default
    if isinstance(body, dict):
        return body.get('error') or body.get('message') or default
    return default
