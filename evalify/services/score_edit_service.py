"""
Score Edit Service
Manual per-question scoring, applied optimistically and undone when the commit fails
"""
import copy
import logging

from sqlalchemy.exc import SQLAlchemyError

from evalify.extensions import db
from evalify.errors import ApiError, NotFoundError, ValidationError
from evalify.models import QuizResult
from evalify.services.report_service import ReportService
from evalify.services.scoring_service import ScoringService
from evalify.utils.helpers import parse_number

logger = logging.getLogger(__name__)


class ScoreEdit:
    """A single score change on one response entry"""

    def __init__(self, result, question_id, score, remarks=None, breakdown=None, questions=None):
        self.result = result
        self.question_id = str(question_id)
        self.score = score
        self.remarks = remarks
        self.breakdown = breakdown
        self.questions = questions if questions is not None else result.quiz.get_questions()
        self._snapshot = None

    def apply(self):
        responses = dict(self.result.responses or {})
        previous = responses.get(self.question_id)
        self._snapshot = (
            self.question_id in responses,
            copy.deepcopy(previous),
            self.result.score,
            self.result.total_score,
            self.result.evaluation_status,
        )

        entry = dict(previous) if isinstance(previous, dict) else {}
        entry['score'] = self.score
        if self.remarks is not None:
            entry['remarks'] = self.remarks
        if self.breakdown is not None:
            entry['breakdown'] = self.breakdown
        responses[self.question_id] = entry

        self.result.responses = responses
        ScoringService.summarize(self.result, self.questions)
        return entry

    def undo(self):
        if self._snapshot is None:
            return
        existed, previous, score, total_score, evaluation_status = self._snapshot
        responses = dict(self.result.responses or {})
        if existed:
            responses[self.question_id] = previous
        else:
            responses.pop(self.question_id, None)
        self.result.responses = responses
        self.result.score = score
        self.result.total_score = total_score
        self.result.evaluation_status = evaluation_status
        self._snapshot = None


class ScoreEditService:
    """Service for manual score updates"""

    @staticmethod
    def validate_score(question, score, settings=None):
        """Coerce and bound-check a manual score; None clears it"""
        if score is None or score == '':
            return None
        value = parse_number(score)
        if value is None:
            raise ValidationError('Score must be a number')

        allowance = ScoringService.negative_mark(question, settings)
        lower = -allowance if allowance else 0.0
        if value > question.marks or value < lower:
            raise ValidationError(
                f'Score must be between {lower} and {question.marks}',
                payload={'min': lower, 'max': question.marks},
            )
        return value

    @staticmethod
    def update_score(result_id, question_id, score, remarks=None, breakdown=None):
        result = db.session.get(QuizResult, result_id)
        if result is None:
            raise NotFoundError('Result not found')

        questions = result.quiz.get_questions()
        question = next((q for q in questions if str(q.id) == str(question_id)), None)
        if question is None:
            raise NotFoundError('Question is not part of this quiz')

        value = ScoreEditService.validate_score(question, score, result.quiz.settings)
        edit = ScoreEdit(result, question.id, value, remarks, breakdown, questions=questions)
        entry = edit.apply()

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            edit.undo()
            logger.exception('Score update failed for result %s question %s', result_id, question_id)
            raise ApiError('Failed to update score', 500)

        logger.info('Result %s question %s scored %s', result_id, question_id, value)
        ReportService.build_report(result.quiz_id)
        return result, entry
