"""
Scoring Service
Automatic evaluation of objective question types
"""
import logging

from evalify.extensions import db
from evalify.models import QuizResult
from evalify.services.report_service import ReportService
from evalify.utils.helpers import strip_html_tags

logger = logging.getLogger(__name__)

# Types that need a human or the external evaluator
MANUAL_TYPES = ('DESCRIPTIVE', 'CODING', 'FILE_UPLOAD')
NEGATIVE_MARKING_TYPES = ('MCQ', 'MMCQ', 'TRUE_FALSE')


def _is_unattempted(answer):
    if answer is None:
        return True
    if isinstance(answer, str):
        return not answer.strip()
    if isinstance(answer, (list, tuple, dict, set)):
        return len(answer) == 0
    return False


def _normalize_text(value):
    return ' '.join(strip_html_tags(str(value)).split()).lower()


def _as_id_set(answer):
    if isinstance(answer, (list, tuple, set)):
        return {str(a) for a in answer if a is not None and str(a) != ''}
    return {str(answer)}


def _as_bool(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    return None


def score_total(responses):
    """Sum of every numeric score in a responses dict"""
    total = 0.0
    for entry in (responses or {}).values():
        score = entry.get('score') if isinstance(entry, dict) else None
        if isinstance(score, (int, float)) and not isinstance(score, bool):
            total += score
    return round(total, 2)


class ScoringService:
    """Service for scoring answers"""

    @staticmethod
    def negative_mark(question, settings=None):
        """
        Mark deducted for a wrong objective answer.
        Quiz-wide settings override the question's own value.
        """
        if question.type not in NEGATIVE_MARKING_TYPES:
            return 0.0
        if settings is not None and settings.mcq_global_negative_mark is not None:
            return float(settings.mcq_global_negative_mark)
        if settings is not None and settings.mcq_global_negative_percent is not None:
            return round(question.marks * settings.mcq_global_negative_percent / 100, 2)
        return float(question.negative_marks or 0)

    @staticmethod
    def score_question(question, answer, settings=None):
        """
        Score one answer.
        Returns the awarded marks, or None when the type is not auto-scorable.
        """
        if _is_unattempted(answer):
            return 0.0
        if question.type in MANUAL_TYPES:
            return None

        marks = float(question.marks or 0)
        solution = question.solution or {}
        deduction = ScoringService.negative_mark(question, settings)
        penalty = -deduction if deduction else 0.0

        if question.type == 'MCQ':
            selected = _as_id_set(answer)
            correct = set(question.correct_option_ids())
            return marks if correct and selected == correct else penalty

        if question.type == 'MMCQ':
            selected = _as_id_set(answer)
            correct = set(question.correct_option_ids())
            if not correct:
                return 0.0
            if selected == correct:
                return marks
            if selected - correct:
                return penalty
            if settings is not None and settings.mcq_global_partial_marking:
                return round(marks * len(selected & correct) / len(correct), 2)
            return 0.0

        if question.type == 'TRUE_FALSE':
            given = _as_bool(answer)
            expected = _as_bool(solution.get('trueFalseAnswer'))
            if given is None or expected is None:
                return penalty
            return marks if given == expected else penalty

        if question.type == 'FILL_THE_BLANK':
            blanks = solution.get('blanks') or {}
            if not blanks:
                return 0.0
            if isinstance(answer, (list, tuple)):
                answer = {str(i): value for i, value in enumerate(answer, 1)}
            elif not isinstance(answer, dict):
                answer = {'1': answer}
            per_blank = marks / len(blanks)
            awarded = 0.0
            for key, accepted in blanks.items():
                given = answer.get(str(key))
                if given is None:
                    continue
                if not isinstance(accepted, (list, tuple)):
                    accepted = [accepted]
                if _normalize_text(given) in {_normalize_text(a) for a in accepted}:
                    awarded += per_blank
            return round(awarded, 2)

        if question.type == 'MATCHING':
            matches = solution.get('matches') or {}
            if not matches or not isinstance(answer, dict):
                return 0.0
            per_pair = marks / len(matches)
            awarded = sum(
                per_pair for left, right in matches.items()
                if str(answer.get(str(left), '')) == str(right)
            )
            return round(awarded, 2)

        return None

    @staticmethod
    def summarize(result, questions):
        """Recompute score, total and evaluation status from the responses"""
        responses = result.responses or {}
        question_ids = {str(q.id) for q in questions}
        result.score = score_total({k: v for k, v in responses.items() if k in question_ids})
        result.total_score = round(sum(q.marks or 0 for q in questions), 2)
        all_scored = all(
            isinstance(responses.get(str(q.id)), dict)
            and responses[str(q.id)].get('score') is not None
            for q in questions
        )
        result.evaluation_status = 'EVALUATED' if all_scored else 'NOT_EVALUATED'

    @staticmethod
    def evaluate_result(result, questions, settings=None, types=None, override_evaluated=False):
        """
        Score every auto-scorable question of one result.
        Existing scores are kept unless override_evaluated is set.
        """
        responses = dict(result.responses or {})
        scored = 0
        for question in questions:
            if types and question.type not in types:
                continue
            key = str(question.id)
            entry = dict(responses.get(key) or {})
            if entry.get('score') is not None and not override_evaluated:
                continue
            score = ScoringService.score_question(question, entry.get('student_answer'), settings)
            if score is None:
                continue
            entry['score'] = score
            responses[key] = entry
            scored += 1

        # JSON columns only track reassignment
        result.responses = responses
        ScoringService.summarize(result, questions)
        return scored

    @staticmethod
    def evaluate_quiz(quiz, types=None, override_evaluated=False):
        """Evaluate every submitted result of a quiz and rebuild its report"""
        questions = quiz.get_questions()
        settings = quiz.settings
        results = QuizResult.query.filter(
            QuizResult.quiz_id == quiz.id,
            QuizResult.submission_status != 'NOT_SUBMITTED',
        ).all()

        for result in results:
            ScoringService.evaluate_result(result, questions, settings, types, override_evaluated)

        db.session.commit()
        logger.info('Evaluated %d results for quiz %s', len(results), quiz.id)

        ReportService.build_report(quiz.id)
        return len(results)
