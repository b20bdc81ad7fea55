"""
Submission Service
Student attempts: start, save, submit and the auto-submit sweep
"""
import copy
import logging
import random

from evalify.extensions import db
from evalify.errors import ConflictError, PermissionDenied, ValidationError
from evalify.models import Quiz, QuizResult
from evalify.services.scoring_service import ScoringService
from evalify.utils.helpers import now_utc

logger = logging.getLogger(__name__)


def _seeded(*parts):
    return random.Random(':'.join(str(p) for p in parts))


class SubmissionService:
    """Service for student attempts"""

    @staticmethod
    def is_enrolled(quiz, student):
        return any(course.has_student(student) for course in quiz.courses)

    @staticmethod
    def get_result(quiz, student):
        return QuizResult.query.filter_by(quiz_id=quiz.id, student_id=student.id).first()

    @staticmethod
    def start_attempt(quiz, student, password=None, ip=None, now=None):
        """Create the student's result, or resume an unfinished one"""
        now = now or now_utc()

        if not quiz.publish_quiz:
            raise PermissionDenied('Quiz is not published')
        if not SubmissionService.is_enrolled(quiz, student):
            raise PermissionDenied('You are not enrolled in this quiz')
        if quiz.status(now) != 'LIVE':
            raise ValidationError('Quiz is not live')
        if quiz.password and password != quiz.password:
            raise PermissionDenied('Invalid quiz password')

        result = SubmissionService.get_result(quiz, student)
        if result is not None:
            if result.is_submitted:
                raise ConflictError('Quiz already submitted')
            if result.end_time and now > result.end_time:
                raise ConflictError('Attempt time is over')
            if ip and ip not in (result.ip or []):
                result.ip = list(result.ip or []) + [ip]
                db.session.commit()
            logger.info('Student %s resumed quiz %s', student.id, quiz.id)
            return result, False

        result = QuizResult(
            quiz_id=quiz.id,
            student_id=student.id,
            start_time=now,
            end_time=min(now + quiz.duration, quiz.end_time),
            responses={},
            total_score=quiz.total_marks(),
            ip=[ip] if ip else [],
        )
        db.session.add(result)
        db.session.commit()
        logger.info('Student %s started quiz %s', student.id, quiz.id)
        return result, True

    @staticmethod
    def attempt_questions(quiz, student):
        """Questions without solutions, shuffled per student when enabled"""
        questions = quiz.get_questions()
        if quiz.shuffle_questions:
            questions = list(questions)
            _seeded(quiz.id, student.id).shuffle(questions)

        payload = []
        for question in questions:
            data = question.to_dict(include_solution=False)
            data['question_data'] = copy.deepcopy(data['question_data'])
            options = question.get_options()
            if options:
                options = [dict(o) for o in options]
                if quiz.shuffle_options:
                    _seeded(quiz.id, student.id, question.id).shuffle(options)
                data['question_data']['options'] = options
            payload.append(data)
        return payload

    @staticmethod
    def _merge_answers(result, answers):
        if not isinstance(answers, dict):
            raise ValidationError('Responses must be an object keyed by question id')

        question_ids = {str(q.id) for q in result.quiz.get_questions()}
        unknown = [qid for qid in answers if str(qid) not in question_ids]
        if unknown:
            raise ValidationError('Unknown question in responses', payload={'question_ids': unknown})

        responses = dict(result.responses or {})
        for qid, answer in answers.items():
            entry = dict(responses.get(str(qid)) or {})
            entry['student_answer'] = answer
            responses[str(qid)] = entry
        result.responses = responses

    @staticmethod
    def save_responses(result, answers, now=None):
        now = now or now_utc()
        if result.is_submitted:
            raise ConflictError('Quiz already submitted')
        if result.end_time and now > result.end_time:
            raise ConflictError('Attempt time is over')
        SubmissionService._merge_answers(result, answers)
        db.session.commit()
        return result

    @staticmethod
    def record_violation(result, message, now=None):
        if result.is_submitted:
            raise ConflictError('Quiz already submitted')
        now = now or now_utc()
        line = f'{now.isoformat()} {message}'.strip()
        result.violations = f'{result.violations}\n{line}' if result.violations else line
        db.session.commit()
        return result.violation_count()

    @staticmethod
    def _finalize(result, status, now):
        quiz = result.quiz
        result.submission_status = status
        result.submission_time = now
        ScoringService.evaluate_result(result, quiz.get_questions(), quiz.settings)

    @staticmethod
    def submit(result, answers=None, now=None):
        now = now or now_utc()
        if result.is_submitted:
            raise ConflictError('Quiz already submitted')
        if answers:
            if result.end_time and now > result.end_time:
                raise ConflictError('Attempt time is over')
            SubmissionService._merge_answers(result, answers)

        SubmissionService._finalize(result, 'SUBMITTED', now)
        db.session.commit()
        logger.info('Student %s submitted quiz %s', result.student_id, result.quiz_id)
        return result

    @staticmethod
    def auto_submit_expired(now=None):
        """Mark unfinished attempts past their end time on auto-submit quizzes"""
        now = now or now_utc()
        expired = (
            QuizResult.query.join(Quiz, QuizResult.quiz_id == Quiz.id)
            .filter(
                Quiz.auto_submit.is_(True),
                QuizResult.submission_status == 'NOT_SUBMITTED',
                QuizResult.end_time < now,
            )
            .all()
        )

        for result in expired:
            SubmissionService._finalize(result, 'AUTO_SUBMITTED', now)
            logger.info('Auto-submitted result %s (quiz %s, student %s)',
                        result.id, result.quiz_id, result.student_id)

        db.session.commit()
        return len(expired)
