"""
Student Routes
Enrolled courses, quiz attempts and published results
"""
import logging

from flask import Blueprint, jsonify, request

from evalify.errors import ConflictError, NotFoundError, PermissionDenied
from evalify.models import Course, Quiz
from evalify.services import SubmissionService
from evalify.utils import require_role, get_current_user, get_json_body, get_or_404, now_utc

student_bp = Blueprint('student', __name__)
logger = logging.getLogger(__name__)


def _student_quiz(quiz_id, student):
    """Published quiz the student is enrolled in"""
    quiz = get_or_404(Quiz, quiz_id, 'Quiz not found')
    if not quiz.publish_quiz:
        raise NotFoundError('Quiz not found')
    if not SubmissionService.is_enrolled(quiz, student):
        raise PermissionDenied('You are not enrolled in this quiz')
    return quiz


def _active_result(quiz, student):
    result = SubmissionService.get_result(quiz, student)
    if result is None:
        raise NotFoundError('Quiz has not been started')
    if result.is_submitted:
        raise ConflictError('Quiz already submitted')
    return result


def _attempt_payload(quiz, result, student):
    quiz_data = quiz.to_dict()
    quiz_data.pop('evaluation_status', None)
    return {
        'quiz': quiz_data,
        'attempt': {
            'id': result.id,
            'start_time': result.start_time.isoformat(),
            'end_time': result.end_time.isoformat() if result.end_time else None,
            'responses': {k: v.get('student_answer') for k, v in (result.responses or {}).items()},
        },
        'questions': SubmissionService.attempt_questions(quiz, student),
    }


@student_bp.route('/courses')
@require_role('STUDENT')
def my_courses():
    student = get_current_user()
    courses = [c for c in Course.query.filter_by(is_active=True).order_by(Course.code).all()
               if c.has_student(student)]
    return jsonify({'courses': [c.to_dict() for c in courses]})


@student_bp.route('/courses/<int:course_id>/quizzes')
@require_role('STUDENT')
def course_quizzes(course_id):
    """Published quizzes of a course with their status for this student"""
    student = get_current_user()
    course = get_or_404(Course, course_id, 'Course not found')
    if not course.has_student(student):
        raise PermissionDenied('You are not enrolled in this course')

    now = now_utc()
    quizzes = []
    for quiz in sorted(course.quizzes, key=lambda q: q.start_time):
        if not quiz.publish_quiz:
            continue
        result = SubmissionService.get_result(quiz, student)
        quizzes.append({
            'id': quiz.id,
            'name': quiz.name,
            'description': quiz.description,
            'start_time': quiz.start_time.isoformat(),
            'end_time': quiz.end_time.isoformat(),
            'duration_minutes': quiz.duration_minutes,
            'has_password': bool(quiz.password),
            'status': quiz.status(now),
            'submission_status': result.submission_status if result else 'NOT_STARTED',
            'publish_result': quiz.publish_result,
        })
    return jsonify({'course': course.to_dict(), 'quizzes': quizzes})


@student_bp.route('/quizzes/<int:quiz_id>/start', methods=['POST'])
@require_role('STUDENT')
def start_quiz(quiz_id):
    student = get_current_user()
    quiz = _student_quiz(quiz_id, student)
    result, created = SubmissionService.start_attempt(
        quiz,
        student,
        password=get_json_body().get('password'),
        ip=request.remote_addr,
    )
    return jsonify(_attempt_payload(quiz, result, student)), 201 if created else 200


@student_bp.route('/quizzes/<int:quiz_id>/questions')
@require_role('STUDENT')
def attempt_questions(quiz_id):
    student = get_current_user()
    quiz = _student_quiz(quiz_id, student)
    result = _active_result(quiz, student)
    return jsonify(_attempt_payload(quiz, result, student))


@student_bp.route('/quizzes/<int:quiz_id>/responses', methods=['PUT'])
@require_role('STUDENT')
def save_responses(quiz_id):
    student = get_current_user()
    quiz = _student_quiz(quiz_id, student)
    result = _active_result(quiz, student)
    SubmissionService.save_responses(result, get_json_body().get('responses') or {})
    return jsonify({'message': 'Responses saved', 'saved_at': now_utc().isoformat()})


@student_bp.route('/quizzes/<int:quiz_id>/violations', methods=['POST'])
@require_role('STUDENT')
def report_violation(quiz_id):
    """Record a proctoring violation such as leaving full screen"""
    student = get_current_user()
    quiz = _student_quiz(quiz_id, student)
    result = _active_result(quiz, student)
    count = SubmissionService.record_violation(result, get_json_body().get('message') or 'violation')
    logger.info('Violation %d recorded for student %s on quiz %s', count, student.id, quiz.id)
    return jsonify({'violations': count})


@student_bp.route('/quizzes/<int:quiz_id>/submit', methods=['POST'])
@require_role('STUDENT')
def submit_quiz(quiz_id):
    student = get_current_user()
    quiz = _student_quiz(quiz_id, student)
    result = _active_result(quiz, student)
    SubmissionService.submit(result, get_json_body().get('responses'))
    return jsonify({
        'message': 'Quiz submitted',
        'submission_status': result.submission_status,
        'submission_time': result.submission_time.isoformat(),
    })


@student_bp.route('/quizzes/<int:quiz_id>/result')
@require_role('STUDENT')
def quiz_result(quiz_id):
    student = get_current_user()
    quiz = _student_quiz(quiz_id, student)
    if not quiz.publish_result:
        raise PermissionDenied('Results have not been published')

    result = SubmissionService.get_result(quiz, student)
    if result is None or not result.is_submitted:
        raise NotFoundError('No submitted attempt for this quiz')

    return jsonify({
        'result': result.to_dict(include_responses=True),
        'questions': [q.to_dict() for q in quiz.get_questions()],
    })
