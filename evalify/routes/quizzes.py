"""
Quiz Routes
Quiz authoring: details, courses, questions, publishing and evaluation settings
"""
import logging

from flask import Blueprint, jsonify, request

from evalify.extensions import db
from evalify.errors import NotFoundError, PermissionDenied, ValidationError
from evalify.models import Course, Question, Quiz, QuizQuestion, QuizEvaluationSettings
from evalify.services import BankService, QuestionService
from evalify.utils import (
    require_role,
    get_current_user,
    get_json_body,
    get_managed_quiz,
    parse_datetime,
    parse_number,
    clean_text,
)

quizzes_bp = Blueprint('quizzes', __name__)
logger = logging.getLogger(__name__)

BOOLEAN_FIELDS = (
    'full_screen',
    'shuffle_questions',
    'shuffle_options',
    'linear_quiz',
    'calculator',
    'auto_submit',
)


def _courses_from_ids(course_ids, user):
    if not isinstance(course_ids, list):
        raise ValidationError('course_ids must be a list')
    courses = Course.query.filter(Course.id.in_(course_ids)).all() if course_ids else []
    if len(courses) != len(set(course_ids)):
        raise NotFoundError('Course not found')
    if user.role == 'STAFF':
        for course in courses:
            if not course.has_instructor(user):
                raise PermissionDenied(f'You do not teach {course.code}')
    return courses


def _apply_quiz_fields(quiz, data, user):
    """Copy validated fields from the payload onto the quiz"""
    if 'name' in data:
        name = clean_text(data['name'])
        if not name:
            raise ValidationError('Quiz name is required')
        quiz.name = name
    for field in ('description', 'instructions'):
        if field in data:
            setattr(quiz, field, data[field])
    if 'password' in data:
        quiz.password = data['password'] or None

    for field in ('start_time', 'end_time'):
        if field in data:
            value = parse_datetime(data[field])
            if value is None:
                raise ValidationError(f'{field} must be an ISO-8601 datetime')
            setattr(quiz, field, value)
    if 'duration_minutes' in data:
        try:
            quiz.duration_minutes = int(data['duration_minutes'])
        except (TypeError, ValueError):
            raise ValidationError('duration_minutes must be an integer')

    for field in BOOLEAN_FIELDS:
        if field in data:
            setattr(quiz, field, bool(data[field]))
    if 'course_ids' in data:
        quiz.courses = _courses_from_ids(data['course_ids'], user)

    if not quiz.name:
        raise ValidationError('Quiz name is required')
    if quiz.start_time is None or quiz.end_time is None:
        raise ValidationError('start_time and end_time are required')
    if quiz.start_time >= quiz.end_time:
        raise ValidationError('start_time must be before end_time')
    if not quiz.duration_minutes or quiz.duration_minutes <= 0:
        raise ValidationError('duration_minutes must be positive')


def _quiz_detail(quiz):
    data = quiz.to_dict()
    data['questions'] = [
        dict(qq.question.to_dict(), order_index=qq.order_index)
        for qq in quiz.quiz_questions
    ]
    data['settings'] = quiz.get_settings().to_dict()
    return data


def _next_order_index(quiz):
    return max((qq.order_index for qq in quiz.quiz_questions), default=-1) + 1


@quizzes_bp.route('')
@require_role('STAFF', 'MANAGER')
def list_quizzes():
    user = get_current_user()
    query = Quiz.query
    course_id = request.args.get('course_id', type=int)
    if course_id:
        query = query.filter(Quiz.courses.any(id=course_id))
    quizzes = [q for q in query.order_by(Quiz.start_time.desc()).all() if q.can_manage(user)]
    return jsonify({'quizzes': [q.to_dict() for q in quizzes]})


@quizzes_bp.route('', methods=['POST'])
@require_role('STAFF', 'MANAGER')
def create_quiz():
    user = get_current_user()
    data = get_json_body()

    quiz = Quiz(created_by_id=user.id, name='')
    for field in BOOLEAN_FIELDS:
        setattr(quiz, field, False)
    _apply_quiz_fields(quiz, data, user)
    quiz.settings = QuizEvaluationSettings()

    db.session.add(quiz)
    db.session.commit()
    logger.info('Quiz %s created by user %s', quiz.id, user.id)
    return jsonify({'quiz': _quiz_detail(quiz)}), 201


@quizzes_bp.route('/<int:quiz_id>')
@require_role('STAFF', 'MANAGER')
def get_quiz(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    return jsonify({'quiz': _quiz_detail(quiz)})


@quizzes_bp.route('/<int:quiz_id>', methods=['PUT'])
@require_role('STAFF', 'MANAGER')
def update_quiz(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    _apply_quiz_fields(quiz, get_json_body(), get_current_user())
    db.session.commit()
    return jsonify({'quiz': _quiz_detail(quiz)})


@quizzes_bp.route('/<int:quiz_id>', methods=['DELETE'])
@require_role('STAFF', 'MANAGER')
def delete_quiz(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    authored = [qq.question for qq in quiz.quiz_questions if qq.question.bank_id is None]
    db.session.delete(quiz)
    for question in authored:
        db.session.delete(question)
    db.session.commit()
    logger.info('Quiz %s deleted', quiz_id)
    return jsonify({'message': 'Quiz deleted'})


# ==================== QUESTIONS ====================

@quizzes_bp.route('/<int:quiz_id>/questions/from-bank', methods=['POST'])
@require_role('STAFF', 'MANAGER')
def add_bank_questions(quiz_id):
    """Link bank questions; questions already in the quiz are skipped"""
    user = get_current_user()
    quiz = get_managed_quiz(quiz_id)
    question_ids = get_json_body().get('question_ids') or []
    if not isinstance(question_ids, list) or not question_ids:
        raise ValidationError('question_ids must be a non-empty list')

    existing = {qq.question_id for qq in quiz.quiz_questions}
    checked_banks = set()
    order_index = _next_order_index(quiz)
    added, skipped = [], []

    for question_id in question_ids:
        question = db.session.get(Question, question_id)
        if question is None or question.bank_id is None:
            raise NotFoundError(f'Bank question {question_id} not found')
        if question.bank_id not in checked_banks:
            BankService.get_bank(question.bank_id, user, 'READ')
            checked_banks.add(question.bank_id)
        if question.id in existing:
            skipped.append(question.id)
            continue

        quiz.quiz_questions.append(QuizQuestion(question_id=question.id, order_index=order_index))
        existing.add(question.id)
        added.append(question.id)
        order_index += 1

    db.session.commit()
    logger.info('Quiz %s: added %d bank questions, skipped %d', quiz_id, len(added), len(skipped))
    return jsonify({'added': added, 'skipped': skipped, 'quiz': _quiz_detail(quiz)})


@quizzes_bp.route('/<int:quiz_id>/questions', methods=['POST'])
@require_role('STAFF', 'MANAGER')
def author_question(quiz_id):
    """Create a question that lives only in this quiz"""
    user = get_current_user()
    quiz = get_managed_quiz(quiz_id)
    question = QuestionService.create(get_json_body(), user)
    quiz.quiz_questions.append(QuizQuestion(question=question, order_index=_next_order_index(quiz)))
    db.session.commit()
    return jsonify({'question': question.to_dict()}), 201


@quizzes_bp.route('/<int:quiz_id>/questions/<int:question_id>', methods=['PUT'])
@require_role('STAFF', 'MANAGER')
def update_quiz_question(quiz_id, question_id):
    quiz = get_managed_quiz(quiz_id)
    link = next((qq for qq in quiz.quiz_questions if qq.question_id == question_id), None)
    if link is None:
        raise NotFoundError('Question is not part of this quiz')
    if link.question.bank_id is not None:
        raise ValidationError('Bank questions are edited in their bank')
    QuestionService.update(link.question, get_json_body())
    db.session.commit()
    return jsonify({'question': link.question.to_dict()})


@quizzes_bp.route('/<int:quiz_id>/questions/<int:question_id>', methods=['DELETE'])
@require_role('STAFF', 'MANAGER')
def remove_question(quiz_id, question_id):
    quiz = get_managed_quiz(quiz_id)
    link = next((qq for qq in quiz.quiz_questions if qq.question_id == question_id), None)
    if link is None:
        raise NotFoundError('Question is not part of this quiz')

    question = link.question
    quiz.quiz_questions.remove(link)
    if question.bank_id is None:
        db.session.delete(question)
    db.session.commit()
    return jsonify({'message': 'Question removed'})


@quizzes_bp.route('/<int:quiz_id>/questions/order', methods=['PUT'])
@require_role('STAFF', 'MANAGER')
def reorder_questions(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    order = get_json_body().get('question_ids')
    links = {qq.question_id: qq for qq in quiz.quiz_questions}
    if not isinstance(order, list) or sorted(order) != sorted(links):
        raise ValidationError('question_ids must list every quiz question exactly once')

    for index, question_id in enumerate(order):
        links[question_id].order_index = index
    db.session.commit()
    db.session.expire(quiz, ['quiz_questions'])
    return jsonify({'quiz': _quiz_detail(quiz)})


# ==================== PUBLISHING & SETTINGS ====================

@quizzes_bp.route('/<int:quiz_id>/publish', methods=['POST'])
@require_role('STAFF', 'MANAGER')
def publish_quiz(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    publish = bool(get_json_body().get('publish', True))
    if publish and not quiz.quiz_questions:
        raise ValidationError('Cannot publish a quiz without questions')
    if publish and not quiz.courses:
        raise ValidationError('Cannot publish a quiz that is not linked to a course')
    quiz.publish_quiz = publish
    db.session.commit()
    logger.info('Quiz %s publish_quiz=%s', quiz_id, publish)
    return jsonify({'quiz': quiz.to_dict()})


@quizzes_bp.route('/<int:quiz_id>/publish-result', methods=['POST'])
@require_role('STAFF', 'MANAGER')
def publish_result(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    quiz.publish_result = bool(get_json_body().get('publish', True))
    db.session.commit()
    logger.info('Quiz %s publish_result=%s', quiz_id, quiz.publish_result)
    return jsonify({'quiz': quiz.to_dict()})


@quizzes_bp.route('/<int:quiz_id>/settings')
@require_role('STAFF', 'MANAGER')
def get_settings(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    settings = quiz.get_settings()
    db.session.commit()
    return jsonify({'settings': settings.to_dict()})


@quizzes_bp.route('/<int:quiz_id>/settings', methods=['PUT'])
@require_role('STAFF', 'MANAGER')
def update_settings(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    settings = quiz.get_settings()
    data = get_json_body()

    for field in ('mcq_global_partial_marking', 'coding_global_partial_marking', 'llm_evaluation_enabled'):
        if field in data:
            setattr(settings, field, bool(data[field]))
    for field in ('mcq_global_negative_mark', 'mcq_global_negative_percent'):
        if field in data:
            value = data[field]
            if value is not None:
                value = parse_number(value)
                if value is None:
                    raise ValidationError(f'{field} must be a number')
                if value < 0:
                    raise ValidationError(f'{field} must be non-negative')
            setattr(settings, field, value)
    for field in ('llm_provider', 'llm_model_name', 'fitb_llm_system_prompt', 'desc_llm_system_prompt'):
        if field in data:
            setattr(settings, field, data[field])

    db.session.commit()
    return jsonify({'settings': settings.to_dict()})
