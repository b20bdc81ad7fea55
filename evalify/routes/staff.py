"""
Staff Routes
Courses taught or managed, question banks, topics, questions and MCQ upload
"""
import logging

from flask import Blueprint, jsonify, request

from evalify.extensions import db
from evalify.errors import NotFoundError, ValidationError
from evalify.models import Course, Question, Semester, Topic, question_topics
from evalify.services import BankService, McqImportService, QuestionService
from evalify.utils import require_role, get_current_user, get_json_body, clean_text

staff_bp = Blueprint('staff', __name__)
logger = logging.getLogger(__name__)


def _bank_question(bank, question_id):
    question = db.session.get(Question, question_id)
    if question is None or question.bank_id != bank.id:
        raise NotFoundError('Question not found in this bank')
    return question


def _topic_ids_from_form():
    raw = request.form.getlist('topic_ids')
    if len(raw) == 1 and ',' in raw[0]:
        raw = raw[0].split(',')
    try:
        return [int(t) for t in raw if str(t).strip()]
    except ValueError:
        raise ValidationError('Topic ids must be integers')


# ==================== COURSES ====================

@staff_bp.route('/courses')
@require_role('STAFF', 'MANAGER')
def my_courses():
    """Instructor courses for staff, courses of managed semesters for managers"""
    user = get_current_user()
    if user.role == 'ADMIN':
        courses = Course.query.order_by(Course.code).all()
    elif user.role == 'MANAGER':
        courses = (
            Course.query.join(Semester)
            .filter(Semester.managers.any(id=user.id))
            .order_by(Course.code)
            .all()
        )
    else:
        courses = [c for c in Course.query.order_by(Course.code).all() if c.has_instructor(user)]
    return jsonify({'courses': [c.to_dict() for c in courses]})


# ==================== BANKS ====================

@staff_bp.route('/banks')
@require_role('STAFF')
def list_banks():
    user = get_current_user()
    banks = BankService.accessible_banks(user)
    return jsonify({'banks': [bank.to_dict(access_level=level) for bank, level in banks]})


@staff_bp.route('/banks', methods=['POST'])
@require_role('STAFF')
def create_bank():
    data = get_json_body()
    name = clean_text(data.get('name'))
    if not name:
        raise ValidationError('Bank name is required')
    try:
        semester = int(data.get('semester') or 1)
    except (TypeError, ValueError):
        raise ValidationError('Semester must be an integer')

    bank = BankService.create_bank(name, data.get('course_code'), semester, get_current_user())
    return jsonify({'bank': bank.to_dict(access_level='OWNER')}), 201


@staff_bp.route('/banks/<int:bank_id>')
@require_role('STAFF')
def get_bank(bank_id):
    bank, level = BankService.get_bank(bank_id, get_current_user())
    return jsonify({'bank': bank.to_dict(access_level=level)})


@staff_bp.route('/banks/<int:bank_id>', methods=['PUT'])
@require_role('STAFF')
def update_bank(bank_id):
    bank, level = BankService.get_bank(bank_id, get_current_user(), 'WRITE')
    data = get_json_body()

    if 'name' in data:
        name = clean_text(data['name'])
        if not name:
            raise ValidationError('Bank name is required')
        bank.name = name
    if 'course_code' in data:
        bank.course_code = data['course_code']
    if 'semester' in data:
        try:
            bank.semester = int(data['semester'])
        except (TypeError, ValueError):
            raise ValidationError('Semester must be an integer')

    db.session.commit()
    return jsonify({'bank': bank.to_dict(access_level=level)})


@staff_bp.route('/banks/<int:bank_id>', methods=['DELETE'])
@require_role('STAFF')
def delete_bank(bank_id):
    bank, _ = BankService.get_bank(bank_id, get_current_user(), 'OWNER')
    db.session.delete(bank)
    db.session.commit()
    logger.info('Bank %s deleted', bank_id)
    return jsonify({'message': 'Bank deleted'})


@staff_bp.route('/banks/<int:bank_id>/users')
@require_role('STAFF')
def bank_users(bank_id):
    bank, _ = BankService.get_bank(bank_id, get_current_user())
    return jsonify({'users': [entry.to_dict() for entry in bank.users]})


@staff_bp.route('/banks/<int:bank_id>/share', methods=['POST'])
@require_role('STAFF')
def share_bank(bank_id):
    user = get_current_user()
    bank, _ = BankService.get_bank(bank_id, user, 'OWNER')
    data = get_json_body()
    try:
        target_id = int(data.get('user_id'))
    except (TypeError, ValueError):
        raise ValidationError('user_id is required')

    entry = BankService.share(bank, user, target_id, (data.get('access_level') or 'READ').upper())
    return jsonify({'user': entry.to_dict()})


@staff_bp.route('/banks/<int:bank_id>/share/<int:user_id>', methods=['DELETE'])
@require_role('STAFF')
def unshare_bank(bank_id, user_id):
    user = get_current_user()
    bank, _ = BankService.get_bank(bank_id, user, 'OWNER')
    BankService.unshare(bank, user, user_id)
    return jsonify({'message': 'Access removed'})


# ==================== TOPICS ====================

@staff_bp.route('/banks/<int:bank_id>/topics')
@require_role('STAFF')
def list_topics(bank_id):
    bank, _ = BankService.get_bank(bank_id, get_current_user())
    return jsonify({'topics': [t.to_dict() for t in bank.topics]})


@staff_bp.route('/banks/<int:bank_id>/topics', methods=['POST'])
@require_role('STAFF')
def create_topic(bank_id):
    bank, _ = BankService.get_bank(bank_id, get_current_user(), 'WRITE')
    topic = BankService.create_topic(bank, get_json_body().get('name'))
    return jsonify({'topic': topic.to_dict()}), 201


@staff_bp.route('/banks/<int:bank_id>/topics/<int:topic_id>', methods=['DELETE'])
@require_role('STAFF')
def delete_topic(bank_id, topic_id):
    bank, _ = BankService.get_bank(bank_id, get_current_user(), 'WRITE')
    topic = db.session.get(Topic, topic_id)
    if topic is None or topic.bank_id != bank.id:
        raise NotFoundError('Topic not found in this bank')
    db.session.delete(topic)
    db.session.commit()
    return jsonify({'message': 'Topic deleted'})


# ==================== QUESTIONS ====================

@staff_bp.route('/banks/<int:bank_id>/questions')
@require_role('STAFF')
def list_questions(bank_id):
    bank, _ = BankService.get_bank(bank_id, get_current_user())
    query = Question.query.filter_by(bank_id=bank.id)

    topic_id = request.args.get('topic_id', type=int)
    if topic_id:
        query = query.join(question_topics).filter(question_topics.c.topic_id == topic_id)
    question_type = request.args.get('type')
    if question_type:
        query = query.filter(Question.type == question_type)

    questions = query.order_by(Question.created_at).all()
    return jsonify({'questions': [q.to_dict() for q in questions]})


@staff_bp.route('/banks/<int:bank_id>/questions', methods=['POST'])
@require_role('STAFF')
def create_question(bank_id):
    user = get_current_user()
    bank, _ = BankService.get_bank(bank_id, user, 'WRITE')
    question = QuestionService.create(get_json_body(), user, bank)
    db.session.commit()
    return jsonify({'question': question.to_dict()}), 201


@staff_bp.route('/banks/<int:bank_id>/questions/<int:question_id>', methods=['PUT'])
@require_role('STAFF')
def update_question(bank_id, question_id):
    bank, _ = BankService.get_bank(bank_id, get_current_user(), 'WRITE')
    question = _bank_question(bank, question_id)
    QuestionService.update(question, get_json_body())
    db.session.commit()
    return jsonify({'question': question.to_dict()})


@staff_bp.route('/banks/<int:bank_id>/questions/<int:question_id>', methods=['DELETE'])
@require_role('STAFF')
def delete_question(bank_id, question_id):
    bank, _ = BankService.get_bank(bank_id, get_current_user(), 'WRITE')
    question = _bank_question(bank, question_id)
    db.session.delete(question)
    db.session.commit()
    return jsonify({'message': 'Question deleted'})


@staff_bp.route('/banks/<int:bank_id>/questions/<int:question_id>/topics', methods=['PUT'])
@require_role('STAFF')
def set_question_topics(bank_id, question_id):
    bank, _ = BankService.get_bank(bank_id, get_current_user(), 'WRITE')
    question = _bank_question(bank, question_id)
    QuestionService.set_topics(question, bank, get_json_body().get('topic_ids', []))
    db.session.commit()
    return jsonify({'question': question.to_dict()})


@staff_bp.route('/questions/search')
@require_role('STAFF')
def search_questions():
    questions = QuestionService.search(
        get_current_user(),
        text=request.args.get('q'),
        question_type=request.args.get('type'),
        difficulty=request.args.get('difficulty'),
    )
    return jsonify({'questions': [q.to_dict() for q in questions]})


@staff_bp.route('/banks/<int:bank_id>/mcq-upload', methods=['POST'])
@require_role('STAFF')
def upload_mcqs(bank_id):
    """
    Upload an MCQ workbook.
    Without confirm=true the parsed rows are returned for review;
    with it every row must be valid and the questions are created.
    """
    user = get_current_user()
    bank, _ = BankService.get_bank(bank_id, user, 'WRITE')

    upload = request.files.get('file')
    if upload is None or not upload.filename:
        raise ValidationError('No file uploaded')
    if not upload.filename.lower().endswith('.xlsx'):
        raise ValidationError('Only .xlsx files are supported')

    rows = McqImportService.preview(upload.stream)
    invalid = [row for row in rows if not row['is_valid']]

    if request.form.get('confirm', '').lower() != 'true':
        return jsonify({
            'rows': rows,
            'valid_count': len(rows) - len(invalid),
            'invalid_count': len(invalid),
        })

    questions = McqImportService.import_rows(bank, rows, _topic_ids_from_form(), user)
    return jsonify({
        'imported': len(questions),
        'questions': [q.to_dict() for q in questions],
    }), 201
