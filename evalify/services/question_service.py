"""
Question Service
Validation and persistence shared by bank and quiz question routes
"""
from evalify.extensions import db
from evalify.errors import ValidationError
from evalify.models import Question, Topic, BankUser
from evalify.models.question import QUESTION_TYPES, DIFFICULTY_LEVELS, COURSE_OUTCOMES, BLOOM_LEVELS
from evalify.utils.helpers import parse_number, clean_text

EDITABLE_FIELDS = (
    'type',
    'question',
    'explanation',
    'marks',
    'negative_marks',
    'difficulty',
    'course_outcome',
    'bloom_taxonomy_level',
    'question_data',
    'solution',
)


def _check_choice(data, field, choices):
    value = data.get(field)
    if value is not None and value not in choices:
        raise ValidationError(f'Invalid {field} "{value}". Must be one of: {", ".join(choices)}')


class QuestionService:
    """Service for question CRUD"""

    @staticmethod
    def validate(data, partial=False):
        """Return the accepted fields of a question payload"""
        fields = {k: data[k] for k in EDITABLE_FIELDS if k in data}

        if not partial:
            if not fields.get('type'):
                raise ValidationError('Question type is required')
            if not clean_text(fields.get('question')):
                raise ValidationError('Question text is required')
        elif 'question' in fields and not clean_text(fields['question']):
            raise ValidationError('Question text is required')

        _check_choice(fields, 'type', QUESTION_TYPES)
        _check_choice(fields, 'difficulty', DIFFICULTY_LEVELS)
        _check_choice(fields, 'course_outcome', COURSE_OUTCOMES)
        _check_choice(fields, 'bloom_taxonomy_level', BLOOM_LEVELS)

        for field in ('marks', 'negative_marks'):
            if field in fields:
                fields[field] = parse_number(fields[field])
                if fields[field] is None:
                    raise ValidationError(f'{field} must be a number')
                if fields[field] < 0:
                    raise ValidationError(f'{field} must be non-negative')

        for field in ('question_data', 'solution'):
            if field in fields:
                if fields[field] is None:
                    fields[field] = {}
                elif not isinstance(fields[field], dict):
                    raise ValidationError(f'{field} must be an object')

        question_type = fields.get('type')
        if question_type in ('MCQ', 'MMCQ') and 'question_data' in fields:
            if len(fields['question_data'].get('options') or []) < 2:
                raise ValidationError('At least two options are required')
        return fields

    @staticmethod
    def create(data, user, bank=None):
        fields = QuestionService.validate(data)
        question = Question(bank_id=bank.id if bank else None, created_by_id=user.id, **fields)
        if bank is not None and data.get('topic_ids'):
            QuestionService.set_topics(question, bank, data['topic_ids'])
        db.session.add(question)
        return question

    @staticmethod
    def update(question, data):
        fields = QuestionService.validate(data, partial=True)
        for field, value in fields.items():
            setattr(question, field, value)
        return question

    @staticmethod
    def set_topics(question, bank, topic_ids):
        try:
            ids = {int(t) for t in topic_ids or []}
        except (TypeError, ValueError):
            raise ValidationError('Topic ids must be integers')
        topics = Topic.query.filter(Topic.id.in_(ids), Topic.bank_id == bank.id).all() if ids else []
        if len(topics) != len(ids):
            raise ValidationError('Unknown topic for this bank')
        question.topics = topics
        return question

    @staticmethod
    def search(user, text=None, question_type=None, difficulty=None, limit=100):
        """Questions across every bank the user can read"""
        query = Question.query.filter(Question.bank_id.isnot(None))
        if user.role != 'ADMIN':
            bank_ids = db.select(BankUser.bank_id).where(BankUser.user_id == user.id)
            query = query.filter(Question.bank_id.in_(bank_ids))
        if text:
            query = query.filter(Question.question.ilike(f'%{text}%'))
        if question_type:
            query = query.filter(Question.type == question_type)
        if difficulty:
            query = query.filter(Question.difficulty == difficulty)
        return query.order_by(Question.updated_at.desc()).limit(limit).all()
