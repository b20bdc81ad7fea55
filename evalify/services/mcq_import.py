"""
MCQ Import
Parse an MCQ workbook, validate each row, and create the questions in a bank
"""
from io import BytesIO
import logging
import uuid

from flask import current_app
from openpyxl import load_workbook
from sqlalchemy.exc import SQLAlchemyError

from evalify.extensions import db
from evalify.errors import ValidationError
from evalify.models import Question, Topic
from evalify.models.question import DIFFICULTY_LEVELS, BLOOM_LEVELS, COURSE_OUTCOMES
from evalify.utils.helpers import parse_number

logger = logging.getLogger(__name__)

# Column name prefixes, matched case-insensitively against the header
COLUMN_PREFIXES = {
    'question': ('Question',),
    'option1': ('Option_1', 'Option 1', 'Option1'),
    'option2': ('Option_2', 'Option 2', 'Option2'),
    'option3': ('Option_3', 'Option 3', 'Option3'),
    'option4': ('Option_4', 'Option 4', 'Option4'),
    'correct_answer': ('Correct_Answer', 'Correct Answer', 'CorrectAnswer'),
    'explanation': ('Explanation',),
    'marks': ('Marks',),
    'negative_marks': ('Negative_Marks', 'Negative Marks', 'NegativeMarks'),
    'difficulty': ('Difficulty',),
    'blooms_taxonomy': ('Blooms_Taxonomy', 'Blooms Taxonomy', 'BloomsTaxonomy'),
    'course_outcome': ('Course_Outcome', 'Course Outcome', 'CourseOutcome'),
}


def _cell_text(value):
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _column_value(row, key):
    for column, value in row.items():
        for prefix in COLUMN_PREFIXES[key]:
            if column.lower().startswith(prefix.lower()):
                return _cell_text(value)
    return ''


def parse_mcq_workbook(stream, max_rows=None):
    """
    Read the first worksheet into header-keyed dicts.
    Returns [(row_number, row_dict)], numbered as in the spreadsheet.
    """
    if max_rows is None:
        max_rows = current_app.config.get('MCQ_UPLOAD_MAX_ROWS', 500)

    data = stream.read() if hasattr(stream, 'read') else stream
    try:
        wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        # openpyxl raises zipfile, KeyError and its own errors for bad files
        logger.warning('Unreadable MCQ workbook: %s', exc)
        raise ValidationError('Failed to parse Excel file. Please check the file format.')

    try:
        ws = wb.worksheets[0] if wb.worksheets else None
        raw_rows = list(ws.iter_rows(values_only=True)) if ws is not None else []
    finally:
        wb.close()

    if not raw_rows:
        raise ValidationError('Excel file is empty or has no data rows')

    header = [_cell_text(cell) for cell in raw_rows[0]]
    rows = []
    for row_number, values in enumerate(raw_rows[1:], 2):
        if not values or all(_cell_text(v) == '' for v in values):
            continue
        row = {name: value for name, value in zip(header, values) if name}
        rows.append((row_number, row))

    if not rows:
        raise ValidationError('Excel file is empty or has no data rows')
    if len(rows) > max_rows:
        raise ValidationError(f'Too many rows: {len(rows)} (maximum {max_rows})')
    return rows


def validate_mcq_row(row, row_number):
    """Validate one parsed row; errors are collected rather than raised"""
    errors = []

    question = _column_value(row, 'question')
    options = [_column_value(row, f'option{i}') for i in range(1, 5)]
    correct_answer = _column_value(row, 'correct_answer')
    explanation = _column_value(row, 'explanation')
    marks_text = _column_value(row, 'marks')
    negative_text = _column_value(row, 'negative_marks') or '0'
    difficulty = (_column_value(row, 'difficulty') or 'EASY').upper()
    blooms = (_column_value(row, 'blooms_taxonomy') or 'REMEMBER').upper()
    course_outcome = (_column_value(row, 'course_outcome') or 'CO1').upper()

    if not question:
        errors.append('Question text is required')
    if not options[0]:
        errors.append('Option 1 is required')
    if not options[1]:
        errors.append('Option 2 is required')
    if not correct_answer:
        errors.append('Correct answer is required')
    if not marks_text:
        errors.append('Marks is required')

    marks = parse_number(marks_text)
    if marks is None or marks < 0:
        errors.append('Marks must be a non-negative number')

    negative_marks = parse_number(negative_text)
    if negative_marks is None or negative_marks < 0:
        errors.append('Negative marks must be a non-negative number')

    present = [text for text in options if text]
    correct_index = -1
    for index, text in enumerate(present):
        if text.lower() == correct_answer.lower():
            correct_index = index
            break
    if correct_index == -1 and correct_answer:
        errors.append(
            f'Correct answer "{correct_answer}" does not match any of the provided options: '
            f'{", ".join(present)}'
        )

    if len(set(present)) != len(present):
        errors.append('Duplicate options found. Each option must be unique (case-sensitive)')

    if difficulty not in DIFFICULTY_LEVELS:
        errors.append(f'Invalid difficulty "{difficulty}". Must be one of: {", ".join(DIFFICULTY_LEVELS)}')
    if blooms not in BLOOM_LEVELS:
        errors.append(f'Invalid Bloom\'s Taxonomy "{blooms}". Must be one of: {", ".join(BLOOM_LEVELS)}')
    if course_outcome not in COURSE_OUTCOMES:
        errors.append(f'Invalid Course Outcome "{course_outcome}". Must be one of: {", ".join(COURSE_OUTCOMES)}')

    return {
        'row_number': row_number,
        'question': question,
        'options': present,
        'correct_answer': correct_answer,
        'correct_answer_index': correct_index,
        'explanation': explanation or None,
        'marks': marks,
        'negative_marks': negative_marks,
        'difficulty': difficulty,
        'blooms_taxonomy': blooms,
        'course_outcome': course_outcome,
        'is_valid': not errors,
        'errors': errors,
    }


def _build_question(bank, row, topics, user):
    options = []
    correct = []
    for index, text in enumerate(row['options']):
        option_id = uuid.uuid4().hex
        options.append({'id': option_id, 'optionText': text, 'orderIndex': index})
        correct.append({'id': option_id, 'isCorrect': index == row['correct_answer_index']})

    return Question(
        bank_id=bank.id,
        type='MCQ',
        question=row['question'],
        explanation=row['explanation'],
        marks=row['marks'],
        negative_marks=row['negative_marks'],
        difficulty=row['difficulty'],
        bloom_taxonomy_level=row['blooms_taxonomy'],
        course_outcome=row['course_outcome'],
        question_data={'options': options},
        solution={'correctOptions': correct},
        topics=list(topics),
        created_by_id=user.id,
    )


class McqImportService:
    """Service for bulk MCQ creation"""

    @staticmethod
    def preview(stream):
        return [validate_mcq_row(row, number) for number, row in parse_mcq_workbook(stream)]

    @staticmethod
    def import_rows(bank, rows, topic_ids, user):
        """Create one MCQ per row in a single transaction"""
        invalid = [row['row_number'] for row in rows if not row.get('is_valid')]
        if invalid:
            raise ValidationError('Fix the invalid rows before importing', payload={'invalid_rows': invalid})
        if not rows:
            raise ValidationError('No rows to import')

        topics = []
        if topic_ids:
            topics = Topic.query.filter(Topic.id.in_(topic_ids), Topic.bank_id == bank.id).all()
            if len(topics) != len(set(topic_ids)):
                raise ValidationError('Unknown topic for this bank')

        questions = [_build_question(bank, row, topics, user) for row in rows]
        try:
            db.session.add_all(questions)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('MCQ import into bank %s failed', bank.id)
            raise

        logger.info('Imported %d MCQs into bank %s', len(questions), bank.id)
        return questions
