from io import BytesIO

import pytest
from openpyxl import Workbook

from evalify.errors import ValidationError
from evalify.models import Question, Topic
from evalify.extensions import db
from evalify.services import McqImportService, parse_mcq_workbook, validate_mcq_row

HEADER = ['Question', 'Option_1', 'Option_2', 'Option_3', 'Option_4', 'Correct_Answer',
          'Explanation', 'Marks', 'Negative_Marks', 'Difficulty', 'Blooms_Taxonomy', 'Course_Outcome']


def workbook_bytes(*rows, header=HEADER):
    wb = Workbook()
    ws = wb.active
    ws.append(header)
    for row in rows:
        ws.append(list(row))
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


GOOD_ROW = ('What is 2 + 2?', '3', '4', '5', None, '4', 'Basic sums', 2, 0.5, 'easy', 'Remember', 'co1')
BAD_ROW = ('', 'Yes', 'Yes', None, None, 'No', None, 'x', -1, 'TRIVIAL', None, 'CO9')


class TestParseWorkbook:
    def test_rows_keep_sheet_numbers(self, app):
        data = workbook_bytes(GOOD_ROW, [None] * len(HEADER), GOOD_ROW)

        rows = parse_mcq_workbook(data)

        assert [number for number, _ in rows] == [2, 4]
        assert rows[0][1]['Question'] == 'What is 2 + 2?'

    def test_header_only(self, app):
        with pytest.raises(ValidationError) as exc_info:
            parse_mcq_workbook(workbook_bytes())
        assert exc_info.value.message == 'Excel file is empty or has no data rows'

    def test_not_a_workbook(self, app):
        with pytest.raises(ValidationError) as exc_info:
            parse_mcq_workbook(b'not an xlsx file')
        assert exc_info.value.message.startswith('Failed to parse Excel file')

    def test_row_limit(self, app):
        with pytest.raises(ValidationError) as exc_info:
            parse_mcq_workbook(workbook_bytes(GOOD_ROW, GOOD_ROW, GOOD_ROW), max_rows=2)
        assert exc_info.value.message.startswith('Too many rows')


class TestValidateRow:
    def test_valid_row_is_normalized(self):
        row = validate_mcq_row(dict(zip(HEADER, GOOD_ROW)), 2)

        assert row['is_valid'], row['errors']
        assert row['options'] == ['3', '4', '5']
        assert row['correct_answer_index'] == 1
        assert row['marks'] == 2.0
        assert row['negative_marks'] == 0.5
        assert row['difficulty'] == 'EASY'
        assert row['blooms_taxonomy'] == 'REMEMBER'
        assert row['course_outcome'] == 'CO1'

    def test_errors_are_collected(self):
        row = validate_mcq_row(dict(zip(HEADER, BAD_ROW)), 7)

        assert not row['is_valid']
        assert row['row_number'] == 7
        assert 'Question text is required' in row['errors']
        assert 'Marks must be a non-negative number' in row['errors']
        assert 'Negative marks must be a non-negative number' in row['errors']
        assert 'Duplicate options found. Each option must be unique (case-sensitive)' in row['errors']
        assert any(e.startswith('Correct answer "No" does not match') for e in row['errors'])
        assert any(e.startswith('Invalid difficulty "TRIVIAL"') for e in row['errors'])
        assert any(e.startswith('Invalid Course Outcome "CO9"') for e in row['errors'])

    @pytest.mark.parametrize('text', ['nan', 'inf', '-inf'])
    def test_marks_must_be_finite(self, text):
        row = validate_mcq_row(dict(zip(HEADER, GOOD_ROW), Marks=text, Negative_Marks=text), 4)

        assert not row['is_valid']
        assert 'Marks must be a non-negative number' in row['errors']
        assert 'Negative marks must be a non-negative number' in row['errors']

    def test_header_variants_and_defaults(self):
        row = validate_mcq_row({
            'question text': 'Pick one',
            'Option 1 (required)': 'A',
            'option2': 'B',
            'Correct Answer': 'b',
            'marks': 1.0,
        }, 3)

        assert row['is_valid'], row['errors']
        assert row['correct_answer_index'] == 1
        assert row['marks'] == 1.0
        assert row['negative_marks'] == 0.0
        assert row['difficulty'] == 'EASY'
        assert row['course_outcome'] == 'CO1'


class TestImportRows:
    def test_creates_mcqs_with_topics(self, bank, staff):
        topic = Topic(bank_id=bank.id, name='Arithmetic')
        db.session.add(topic)
        db.session.commit()
        rows = [validate_mcq_row(dict(zip(HEADER, GOOD_ROW)), 2)]

        questions = McqImportService.import_rows(bank, rows, [topic.id], staff)

        question = db.session.get(Question, questions[0].id)
        assert question.type == 'MCQ'
        assert question.bank_id == bank.id
        assert [t.name for t in question.topics] == ['Arithmetic']
        assert [o['optionText'] for o in question.question_data['options']] == ['3', '4', '5']
        assert question.correct_option_ids() == [question.question_data['options'][1]['id']]

    def test_any_invalid_row_blocks_import(self, bank, staff):
        rows = [
            validate_mcq_row(dict(zip(HEADER, GOOD_ROW)), 2),
            validate_mcq_row(dict(zip(HEADER, BAD_ROW)), 3),
        ]

        with pytest.raises(ValidationError) as exc_info:
            McqImportService.import_rows(bank, rows, [], staff)

        assert exc_info.value.payload == {'invalid_rows': [3]}
        assert Question.query.count() == 0

    def test_unknown_topic(self, bank, staff):
        rows = [validate_mcq_row(dict(zip(HEADER, GOOD_ROW)), 2)]
        with pytest.raises(ValidationError):
            McqImportService.import_rows(bank, rows, [999], staff)


class TestUploadRoute:
    def _post(self, client, bank, data, **form):
        form['file'] = (BytesIO(data), 'questions.xlsx')
        return client.post(f'/staff/banks/{bank.id}/mcq-upload', data=form,
                           content_type='multipart/form-data')

    def test_preview_then_confirm(self, login, staff, bank):
        client = login(staff)
        data = workbook_bytes(GOOD_ROW, BAD_ROW)

        preview = self._post(client, bank, data)
        assert preview.status_code == 200
        body = preview.get_json()
        assert body['valid_count'] == 1
        assert body['invalid_count'] == 1
        assert Question.query.count() == 0

        rejected = self._post(client, bank, data, confirm='true')
        assert rejected.status_code == 400
        assert rejected.get_json()['invalid_rows'] == [3]

        created = self._post(client, bank, workbook_bytes(GOOD_ROW, GOOD_ROW), confirm='true')
        assert created.status_code == 201
        assert created.get_json()['imported'] == 2
        assert Question.query.filter_by(bank_id=bank.id).count() == 2

    def test_rejects_other_formats(self, login, staff, bank):
        response = login(staff).post(
            f'/staff/banks/{bank.id}/mcq-upload',
            data={'file': (BytesIO(b'a,b'), 'questions.csv')},
            content_type='multipart/form-data',
        )
        assert response.status_code == 400

    def test_read_only_users_cannot_upload(self, login, other_staff, bank):
        from evalify.models import BankUser

        db.session.add(BankUser(bank_id=bank.id, user_id=other_staff.id, access_level='READ'))
        db.session.commit()

        response = self._post(login(other_staff), bank, workbook_bytes(GOOD_ROW))
        assert response.status_code == 403
