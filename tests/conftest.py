from datetime import timedelta

import pytest

from evalify import create_app
from evalify.extensions import db
from evalify.models import (
    Bank,
    BankUser,
    Course,
    Question,
    Quiz,
    QuizEvaluationSettings,
    QuizQuestion,
    QuizResult,
    Semester,
    User,
)
from evalify.services import evaluation_monitor
from evalify.utils import now_utc


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def spawned(monkeypatch):
    """Background polling loops are recorded instead of started"""
    calls = []
    monkeypatch.setattr(evaluation_monitor, '_spawn', lambda fn, *args: calls.append((fn, args)))
    return calls


@pytest.fixture
def make_user(app):
    def _make(role, name=None, email=None, password='password123', roll_no=None):
        count = User.query.count()
        user = User(
            name=name or f'{role.title()} {count}',
            email=email or f'{role.lower()}{count}@evalify.test',
            role=role,
            roll_no=roll_no,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def admin(make_user):
    return make_user('ADMIN', name='Admin')


@pytest.fixture
def staff(make_user):
    return make_user('STAFF', name='Staff One')


@pytest.fixture
def other_staff(make_user):
    return make_user('STAFF', name='Staff Two')


@pytest.fixture
def manager(make_user):
    return make_user('MANAGER', name='Manager')


@pytest.fixture
def student(make_user):
    return make_user('STUDENT', name='Student One', roll_no='CB001')


@pytest.fixture
def login(app):
    def _login(user):
        client = app.test_client()
        with client.session_transaction() as sess:
            sess['user_id'] = user.id
            sess['role'] = user.role
        return client
    return _login


@pytest.fixture
def course(app, staff, student, manager):
    semester = Semester(name='Odd', year=2026)
    semester.managers.append(manager)
    course = Course(name='Data Structures', code='CS201', type='CORE', semester=semester)
    course.instructors.append(staff)
    course.students.append(student)
    db.session.add(course)
    db.session.commit()
    return course


@pytest.fixture
def bank(app, staff):
    bank = Bank(name='DS Bank', course_code='CS201', semester=3, created_by_id=staff.id)
    bank.users.append(BankUser(user_id=staff.id, access_level='OWNER'))
    db.session.add(bank)
    db.session.commit()
    return bank


def mcq_question(bank, marks=2.0, negative_marks=0.5):
    return Question(
        bank_id=bank.id if bank else None,
        type='MCQ',
        question='2 + 2 = ?',
        marks=marks,
        negative_marks=negative_marks,
        question_data={'options': [
            {'id': 'a', 'optionText': '3', 'orderIndex': 0},
            {'id': 'b', 'optionText': '4', 'orderIndex': 1},
            {'id': 'c', 'optionText': '5', 'orderIndex': 2},
        ]},
        solution={'correctOptions': [
            {'id': 'a', 'isCorrect': False},
            {'id': 'b', 'isCorrect': True},
            {'id': 'c', 'isCorrect': False},
        ]},
    )


@pytest.fixture
def questions(app, bank):
    mcq = mcq_question(bank)
    true_false = Question(
        bank_id=bank.id,
        type='TRUE_FALSE',
        question='A stack is LIFO',
        marks=1.0,
        question_data={},
        solution={'trueFalseAnswer': True},
    )
    descriptive = Question(
        bank_id=bank.id,
        type='DESCRIPTIVE',
        question='Explain recursion',
        marks=5.0,
        question_data={},
        solution={'modelAnswer': 'A function calling itself'},
    )
    db.session.add_all([mcq, true_false, descriptive])
    db.session.commit()
    return [mcq, true_false, descriptive]


@pytest.fixture
def quiz(app, staff, course, questions):
    now = now_utc()
    quiz = Quiz(
        name='Unit Test 1',
        start_time=now - timedelta(minutes=10),
        end_time=now + timedelta(hours=1),
        duration_minutes=30,
        publish_quiz=True,
        created_by_id=staff.id,
    )
    quiz.courses.append(course)
    quiz.settings = QuizEvaluationSettings()
    for index, question in enumerate(questions):
        quiz.quiz_questions.append(QuizQuestion(question=question, order_index=index))
    db.session.add(quiz)
    db.session.commit()
    return quiz


@pytest.fixture
def make_result(app, quiz):
    def _make(student, answers, status='SUBMITTED', scores=None):
        responses = {}
        for question_id, answer in answers.items():
            responses[str(question_id)] = {'student_answer': answer}
        for question_id, score in (scores or {}).items():
            responses.setdefault(str(question_id), {})['score'] = score
        now = now_utc()
        result = QuizResult(
            quiz_id=quiz.id,
            student_id=student.id,
            start_time=now - timedelta(minutes=5),
            end_time=now + timedelta(minutes=25),
            submission_time=now if status != 'NOT_SUBMITTED' else None,
            responses=responses,
            submission_status=status,
            total_score=quiz.total_marks(),
        )
        db.session.add(result)
        db.session.commit()
        return result
    return _make
