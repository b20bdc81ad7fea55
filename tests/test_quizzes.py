from datetime import timedelta

from evalify.extensions import db
from evalify.models import Course, Question, Quiz, QuizQuestion
from evalify.utils import now_utc

from conftest import mcq_question


def quiz_payload(course, **overrides):
    now = now_utc()
    payload = {
        'name': 'Mid Term',
        'start_time': (now + timedelta(days=1)).isoformat(),
        'end_time': (now + timedelta(days=1, hours=2)).isoformat(),
        'duration_minutes': 60,
        'course_ids': [course.id],
        'shuffle_questions': True,
    }
    payload.update(overrides)
    return payload


class TestQuizCrud:
    def test_create_quiz(self, login, staff, course):
        response = login(staff).post('/quizzes', json=quiz_payload(course))

        assert response.status_code == 201
        quiz = response.get_json()['quiz']
        assert quiz['course_ids'] == [course.id]
        assert quiz['shuffle_questions'] is True
        assert quiz['publish_quiz'] is False
        assert quiz['questions'] == []
        assert quiz['settings']['mcq_global_partial_marking'] is False

    def test_timezone_offsets_are_stored_as_utc(self, login, staff, course):
        payload = quiz_payload(course, start_time='2026-11-02T10:00:00+05:30', end_time='2026-11-02T12:00:00Z')
        quiz_id = login(staff).post('/quizzes', json=payload).get_json()['quiz']['id']

        quiz = db.session.get(Quiz, quiz_id)
        assert quiz.start_time.isoformat() == '2026-11-02T04:30:00'
        assert quiz.end_time.isoformat() == '2026-11-02T12:00:00'

    def test_window_validation(self, login, staff, course):
        client = login(staff)
        now = now_utc()

        backwards = quiz_payload(course, start_time=now.isoformat(), end_time=(now - timedelta(hours=1)).isoformat())
        assert client.post('/quizzes', json=backwards).status_code == 400
        assert client.post('/quizzes', json=quiz_payload(course, duration_minutes=0)).status_code == 400
        assert client.post('/quizzes', json=quiz_payload(course, start_time='tomorrow')).status_code == 400
        assert client.post('/quizzes', json=quiz_payload(course, name='')).status_code == 400
        assert client.post('/quizzes', json=quiz_payload(course, name=5)).status_code == 400

    def test_staff_must_teach_linked_courses(self, login, other_staff, course):
        response = login(other_staff).post('/quizzes', json=quiz_payload(course))
        assert response.status_code == 403

    def test_unknown_course(self, login, staff, course):
        response = login(staff).post('/quizzes', json=quiz_payload(course, course_ids=[course.id, 999]))
        assert response.status_code == 404

    def test_managers_can_author_for_their_semester(self, login, manager, course):
        response = login(manager).post('/quizzes', json=quiz_payload(course))
        assert response.status_code == 201

    def test_list_only_manageable(self, login, staff, other_staff, quiz, course):
        assert [q['id'] for q in login(staff).get('/quizzes').get_json()['quizzes']] == [quiz.id]
        assert login(other_staff).get('/quizzes').get_json()['quizzes'] == []
        filtered = login(staff).get('/quizzes', query_string={'course_id': course.id + 1}).get_json()['quizzes']
        assert filtered == []

    def test_other_staff_cannot_open(self, login, other_staff, quiz):
        assert login(other_staff).get(f'/quizzes/{quiz.id}').status_code == 403
        assert login(other_staff).get('/quizzes/999').status_code == 404

    def test_update_quiz(self, login, staff, quiz):
        response = login(staff).put(f'/quizzes/{quiz.id}', json={'name': 'Renamed', 'password': 'secret'})

        body = response.get_json()['quiz']
        assert body['name'] == 'Renamed'
        assert body['has_password'] is True
        assert 'password' not in body

    def test_delete_removes_authored_questions_only(self, login, staff, quiz, questions):
        client = login(staff)
        authored_id = client.post(f'/quizzes/{quiz.id}/questions', json={
            'type': 'DESCRIPTIVE', 'question': 'Quiz only', 'marks': 2,
        }).get_json()['question']['id']

        assert client.delete(f'/quizzes/{quiz.id}').status_code == 200
        assert db.session.get(Question, authored_id) is None
        assert db.session.get(Question, questions[0].id) is not None
        assert QuizQuestion.query.count() == 0


class TestQuizQuestions:
    def test_add_from_bank_skips_duplicates(self, login, staff, quiz, bank, questions):
        extra = mcq_question(bank, marks=1.0)
        db.session.add(extra)
        db.session.commit()

        response = login(staff).post(f'/quizzes/{quiz.id}/questions/from-bank',
                                     json={'question_ids': [questions[0].id, extra.id]})

        body = response.get_json()
        assert body['added'] == [extra.id]
        assert body['skipped'] == [questions[0].id]
        assert body['quiz']['questions'][-1]['id'] == extra.id
        assert body['quiz']['questions'][-1]['order_index'] == 3

    def test_add_from_bank_needs_bank_access(self, login, manager, quiz, bank, questions):
        response = login(manager).post(f'/quizzes/{quiz.id}/questions/from-bank',
                                       json={'question_ids': [questions[0].id]})
        assert response.status_code == 403

    def test_author_and_edit_quiz_question(self, login, staff, quiz):
        client = login(staff)
        created = client.post(f'/quizzes/{quiz.id}/questions', json={
            'type': 'TRUE_FALSE', 'question': 'Heaps are trees', 'marks': 1,
            'solution': {'trueFalseAnswer': True},
        })
        assert created.status_code == 201
        question = created.get_json()['question']
        assert question['bank_id'] is None

        updated = client.put(f'/quizzes/{quiz.id}/questions/{question["id"]}', json={'marks': 2})
        assert updated.get_json()['question']['marks'] == 2.0
        assert db.session.get(Quiz, quiz.id).total_marks() == 10.0

    def test_bank_questions_are_not_edited_through_quiz(self, login, staff, quiz, questions):
        response = login(staff).put(f'/quizzes/{quiz.id}/questions/{questions[0].id}', json={'marks': 9})
        assert response.status_code == 400

    def test_remove_bank_question_keeps_it_in_bank(self, login, staff, quiz, questions):
        response = login(staff).delete(f'/quizzes/{quiz.id}/questions/{questions[0].id}')

        assert response.status_code == 200
        assert db.session.get(Question, questions[0].id) is not None
        assert [q.id for q in db.session.get(Quiz, quiz.id).get_questions()] == [questions[1].id, questions[2].id]

    def test_reorder(self, login, staff, quiz, questions):
        new_order = [questions[2].id, questions[0].id, questions[1].id]
        client = login(staff)

        response = client.put(f'/quizzes/{quiz.id}/questions/order', json={'question_ids': new_order})
        assert [q['id'] for q in response.get_json()['quiz']['questions']] == new_order

        partial = client.put(f'/quizzes/{quiz.id}/questions/order', json={'question_ids': new_order[:2]})
        assert partial.status_code == 400


class TestPublishingAndSettings:
    def test_publish_requires_questions_and_courses(self, login, staff, course):
        client = login(staff)
        quiz_id = client.post('/quizzes', json=quiz_payload(course)).get_json()['quiz']['id']

        assert client.post(f'/quizzes/{quiz_id}/publish', json={'publish': True}).status_code == 400

        client.post(f'/quizzes/{quiz_id}/questions', json={'type': 'DESCRIPTIVE', 'question': 'Explain'})
        response = client.post(f'/quizzes/{quiz_id}/publish', json={'publish': True})
        assert response.get_json()['quiz']['publish_quiz'] is True

        unpublished = client.post(f'/quizzes/{quiz_id}/publish', json={'publish': False})
        assert unpublished.get_json()['quiz']['publish_quiz'] is False

    def test_publish_result(self, login, staff, quiz):
        response = login(staff).post(f'/quizzes/{quiz.id}/publish-result', json={'publish': True})
        assert response.get_json()['quiz']['publish_result'] is True

    def test_settings_roundtrip(self, login, staff, quiz):
        client = login(staff)
        response = client.put(f'/quizzes/{quiz.id}/settings', json={
            'mcq_global_partial_marking': True,
            'mcq_global_negative_percent': '25',
            'llm_provider': 'openai',
        })

        settings = response.get_json()['settings']
        assert settings['mcq_global_partial_marking'] is True
        assert settings['mcq_global_negative_percent'] == 25.0
        assert client.get(f'/quizzes/{quiz.id}/settings').get_json()['settings'] == settings

    def test_negative_settings_rejected(self, login, staff, quiz):
        response = login(staff).put(f'/quizzes/{quiz.id}/settings', json={'mcq_global_negative_mark': -1})
        assert response.status_code == 400
        response = login(staff).put(f'/quizzes/{quiz.id}/settings', json={'mcq_global_negative_percent': 'nan'})
        assert response.status_code == 400

    def test_settings_created_on_demand(self, login, staff, course):
        bare = Quiz(name='Bare', start_time=now_utc(), end_time=now_utc() + timedelta(hours=1),
                    duration_minutes=10, created_by_id=staff.id)
        bare.courses.append(db.session.get(Course, course.id))
        db.session.add(bare)
        db.session.commit()

        response = login(staff).get(f'/quizzes/{bare.id}/settings')
        assert response.status_code == 200
        assert response.get_json()['settings']['mcq_global_negative_mark'] is None
