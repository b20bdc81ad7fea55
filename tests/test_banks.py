from evalify.extensions import db
from evalify.models import Bank, BankUser, Question, Topic

from conftest import mcq_question


def _share(client, bank, user, level='READ'):
    return client.post(f'/staff/banks/{bank.id}/share', json={'user_id': user.id, 'access_level': level})


class TestBanks:
    def test_create_bank_makes_owner(self, login, staff):
        response = login(staff).post('/staff/banks', json={'name': 'Algorithms', 'course_code': 'CS301', 'semester': 5})

        assert response.status_code == 201
        body = response.get_json()['bank']
        assert body['access_level'] == 'OWNER'
        entry = BankUser.query.filter_by(bank_id=body['id']).one()
        assert entry.user_id == staff.id

    def test_name_required(self, login, staff):
        response = login(staff).post('/staff/banks', json={'name': '  '})
        assert response.status_code == 400

    def test_list_only_accessible(self, login, staff, other_staff, bank):
        assert login(staff).get('/staff/banks').get_json()['banks'][0]['id'] == bank.id
        assert login(other_staff).get('/staff/banks').get_json()['banks'] == []

    def test_students_are_rejected(self, login, student, bank):
        assert login(student).get('/staff/banks').status_code == 403

    def test_unauthenticated(self, app, bank):
        assert app.test_client().get('/staff/banks').status_code == 401


class TestSharing:
    def test_read_share_allows_viewing_only(self, login, staff, other_staff, bank):
        assert _share(login(staff), bank, other_staff).status_code == 200

        client = login(other_staff)
        assert client.get(f'/staff/banks/{bank.id}').get_json()['bank']['access_level'] == 'READ'
        assert client.put(f'/staff/banks/{bank.id}', json={'name': 'Mine'}).status_code == 403
        assert client.post(f'/staff/banks/{bank.id}/topics', json={'name': 'Trees'}).status_code == 403

    def test_upgrade_to_write(self, login, staff, other_staff, bank):
        owner = login(staff)
        _share(owner, bank, other_staff)
        _share(owner, bank, other_staff, 'WRITE')

        assert BankUser.query.filter_by(bank_id=bank.id, user_id=other_staff.id).one().access_level == 'WRITE'
        response = login(other_staff).post(f'/staff/banks/{bank.id}/topics', json={'name': 'Trees'})
        assert response.status_code == 201

    def test_share_rules(self, login, staff, other_staff, student, bank):
        owner = login(staff)
        assert _share(owner, bank, other_staff, 'OWNER').status_code == 400
        assert _share(owner, bank, staff).status_code == 400
        assert _share(owner, bank, student).status_code == 404

    def test_only_owner_can_share(self, login, staff, other_staff, make_user, bank):
        owner = login(staff)
        _share(owner, bank, other_staff, 'WRITE')
        third = make_user('STAFF')

        assert _share(login(other_staff), bank, third).status_code == 403

    def test_unshare(self, login, staff, other_staff, bank):
        owner = login(staff)
        _share(owner, bank, other_staff)

        assert owner.delete(f'/staff/banks/{bank.id}/share/{other_staff.id}').status_code == 200
        assert login(other_staff).get(f'/staff/banks/{bank.id}').status_code == 403
        assert owner.delete(f'/staff/banks/{bank.id}/share/{staff.id}').status_code == 400

    def test_bank_users(self, login, staff, other_staff, bank):
        owner = login(staff)
        _share(owner, bank, other_staff)

        users = owner.get(f'/staff/banks/{bank.id}/users').get_json()['users']
        assert {(u['name'], u['access_level']) for u in users} == {('Staff One', 'OWNER'), ('Staff Two', 'READ')}


class TestTopicsAndQuestions:
    def test_duplicate_topic(self, login, staff, bank):
        client = login(staff)
        assert client.post(f'/staff/banks/{bank.id}/topics', json={'name': 'Graphs'}).status_code == 201
        assert client.post(f'/staff/banks/{bank.id}/topics', json={'name': 'Graphs'}).status_code == 409

    def test_create_and_filter_questions(self, login, staff, bank):
        client = login(staff)
        topic_id = client.post(f'/staff/banks/{bank.id}/topics', json={'name': 'Stacks'}).get_json()['topic']['id']

        created = client.post(f'/staff/banks/{bank.id}/questions', json={
            'type': 'TRUE_FALSE',
            'question': 'Stacks are FIFO',
            'marks': 1,
            'solution': {'trueFalseAnswer': False},
            'topic_ids': [topic_id],
        })
        assert created.status_code == 201
        client.post(f'/staff/banks/{bank.id}/questions', json={'type': 'DESCRIPTIVE', 'question': 'Explain queues'})

        by_topic = client.get(f'/staff/banks/{bank.id}/questions?topic_id={topic_id}').get_json()['questions']
        by_type = client.get(f'/staff/banks/{bank.id}/questions?type=DESCRIPTIVE').get_json()['questions']
        assert [q['question'] for q in by_topic] == ['Stacks are FIFO']
        assert [q['question'] for q in by_type] == ['Explain queues']

    def test_question_validation(self, login, staff, bank):
        client = login(staff)
        url = f'/staff/banks/{bank.id}/questions'

        assert client.post(url, json={'type': 'ESSAY', 'question': 'x'}).status_code == 400
        assert client.post(url, json={'type': 'MCQ', 'question': ''}).status_code == 400
        assert client.post(url, json={'type': 'MCQ', 'question': 'x', 'marks': -1}).status_code == 400
        assert client.post(url, json={'type': 'MCQ', 'question': 'x', 'marks': 'nan'}).status_code == 400
        assert client.post(url, json={'type': 'MCQ', 'question': 'x', 'negative_marks': 'inf'}).status_code == 400
        assert client.post(url, json={'type': 'MCQ', 'question': 5}).status_code == 400
        assert client.post(url, json={
            'type': 'MCQ', 'question': 'x', 'question_data': {'options': [{'id': 'a'}]},
        }).status_code == 400

    def test_update_and_delete_question(self, login, staff, bank):
        question = mcq_question(bank)
        db.session.add(question)
        db.session.commit()
        client = login(staff)
        url = f'/staff/banks/{bank.id}/questions/{question.id}'

        response = client.put(url, json={'marks': 3, 'difficulty': 'HARD'})
        assert response.get_json()['question']['marks'] == 3.0
        assert response.get_json()['question']['difficulty'] == 'HARD'

        assert client.delete(url).status_code == 200
        assert db.session.get(Question, question.id) is None

    def test_question_from_other_bank(self, login, staff, bank):
        other = Bank(name='Other', semester=1)
        db.session.add(other)
        db.session.flush()
        question = mcq_question(other)
        db.session.add(question)
        db.session.commit()

        response = login(staff).put(f'/staff/banks/{bank.id}/questions/{question.id}', json={'marks': 1})
        assert response.status_code == 404

    def test_set_topics(self, login, staff, bank):
        question = mcq_question(bank)
        topic = Topic(bank_id=bank.id, name='Arithmetic')
        db.session.add_all([question, topic])
        db.session.commit()

        response = login(staff).put(f'/staff/banks/{bank.id}/questions/{question.id}/topics',
                                    json={'topic_ids': [topic.id]})

        assert [t['name'] for t in response.get_json()['question']['topics']] == ['Arithmetic']

    def test_search_spans_shared_banks(self, login, staff, other_staff, bank):
        db.session.add(mcq_question(bank))
        db.session.commit()

        url = '/staff/questions/search'
        assert login(other_staff).get(url, query_string={'q': '2 + 2'}).get_json()['questions'] == []
        _share(login(staff), bank, other_staff)
        found = login(other_staff).get(url, query_string={'q': '2 + 2', 'type': 'MCQ'}).get_json()['questions']
        assert len(found) == 1

    def test_delete_bank_removes_questions(self, login, staff, bank):
        db.session.add(mcq_question(bank))
        db.session.commit()

        assert login(staff).delete(f'/staff/banks/{bank.id}').status_code == 200
        assert Question.query.count() == 0
