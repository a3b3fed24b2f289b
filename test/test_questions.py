"""
Test cases for the question bank.
"""
import csv
import io
import json

from quizbank.questions.service import CSV_COLUMNS, parse_correct_answers


class TestQuestionCreation:
    """Test cases for creating and validating questions."""

    def test_create_mcq(self, educator_client, tag_system, question_payload):
        response = educator_client.post('/api/questions', json=question_payload())
        assert response.status_code == 201
        question = response.get_json()['question']
        assert question['correct_answers'] == ['B']
        assert question['tags']['topic'] == "Newton's Laws"
        assert question['tags']['source'] == 'NCERT'
        assert question['used_in_quizzes'] == []

    def test_create_mmcq_sorts_answers(self, educator_client, tag_system, question_payload):
        response = educator_client.post('/api/questions', json=question_payload(
            question_type='MMCQ', correct_answers='c; a',
        ))
        assert response.status_code == 201
        assert response.get_json()['question']['correct_answers'] == ['A', 'C']

    def test_numeric_question_drops_options(self, educator_client, tag_system, question_payload):
        response = educator_client.post('/api/questions', json=question_payload(
            question_type='Numeric', correct_answers=['9.8'],
        ))
        assert response.status_code == 201
        question = response.get_json()['question']
        assert question['option_a'] is None
        assert question['correct_answers'] == ['9.8']

    def test_math_markup_is_kept(self, educator_client, tag_system, question_payload):
        response = educator_client.post('/api/questions', json=question_payload(
            question_text='Evaluate $\\int_0^1 x^2 dx$',
        ))
        assert response.status_code == 201
        assert response.get_json()['question']['question_text'] == 'Evaluate $\\int_0^1 x^2 dx$'

    def test_mcq_needs_exactly_one_answer(self, educator_client, tag_system, question_payload):
        response = educator_client.post('/api/questions', json=question_payload(correct_answers=['A', 'B']))
        assert response.status_code == 400
        assert response.get_json()['error'] == 'MCQ questions need exactly one correct answer'

    def test_option_letters_only(self, educator_client, tag_system, question_payload):
        response = educator_client.post('/api/questions', json=question_payload(correct_answers=['E']))
        assert response.status_code == 400
        assert response.get_json()['errors'] == ['Correct answers must be option letters A, B, C or D']

    def test_mcq_needs_four_options(self, educator_client, tag_system, question_payload):
        response = educator_client.post('/api/questions', json=question_payload(option_d=''))
        assert response.status_code == 400
        assert 'missing: option_d' in response.get_json()['error']

    def test_numeric_answer_must_be_a_number(self, educator_client, tag_system, question_payload):
        response = educator_client.post('/api/questions', json=question_payload(
            question_type='Numeric', correct_answers=['nine'],
        ))
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Numeric answer must be a number'

    def test_topic_must_belong_to_chapter(self, educator_client, tag_system, question_payload):
        response = educator_client.post('/api/questions', json=question_payload(topic='Reflection'))
        assert response.status_code == 400
        assert response.get_json()['error'] == "Topic 'Reflection' is not defined for chapter 'Mechanics'"

    def test_unknown_difficulty(self, educator_client, tag_system, question_payload):
        response = educator_client.post('/api/questions', json=question_payload(difficulty_level='Extreme'))
        assert response.status_code == 400
        assert response.get_json()['error'] == 'difficulty_level must be one of: Easy, Medium, Hard'

    def test_missing_fields_are_all_reported(self, educator_client, tag_system):
        response = educator_client.post('/api/questions', json={})
        assert response.status_code == 400
        data = response.get_json()
        assert data['error'] == 'Invalid question'
        assert 'question_text is required' in data['errors']
        assert 'exam_type is required' in data['errors']

    def test_parse_correct_answers(self):
        assert parse_correct_answers('A; C') == ['A', 'C']
        assert parse_correct_answers(['B', ' ']) == ['B']
        assert parse_correct_answers(None) == []


class TestQuestionListing:
    """Test cases for browsing the bank."""

    def test_list_all(self, educator_client, question_pool):
        response = educator_client.get('/api/questions')
        assert response.status_code == 200
        data = response.get_json()
        assert data['pagination']['total'] == 5
        assert len(data['questions']) == 5

    def test_filter_by_chapter(self, educator_client, question_pool):
        response = educator_client.get('/api/questions?chapter=Optics')
        ids = {question['id'] for question in response.get_json()['questions']}
        assert ids == {question_pool['numeric'], question_pool['optics_mcq']}

    def test_combined_filters(self, educator_client, question_pool):
        response = educator_client.get('/api/questions?chapter=Mechanics&difficulty_level=Easy&question_type=MCQ')
        ids = {question['id'] for question in response.get_json()['questions']}
        assert ids == {question_pool['mcq'], question_pool['kinematics_mcq']}

    def test_search_matches_text_and_tags(self, educator_client, question_pool):
        response = educator_client.get('/api/questions?search=kinematics')
        ids = {question['id'] for question in response.get_json()['questions']}
        assert ids == {question_pool['mmcq'], question_pool['kinematics_mcq']}

        response = educator_client.get('/api/questions?search=NEWTON')
        ids = {question['id'] for question in response.get_json()['questions']}
        assert ids == {question_pool['mcq']}

    def test_search_treats_wildcards_literally(self, educator_client, question_pool, question_payload):
        response = educator_client.post('/api/questions', json=question_payload(
            question_text='What is 50% of 10 N?', option_a='5 N', option_b='10 N', option_c='15 N',
            option_d='20 N', correct_answers=['A'],
        ))
        percent_id = response.get_json()['question']['id']

        response = educator_client.get('/api/questions?search=%25')
        assert {question['id'] for question in response.get_json()['questions']} == {percent_id}

        response = educator_client.get('/api/questions?search=_')
        assert response.get_json()['questions'] == []

    def test_pagination(self, educator_client, question_pool):
        response = educator_client.get('/api/questions?page=3&per_page=2')
        data = response.get_json()
        assert data['pagination'] == {'page': 3, 'per_page': 2, 'total': 5, 'pages': 3}
        assert len(data['questions']) == 1

    def test_usage_is_listed(self, educator_client, sample_quiz, question_pool):
        response = educator_client.get('/api/questions?chapter=Optics')
        usage = {question['id']: question['used_in_quizzes'] for question in response.get_json()['questions']}
        assert usage[question_pool['numeric']] == [{'id': sample_quiz['id'], 'title': 'Weekly Test'}]
        assert usage[question_pool['optics_mcq']] == []

    def test_get_question(self, educator_client, question_pool):
        response = educator_client.get(f"/api/questions/{question_pool['mmcq']}")
        assert response.status_code == 200
        assert response.get_json()['question']['correct_answers'] == ['A', 'C']

    def test_get_missing_question(self, educator_client):
        assert educator_client.get('/api/questions/999').status_code == 404


class TestQuestionChanges:
    """Test cases for updating and deleting questions."""

    def test_partial_update(self, educator_client, question_pool):
        response = educator_client.put(f"/api/questions/{question_pool['mcq']}", json={
            'question_text': 'SI unit of force?',
            'tags': {'difficulty_level': 'Medium'},
        })
        assert response.status_code == 200
        question = response.get_json()['question']
        assert question['question_text'] == 'SI unit of force?'
        assert question['tags']['difficulty_level'] == 'Medium'
        assert question['correct_answers'] == ['B']

    def test_update_to_numeric_needs_numeric_answer(self, educator_client, question_pool):
        response = educator_client.put(f"/api/questions/{question_pool['mcq']}", json={'question_type': 'Numeric'})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Numeric answer must be a number'

    def test_delete_unused_question(self, educator_client, question_pool):
        response = educator_client.delete(f"/api/questions/{question_pool['optics_mcq']}")
        assert response.status_code == 200
        assert educator_client.get(f"/api/questions/{question_pool['optics_mcq']}").status_code == 404

    def test_delete_question_used_in_quiz(self, educator_client, sample_quiz, question_pool):
        response = educator_client.delete(f"/api/questions/{question_pool['mcq']}")
        assert response.status_code == 409
        assert response.get_json()['error'] == 'Question is used in quizzes: Weekly Test'


class TestQuestionExchange:
    """Test cases for export and CSV import."""

    def test_export_json(self, educator_client, question_pool):
        response = educator_client.get('/api/questions/export?format=json&chapter=Optics')
        assert response.status_code == 200
        questions = json.loads(response.get_data(as_text=True))
        assert {question['id'] for question in questions} == {question_pool['numeric'], question_pool['optics_mcq']}

    def test_export_csv(self, educator_client, question_pool):
        response = educator_client.get('/api/questions/export?format=csv&question_type=MMCQ')
        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        rows = list(csv.DictReader(io.StringIO(response.get_data(as_text=True))))
        assert len(rows) == 1
        assert rows[0]['correct_answers'] == 'A;C'
        assert rows[0]['topic'] == 'Kinematics'

    def test_export_unknown_format(self, educator_client):
        assert educator_client.get('/api/questions/export?format=xml').status_code == 400

    def test_import_csv(self, educator_client, tag_system):
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, lineterminator='\n')
        writer.writeheader()
        base = {
            'question_text': 'Velocity is the rate of change of?', 'option_a': 'Displacement',
            'option_b': 'Distance', 'option_c': 'Speed', 'option_d': 'Force', 'correct_answers': 'A',
            'explanation': '', 'exam_type': 'JEE', 'subject': 'Physics', 'chapter': 'Mechanics',
            'topic': 'Kinematics', 'difficulty_level': 'Easy', 'question_type': 'MCQ', 'source': '',
        }
        writer.writerow(base)
        writer.writerow(dict(base, correct_answers='E'))
        writer.writerow(dict(base, question_type='Numeric', correct_answers='4.5',
                             option_a='', option_b='', option_c='', option_d=''))

        response = educator_client.post('/api/questions/import', data=buffer.getvalue(), content_type='text/csv')
        assert response.status_code == 200
        data = response.get_json()
        assert data['imported'] == 2
        assert data['errors'] == [
            {'row': 3, 'errors': ['Correct answers must be option letters A, B, C or D']},
        ]
        assert educator_client.get('/api/questions').get_json()['pagination']['total'] == 2

    def test_import_missing_columns(self, educator_client):
        response = educator_client.post('/api/questions/import', data='question_text\nHello\n',
                                        content_type='text/csv')
        assert response.status_code == 400
        assert response.get_json()['error'].startswith('Missing required columns: option_a')

    def test_import_round_trip(self, educator_client, question_pool):
        exported = educator_client.get('/api/questions/export?format=csv&chapter=Mechanics').get_data(as_text=True)
        response = educator_client.post('/api/questions/import', data=exported, content_type='text/csv')
        assert response.get_json()['imported'] == 3
        assert response.get_json()['errors'] == []
