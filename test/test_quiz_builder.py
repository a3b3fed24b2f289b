"""
Test cases for building quizzes.
"""


def section_by_name(quiz, name):
    return next(section for section in quiz['sections'] if section['name'] == name)


def question_ids(section):
    return [question['id'] for question in section['questions']]


class TestQuizCreation:
    """Test cases for creating quizzes."""

    def test_create_quiz_with_sections(self, sample_quiz, question_pool):
        assert sample_quiz['title'] == 'Weekly Test'
        assert sample_quiz['total_duration'] == 30
        assert sample_quiz['total_marks'] == 10.0
        assert sample_quiz['section_count'] == 2
        assert sample_quiz['question_count'] == 3
        assert sample_quiz['instructions'] == ['All questions are compulsory']

        section_a = section_by_name(sample_quiz, 'Section A')
        assert section_a['order_index'] == 0
        assert section_a['marks'] == 4.0
        assert section_a['negative_marks'] == 1.0
        assert question_ids(section_a) == [question_pool['mcq'], question_pool['mmcq']]

        section_b = section_by_name(sample_quiz, 'Section B')
        assert section_b['order_index'] == 1
        assert section_b['negative_marks'] == 0.0

    def test_title_is_required(self, educator_client):
        response = educator_client.post('/api/quizzes', json={'title': '  '})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Please enter a quiz title'

    def test_students_cannot_create(self, student_client):
        assert student_client.post('/api/quizzes', json={'title': 'Mine'}).status_code == 403

    def test_question_in_two_sections(self, educator_client, question_pool):
        response = educator_client.post('/api/quizzes', json={
            'title': 'Clash',
            'sections': [
                {'question_ids': [question_pool['mcq']]},
                {'question_ids': [question_pool['mcq'], question_pool['numeric']]},
            ],
        })
        assert response.status_code == 409
        assert response.get_json()['error'] == f"Questions already used in another section: {question_pool['mcq']}"

    def test_question_twice_in_a_section(self, educator_client, question_pool):
        response = educator_client.post('/api/quizzes', json={
            'title': 'Twice',
            'sections': [{'question_ids': [question_pool['mcq'], question_pool['mcq']]}],
        })
        assert response.status_code == 400
        assert response.get_json()['error'] == 'A question can only appear once in a section'

    def test_unknown_question(self, educator_client, question_pool):
        response = educator_client.post('/api/quizzes', json={
            'title': 'Missing', 'sections': [{'question_ids': [999]}],
        })
        assert response.status_code == 404

    def test_negative_duration(self, educator_client):
        response = educator_client.post('/api/quizzes', json={'title': 'Timed', 'total_duration': -5})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'total_duration cannot be negative'


class TestQuizListing:
    """Test cases for listing and reading quizzes."""

    def test_students_only_see_quizzes_with_questions(self, educator_client, student_client, sample_quiz):
        educator_client.post('/api/quizzes', json={'title': 'Draft'})

        titles = [quiz['title'] for quiz in educator_client.get('/api/quizzes').get_json()['quizzes']]
        assert sorted(titles) == ['Draft', 'Weekly Test']

        titles = [quiz['title'] for quiz in student_client.get('/api/quizzes').get_json()['quizzes']]
        assert titles == ['Weekly Test']

    def test_students_cannot_read_answers(self, student_client, sample_quiz):
        assert student_client.get(f"/api/quizzes/{sample_quiz['id']}").status_code == 403

    def test_get_missing_quiz(self, educator_client):
        response = educator_client.get('/api/quizzes/999')
        assert response.status_code == 404
        assert response.get_json()['error'] == 'Quiz not found'


class TestQuizChanges:
    """Test cases for updating, duplicating and deleting quizzes."""

    def test_update_quiz(self, educator_client, sample_quiz):
        response = educator_client.put(f"/api/quizzes/{sample_quiz['id']}", json={
            'title': 'Weekly Test 2', 'total_duration': 45, 'unit': 'Unit 1',
        })
        assert response.status_code == 200
        quiz = response.get_json()['quiz']
        assert quiz['title'] == 'Weekly Test 2'
        assert quiz['total_duration'] == 45
        assert quiz['unit'] == 'Unit 1'
        assert quiz['total_marks'] == 10.0

    def test_only_author_can_modify(self, other_educator_client, sample_quiz):
        response = other_educator_client.put(f"/api/quizzes/{sample_quiz['id']}", json={'title': 'Taken'})
        assert response.status_code == 403
        assert response.get_json()['error'] == 'Only the author can modify this quiz'
        assert other_educator_client.delete(f"/api/quizzes/{sample_quiz['id']}").status_code == 403

    def test_other_educator_can_duplicate(self, other_educator_client, sample_quiz):
        response = other_educator_client.post(f"/api/quizzes/{sample_quiz['id']}/duplicate")
        assert response.status_code == 201
        copy = response.get_json()['quiz']
        assert copy['id'] != sample_quiz['id']
        assert copy['title'] == 'Weekly Test (Copy)'
        assert copy['created_by'] == other_educator_client.user['id']
        assert copy['total_marks'] == 10.0
        assert [question_ids(section) for section in copy['sections']] == \
            [question_ids(section) for section in sample_quiz['sections']]

    def test_delete_quiz(self, educator_client, sample_quiz):
        assert educator_client.delete(f"/api/quizzes/{sample_quiz['id']}").status_code == 200
        assert educator_client.get(f"/api/quizzes/{sample_quiz['id']}").status_code == 404


class TestSections:
    """Test cases for sections and their questions."""

    def test_add_section_defaults(self, educator_client, sample_quiz):
        response = educator_client.post(f"/api/quizzes/{sample_quiz['id']}/sections", json={})
        assert response.status_code == 201
        section = response.get_json()['section']
        assert section['name'] == 'Section 3'
        assert section['marks'] == 1.0
        assert section['negative_marks'] == 0.0
        assert section['order_index'] == 2
        assert section['questions'] == []

    def test_add_section_with_questions(self, educator_client, sample_quiz, question_pool):
        response = educator_client.post(f"/api/quizzes/{sample_quiz['id']}/sections", json={
            'name': 'Section C', 'marks': 3, 'question_ids': [question_pool['optics_mcq']],
        })
        assert response.status_code == 201
        assert response.get_json()['total_marks'] == 13.0

    def test_update_section_marks(self, educator_client, sample_quiz):
        section = section_by_name(sample_quiz, 'Section A')
        response = educator_client.put(f"/api/quizzes/{sample_quiz['id']}/sections/{section['id']}", json={
            'marks': 2.5, 'timer_enabled': True, 'duration': 10,
        })
        assert response.status_code == 200
        data = response.get_json()
        assert data['section']['marks'] == 2.5
        assert data['section']['timer_enabled'] is True
        assert data['total_marks'] == 7.0

    def test_invalid_marks(self, educator_client, sample_quiz):
        section = section_by_name(sample_quiz, 'Section A')
        url = f"/api/quizzes/{sample_quiz['id']}/sections/{section['id']}"
        response = educator_client.put(url, json={'marks': 'abc'})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid numeric value for marks'
        response = educator_client.put(url, json={'negative_marks': -1})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'negative_marks must be zero or more'

    def test_remove_section(self, educator_client, sample_quiz):
        section = section_by_name(sample_quiz, 'Section A')
        response = educator_client.delete(f"/api/quizzes/{sample_quiz['id']}/sections/{section['id']}")
        assert response.status_code == 200
        quiz = response.get_json()['quiz']
        assert [section['name'] for section in quiz['sections']] == ['Section B']
        assert quiz['sections'][0]['order_index'] == 0
        assert quiz['total_marks'] == 2.0

    def test_missing_section(self, educator_client, sample_quiz):
        response = educator_client.put(f"/api/quizzes/{sample_quiz['id']}/sections/999", json={'marks': 1})
        assert response.status_code == 404

    def test_set_questions_rejects_other_section_questions(self, educator_client, sample_quiz, question_pool):
        section = section_by_name(sample_quiz, 'Section B')
        response = educator_client.put(
            f"/api/quizzes/{sample_quiz['id']}/sections/{section['id']}/questions",
            json={'question_ids': [question_pool['numeric'], question_pool['mcq']]},
        )
        assert response.status_code == 409
        assert response.get_json()['error'] == f"Questions already used in another section: {question_pool['mcq']}"

    def test_set_questions_reorders(self, educator_client, sample_quiz, question_pool):
        section = section_by_name(sample_quiz, 'Section A')
        response = educator_client.put(
            f"/api/quizzes/{sample_quiz['id']}/sections/{section['id']}/questions",
            json={'question_ids': [question_pool['mmcq'], question_pool['mcq'], question_pool['kinematics_mcq']]},
        )
        assert response.status_code == 200
        data = response.get_json()
        assert question_ids(data['section']) == [
            question_pool['mmcq'], question_pool['mcq'], question_pool['kinematics_mcq'],
        ]
        assert data['total_marks'] == 14.0

    def test_add_remove_and_replace_question(self, educator_client, sample_quiz, question_pool):
        section = section_by_name(sample_quiz, 'Section B')
        base = f"/api/quizzes/{sample_quiz['id']}/sections/{section['id']}/questions"

        response = educator_client.post(base, json={'question_id': question_pool['optics_mcq']})
        assert response.status_code == 200
        assert response.get_json()['total_marks'] == 12.0

        response = educator_client.post(base, json={'question_id': question_pool['optics_mcq']})
        assert response.status_code == 409

        response = educator_client.put(f"{base}/{question_pool['numeric']}",
                                       json={'question_id': question_pool['kinematics_mcq']})
        assert response.status_code == 200
        assert question_ids(response.get_json()['section']) == [
            question_pool['kinematics_mcq'], question_pool['optics_mcq'],
        ]

        response = educator_client.delete(f"{base}/{question_pool['optics_mcq']}")
        assert response.status_code == 200
        assert question_ids(response.get_json()['section']) == [question_pool['kinematics_mcq']]

        response = educator_client.delete(f"{base}/{question_pool['optics_mcq']}")
        assert response.status_code == 404

    def test_available_questions(self, educator_client, sample_quiz, question_pool):
        section_a = section_by_name(sample_quiz, 'Section A')

        response = educator_client.get(f"/api/quizzes/{sample_quiz['id']}/available-questions")
        ids = {question['id'] for question in response.get_json()['questions']}
        assert ids == {question_pool['optics_mcq'], question_pool['kinematics_mcq']}

        response = educator_client.get(
            f"/api/quizzes/{sample_quiz['id']}/available-questions?section_id={section_a['id']}&chapter=Mechanics"
        )
        ids = {question['id'] for question in response.get_json()['questions']}
        assert ids == {question_pool['mcq'], question_pool['mmcq'], question_pool['kinematics_mcq']}


class TestGenerationRoutes:
    """Test cases for the generation wizard endpoints."""

    SECTION = {
        'subject': 'Physics',
        'difficulty_distribution': {'Easy': 100, 'Medium': 0, 'Hard': 0},
        'type_distribution': {'MCQ': 100, 'MMCQ': 0, 'Numeric': 0},
        'chapter_distribution': [{'chapter': 'Mechanics', 'count': 2}],
    }

    def test_validate_all_steps(self, educator_client, question_pool):
        response = educator_client.post('/api/quizzes/generator/validate', json={
            'exam_type': 'JEE', 'sections': [self.SECTION],
        })
        assert response.status_code == 200
        data = response.get_json()
        assert data['steps'] == {'exam': [], 'sections': [], 'filters': []}
        assert data['can_generate'] is True

    def test_validate_one_step(self, educator_client, question_pool):
        response = educator_client.post('/api/quizzes/generator/validate', json={
            'step': 'sections', 'exam_type': 'JEE',
            'sections': [dict(self.SECTION, chapter_distribution=[{'chapter': 'Mechanics', 'count': 3}])],
        })
        data = response.get_json()
        assert data['can_proceed'] is False
        assert data['errors'] == [
            'Section 1: Not enough Easy questions available. Need 3 (100%), but only have 2',
            'Section 1: Not enough MCQ questions available. Need 3 (100%), but only have 2',
        ]

    def test_availability(self, educator_client, question_pool):
        response = educator_client.post('/api/quizzes/generator/availability', json={
            'exam_type': 'JEE', 'section': self.SECTION, 'chapter': 'Mechanics',
        })
        data = response.get_json()
        assert data['total'] == 3
        assert data['by_difficulty'] == {'Easy': 2, 'Medium': 1, 'Hard': 0}
        assert data['by_type'] == {'MCQ': 2, 'MMCQ': 1, 'Numeric': 0}
        assert data['by_topic'] == {"Newton's Laws": 1, 'Kinematics': 2}

    def test_availability_with_blank_chapter(self, educator_client, question_pool):
        response = educator_client.post('/api/quizzes/generator/availability', json={
            'exam_type': 'JEE', 'section': self.SECTION, 'chapter': '',
        })
        assert response.status_code == 200
        assert response.get_json()['total'] == 3

    def test_questions_in_other_quizzes_are_excluded(self, educator_client, sample_quiz):
        response = educator_client.post('/api/quizzes/generator/availability', json={
            'exam_type': 'JEE', 'section': self.SECTION, 'chapter': 'Mechanics',
        })
        assert response.get_json()['total'] == 1

        response = educator_client.post('/api/quizzes/generator/availability', json={
            'exam_type': 'JEE', 'section': self.SECTION, 'chapter': 'Mechanics', 'allow_reuse': True,
        })
        assert response.get_json()['total'] == 3

    def test_suggest(self, educator_client, question_pool):
        response = educator_client.post('/api/quizzes/generator/suggest', json={
            'exam_type': 'JEE', 'section': dict(self.SECTION, chapter_distribution=[{'chapter': 'Optics', 'count': 1}]),
        })
        data = response.get_json()
        assert data['difficulty_distribution'] == {'Easy': 0, 'Medium': 50, 'Hard': 50}
        assert data['type_distribution'] == {'MCQ': 50, 'MMCQ': 0, 'Numeric': 50}

    def test_chapter_and_topic_counts(self, educator_client, question_pool):
        response = educator_client.post('/api/quizzes/generator/chapter-count', json={
            'exam_type': 'JEE', 'section': {'subject': 'Physics'}, 'chapter': 'Optics', 'count': 9,
        })
        section = response.get_json()['section']
        assert section['chapter_distribution'][0]['count'] == 2
        assert section['question_count'] == 2

        response = educator_client.post('/api/quizzes/generator/topic-count', json={
            'section': section, 'chapter': 'Optics', 'topic': 'Reflection', 'count': 5,
        })
        assert response.get_json()['section']['chapter_distribution'][0]['topics'] == [
            {'topic': 'Reflection', 'count': 2},
        ]

    def test_generate_and_regenerate(self, educator_client, question_pool):
        quiz = educator_client.post('/api/quizzes', json={'title': 'Generated', 'total_duration': 20}).get_json()['quiz']

        response = educator_client.post(f"/api/quizzes/{quiz['id']}/generate", json={
            'exam_type': 'JEE', 'sections': [self.SECTION],
        })
        assert response.status_code == 201
        data = response.get_json()
        section = data['sections'][0]
        assert section['name'] == 'Physics Section'
        assert section['marks'] == 50.0
        assert section['negative_marks'] == 12.5
        assert section['auto_generate']['exam_type'] == 'JEE'
        assert set(question_ids(section)) == {question_pool['mcq'], question_pool['kinematics_mcq']}
        assert data['quiz']['total_marks'] == 100.0

        response = educator_client.post(f"/api/quizzes/{quiz['id']}/sections/{section['id']}/generate", json={
            'exam_type': 'JEE', 'sections': [self.SECTION],
        })
        assert response.status_code == 200
        regenerated = response.get_json()['quiz']['sections']
        assert len(regenerated) == 1
        assert regenerated[0]['id'] == section['id']
        assert set(question_ids(regenerated[0])) == {question_pool['mcq'], question_pool['kinematics_mcq']}

    def test_generate_with_errors(self, educator_client, question_pool):
        quiz = educator_client.post('/api/quizzes', json={'title': 'Generated'}).get_json()['quiz']
        response = educator_client.post(f"/api/quizzes/{quiz['id']}/generate", json={'exam_type': 'JEE'})
        assert response.status_code == 400
        assert response.get_json()['errors'] == ['Please add at least one section']
