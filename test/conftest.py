"""
Pytest configuration and fixtures for testing.
Every test gets a fresh app backed by an in-memory SQLite database.
"""
import os

# Set test environment variables BEFORE importing the app
os.environ['FLASK_ENV'] = 'testing'
os.environ['SECRET_KEY'] = 'sfndsfojoriwew09rjfjndsknfkj'
os.environ['MIN_PASSWORD_LENGTH'] = '8'
os.environ['NUMERIC_ANSWER_TOLERANCE'] = '0.01'
os.environ['INSTITUTE_NAME'] = 'Test Institute'
os.environ['INSTITUTE_TAGLINE'] = 'Practice makes perfect'
os.environ.pop('DATABASE_URL', None)
os.environ.pop('DB_HOST', None)

import pytest

from quizbank import create_app, db
from quizbank.questions.models import Question
from quizbank.tags.service import add_tag


PASSWORD = 'password123'


@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'RATELIMIT_ENABLED': False,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def _register_and_login(client, email, user_type, full_name='Test User'):
    """Register an account through the API and sign the client in."""
    client.post('/api/auth/register', json={
        'email': email,
        'password': PASSWORD,
        'full_name': full_name,
        'user_type': user_type,
    })
    response = client.post('/api/auth/login', json={'email': email, 'password': PASSWORD})
    assert response.status_code == 200
    return response.get_json()['user']


@pytest.fixture
def login():
    """Helper that registers an account and signs a client in."""
    return _register_and_login


@pytest.fixture
def educator_client(app):
    client = app.test_client()
    client.user = _register_and_login(client, 'teacher@test.com', 'educator', 'Test Teacher')
    return client


@pytest.fixture
def other_educator_client(app):
    client = app.test_client()
    client.user = _register_and_login(client, 'colleague@test.com', 'educator', 'Other Teacher')
    return client


@pytest.fixture
def student_client(app):
    client = app.test_client()
    client.user = _register_and_login(client, 'student@test.com', 'student', 'Test Student')
    return client


@pytest.fixture
def tag_system(app):
    """JEE > Physics > Mechanics/Optics with a few topics, plus one source."""
    with app.app_context():
        add_tag('exam_types', 'JEE')
        add_tag('subjects', 'Physics', 'JEE')
        add_tag('chapters', 'Mechanics', 'Physics')
        add_tag('chapters', 'Optics', 'Physics')
        add_tag('topics', "Newton's Laws", 'Mechanics')
        add_tag('topics', 'Kinematics', 'Mechanics')
        add_tag('topics', 'Reflection', 'Optics')
        add_tag('sources', 'NCERT')


def _question_payload(**overrides):
    """Valid MCQ request body; keyword arguments replace fields or tags."""
    tags = {
        'exam_type': 'JEE',
        'subject': 'Physics',
        'chapter': 'Mechanics',
        'topic': "Newton's Laws",
        'difficulty_level': 'Easy',
        'question_type': 'MCQ',
        'source': 'NCERT',
    }
    for field in list(overrides):
        if field in tags:
            tags[field] = overrides.pop(field)
    payload = {
        'question_text': 'A body at rest stays at rest unless acted on by?',
        'option_a': 'Gravity only',
        'option_b': 'An external force',
        'option_c': 'Friction only',
        'option_d': 'Nothing',
        'correct_answers': ['B'],
        'explanation': "Newton's first law",
        'tags': tags,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def question_payload():
    return _question_payload


@pytest.fixture
def question_pool(app, tag_system):
    """
    Five questions across the tag system.

    Returns a dict of name -> question id.
    """
    rows = {
        'mcq': dict(
            question_text='Unit of force?', option_a='Joule', option_b='Newton', option_c='Watt', option_d='Pascal',
            correct_answers=['B'], explanation='SI unit of force', chapter='Mechanics', topic="Newton's Laws",
            difficulty_level='Easy', question_type='MCQ',
        ),
        'mmcq': dict(
            question_text='Which are vector quantities?', option_a='Velocity', option_b='Speed',
            option_c='Acceleration', option_d='Mass', correct_answers=['A', 'C'], explanation=None,
            chapter='Mechanics', topic='Kinematics', difficulty_level='Medium', question_type='MMCQ',
        ),
        'numeric': dict(
            question_text='Acceleration due to gravity in m/s^2?', correct_answers=['9.8'],
            explanation='Standard value', chapter='Optics', topic='Reflection',
            difficulty_level='Hard', question_type='Numeric',
        ),
        'optics_mcq': dict(
            question_text='Angle of incidence equals?', option_a='Refraction angle', option_b='Critical angle',
            option_c='Brewster angle', option_d='Angle of reflection', correct_answers=['D'], explanation=None,
            chapter='Optics', topic='Reflection', difficulty_level='Medium', question_type='MCQ',
        ),
        'kinematics_mcq': dict(
            question_text='Slope of a velocity-time graph gives?', option_a='Acceleration', option_b='Distance',
            option_c='Jerk', option_d='Momentum', correct_answers=['A'], explanation=None,
            chapter='Mechanics', topic='Kinematics', difficulty_level='Easy', question_type='MCQ',
        ),
    }
    ids = {}
    with app.app_context():
        for name, fields in rows.items():
            question = Question(exam_type='JEE', subject='Physics', source='NCERT', **fields)
            db.session.add(question)
            db.session.flush()
            ids[name] = question.id
        db.session.commit()
    return ids


@pytest.fixture
def sample_quiz(educator_client, question_pool):
    """
    A 30 minute quiz with two sections:
    Section A (+4/-1): mcq, mmcq; Section B (+2/0): numeric.
    """
    response = educator_client.post('/api/quizzes', json={
        'title': 'Weekly Test',
        'subject': 'Physics',
        'batch': '2026-A',
        'instructions': ['All questions are compulsory'],
        'total_duration': 30,
        'sections': [
            {'name': 'Section A', 'marks': 4, 'negative_marks': 1,
             'question_ids': [question_pool['mcq'], question_pool['mmcq']]},
            {'name': 'Section B', 'marks': 2, 'question_ids': [question_pool['numeric']]},
        ],
    })
    assert response.status_code == 201
    return response.get_json()['quiz']
