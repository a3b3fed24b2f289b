"""
Test cases for authentication functionality.
"""

import pytest

from quizbank.config import config
from quizbank.security import RateLimiter
from quizbank.security.rate_limiter import _rate_limiter

PASSWORD = 'password123'


class TestUserRegistration:
    """Test cases for user registration endpoints."""

    def test_register_educator(self, client):
        """Test registering an educator account."""
        response = client.post('/api/auth/register', json={
            'email': 'Teacher@Test.com',
            'password': PASSWORD,
            'full_name': 'Test Teacher',
            'user_type': 'educator',
        })
        assert response.status_code == 201
        user = response.get_json()['user']
        assert user['email'] == 'teacher@test.com'
        assert user['user_type'] == 'educator'

    def test_register_defaults_to_student(self, client):
        response = client.post('/api/auth/register', json={
            'email': 'student@test.com',
            'password': PASSWORD,
            'full_name': 'Test Student',
        })
        assert response.status_code == 201
        assert response.get_json()['user']['user_type'] == 'student'

    def test_register_missing_fields(self, client):
        """Test registration with missing required fields."""
        response = client.post('/api/auth/register', json={'email': 'test@test.com'})
        assert response.status_code == 400

    def test_register_invalid_email(self, client):
        """Test registration with invalid email."""
        response = client.post('/api/auth/register', json={
            'email': 'invalid-email',
            'password': PASSWORD,
            'full_name': 'Test User',
        })
        assert response.status_code == 400

    def test_register_invalid_password(self, client):
        """Test registration with a too short password."""
        response = client.post('/api/auth/register', json={
            'email': 'test@test.com',
            'password': '123',
            'full_name': 'Test User',
        })
        assert response.status_code == 400
        assert 'at least 8 characters' in response.get_json()['error']

    def test_register_invalid_user_type(self, client):
        response = client.post('/api/auth/register', json={
            'email': 'test@test.com',
            'password': PASSWORD,
            'full_name': 'Test User',
            'user_type': 'admin',
        })
        assert response.status_code == 400

    def test_register_duplicate_email(self, client):
        payload = {'email': 'test@test.com', 'password': PASSWORD, 'full_name': 'Test User'}
        assert client.post('/api/auth/register', json=payload).status_code == 201
        response = client.post('/api/auth/register', json=payload)
        assert response.status_code == 409


class TestUserLogin:
    """Test cases for user login endpoints."""

    def test_login_success(self, client, login):
        user = login(client, 'test@test.com', 'student')
        assert user['email'] == 'test@test.com'

        response = client.get('/api/auth/me')
        assert response.status_code == 200
        assert response.get_json()['user']['email'] == 'test@test.com'

    def test_login_wrong_password(self, client):
        client.post('/api/auth/register', json={
            'email': 'test@test.com', 'password': PASSWORD, 'full_name': 'Test User',
        })
        response = client.post('/api/auth/login', json={'email': 'test@test.com', 'password': 'wrongpassword'})
        assert response.status_code == 401

    def test_login_missing_fields(self, client):
        """Test login with missing fields."""
        response = client.post('/api/auth/login', json={'email': 'test@test.com'})
        assert response.status_code == 400

    def test_login_invalid_email_format(self, client):
        """Test login with invalid email format."""
        response = client.post('/api/auth/login', json={'email': 'invalid-email', 'password': PASSWORD})
        assert response.status_code == 400

    def test_logout(self, client, login):
        login(client, 'test@test.com', 'student')
        assert client.post('/api/auth/logout').status_code == 200
        assert client.get('/api/auth/me').status_code == 401


class TestAccessControl:
    """Test cases for role checks on protected endpoints."""

    def test_me_requires_login(self, client):
        response = client.get('/api/auth/me')
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Authentication required'

    def test_student_cannot_use_question_bank(self, student_client):
        response = student_client.get('/api/questions')
        assert response.status_code == 403

    def test_unknown_api_route_returns_json(self, client):
        response = client.get('/api/does-not-exist')
        assert response.status_code == 404
        assert response.get_json()['success'] is False

    def test_security_headers_present(self, client):
        response = client.get('/api/auth/')
        assert response.headers['X-Content-Type-Options'] == 'nosniff'
        assert response.headers['X-Frame-Options'] == 'DENY'


class TestLoginRateLimit:
    """Test cases for the login rate limiter."""

    @pytest.fixture
    def limited_app(self, app):
        app.config['RATELIMIT_ENABLED'] = True
        yield app
        _rate_limiter.reset()

    def test_login_is_rate_limited(self, limited_app, client):
        payload = {'email': 'nobody@test.com', 'password': PASSWORD}
        for _ in range(config.LOGIN_RATE_LIMIT):
            response = client.post('/api/auth/login', json=payload)
            assert response.status_code == 401
        assert response.headers['X-RateLimit-Remaining'] == '0'

        response = client.post('/api/auth/login', json=payload)
        assert response.status_code == 429
        assert response.get_json()['error'] == 'Too many login attempts. Please try again later.'
        assert response.headers['Retry-After'] == str(config.LOGIN_RATE_WINDOW_SECONDS)

    def test_reset_clears_identifier(self):
        limiter = RateLimiter()
        assert limiter.is_allowed('ip:1.2.3.4', 1, 60) == (True, 0)
        assert limiter.is_allowed('ip:1.2.3.4', 1, 60) == (False, 0)
        limiter.reset('ip:1.2.3.4')
        assert limiter.is_allowed('ip:1.2.3.4', 1, 60)[0] is True
