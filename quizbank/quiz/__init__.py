"""
Quiz module for assembling, generating, printing and taking quizzes.

Educators build quizzes by hand or with the auto-generation wizard;
any signed-in user can take a quiz.
"""
from flask import Blueprint
from quizbank.config import config

quiz_bp = Blueprint('quiz', __name__, url_prefix=config.QUIZ_API_PREFIX)

from quizbank.quiz import builder_routes  # noqa: E402,F401
from quizbank.quiz import generator_routes  # noqa: E402,F401
from quizbank.quiz import attempt_routes  # noqa: E402,F401
from quizbank.quiz import print_routes  # noqa: E402,F401
