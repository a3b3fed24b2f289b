"""
Question bank module.

Educators author tagged MCQ, MMCQ and Numeric questions and
browse, export and import them.
"""
from flask import Blueprint
from quizbank.config import config

questions_bp = Blueprint('questions', __name__, url_prefix=config.QUESTIONS_API_PREFIX)

from quizbank.questions import routes  # noqa: E402,F401
