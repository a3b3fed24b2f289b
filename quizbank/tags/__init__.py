"""
Tag system for the question bank.

Exam types own subjects, subjects own chapters and chapters own topics.
Difficulty levels and question types are fixed vocabularies.
"""
from flask import Blueprint
from quizbank.config import config

tags_bp = Blueprint('tags', __name__, url_prefix=config.TAGS_API_PREFIX)

from quizbank.tags import routes  # noqa: E402,F401
