"""
Quiz builder routes.

Educators can:
- Create, update, duplicate and delete quizzes
- Add, update and remove sections
- Pick the questions of a section by hand
"""
from flask import current_app, jsonify, request
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from quizbank import db
from quizbank.common.decorators import api_login_required, educator_required
from quizbank.common.request_utils import error_response, get_json_body, get_pagination_args, parse_int
from quizbank.questions.models import TAG_FIELDS, Question
from quizbank.questions.service import filter_questions_query
from quizbank.quiz import quiz_bp
from quizbank.quiz.builder import (
    QuizBuilderError,
    add_question,
    add_section,
    check_author,
    create_quiz,
    delete_quiz,
    duplicate_quiz,
    get_quiz_or_error,
    get_section_or_error,
    get_used_questions,
    remove_question,
    remove_section,
    replace_question,
    set_section_questions,
    update_quiz,
    update_section,
)
from quizbank.quiz.models import Quiz


def _author_quiz(quiz_id: int) -> Quiz:
    quiz = get_quiz_or_error(quiz_id)
    check_author(quiz, current_user)
    return quiz


def _handle_builder_error(e: QuizBuilderError):
    db.session.rollback()
    return error_response(e.message, e.status)


def _handle_db_error(e: SQLAlchemyError, action: str):
    db.session.rollback()
    current_app.logger.error(f"Error trying to {action}: {str(e)}")
    return error_response(f'Failed to {action}', 500)


@quiz_bp.route('', methods=['GET'])
@api_login_required
def list_quizzes():
    """List quizzes with title, duration, total marks and section count."""
    quizzes = Quiz.query.order_by(Quiz.created_at.desc(), Quiz.id.desc()).all()
    if not current_user.is_educator():
        quizzes = [quiz for quiz in quizzes if quiz.get_question_count() > 0]
    return jsonify({'success': True, 'quizzes': [quiz.to_summary_dict() for quiz in quizzes]}), 200


@quiz_bp.route('', methods=['POST'])
@educator_required
def create_quiz_route():
    """
    Create a quiz.

    Request body:
    {
        "title": "Weekly Test 3",
        "subject": "Physics", "batch": "2025-A", "unit": "Mechanics",
        "instructions": ["All questions are compulsory"],
        "total_duration": 60,
        "sections": [
            {"name": "Section A", "marks": 4, "negative_marks": 1, "question_ids": [1, 2, 3]}
        ]
    }
    """
    try:
        quiz = create_quiz(get_json_body(), current_user.id)
        return jsonify({'success': True, 'message': 'Quiz created successfully', 'quiz': quiz.to_dict()}), 201
    except QuizBuilderError as e:
        return _handle_builder_error(e)
    except SQLAlchemyError as e:
        return _handle_db_error(e, 'create quiz')


@quiz_bp.route('/<int:quiz_id>', methods=['GET'])
@educator_required
def get_quiz(quiz_id):
    try:
        quiz = get_quiz_or_error(quiz_id)
    except QuizBuilderError as e:
        return error_response(e.message, e.status)
    return jsonify({'success': True, 'quiz': quiz.to_dict()}), 200


@quiz_bp.route('/<int:quiz_id>', methods=['PUT'])
@educator_required
def update_quiz_route(quiz_id):
    try:
        quiz = update_quiz(_author_quiz(quiz_id), get_json_body())
        return jsonify({'success': True, 'message': 'Quiz updated successfully', 'quiz': quiz.to_dict()}), 200
    except QuizBuilderError as e:
        return _handle_builder_error(e)
    except SQLAlchemyError as e:
        return _handle_db_error(e, 'update quiz')


@quiz_bp.route('/<int:quiz_id>', methods=['DELETE'])
@educator_required
def delete_quiz_route(quiz_id):
    try:
        delete_quiz(_author_quiz(quiz_id))
        return jsonify({'success': True, 'message': 'Quiz deleted successfully'}), 200
    except QuizBuilderError as e:
        return _handle_builder_error(e)
    except SQLAlchemyError as e:
        return _handle_db_error(e, 'delete quiz')


@quiz_bp.route('/<int:quiz_id>/duplicate', methods=['POST'])
@educator_required
def duplicate_quiz_route(quiz_id):
    try:
        copy = duplicate_quiz(get_quiz_or_error(quiz_id), current_user.id)
        return jsonify({'success': True, 'message': 'Quiz duplicated successfully', 'quiz': copy.to_dict()}), 201
    except QuizBuilderError as e:
        return _handle_builder_error(e)
    except SQLAlchemyError as e:
        return _handle_db_error(e, 'duplicate quiz')


@quiz_bp.route('/<int:quiz_id>/sections', methods=['POST'])
@educator_required
def add_section_route(quiz_id):
    try:
        quiz = _author_quiz(quiz_id)
        section = add_section(quiz, get_json_body())
        return jsonify({
            'success': True,
            'section': section.to_dict(),
            'total_marks': float(quiz.total_marks),
        }), 201
    except QuizBuilderError as e:
        return _handle_builder_error(e)
    except SQLAlchemyError as e:
        return _handle_db_error(e, 'add section')


@quiz_bp.route('/<int:quiz_id>/sections/<int:section_id>', methods=['PUT'])
@educator_required
def update_section_route(quiz_id, section_id):
    try:
        quiz = _author_quiz(quiz_id)
        section = update_section(quiz, get_section_or_error(quiz, section_id), get_json_body())
        return jsonify({
            'success': True,
            'section': section.to_dict(),
            'total_marks': float(quiz.total_marks),
        }), 200
    except QuizBuilderError as e:
        return _handle_builder_error(e)
    except SQLAlchemyError as e:
        return _handle_db_error(e, 'update section')


@quiz_bp.route('/<int:quiz_id>/sections/<int:section_id>', methods=['DELETE'])
@educator_required
def remove_section_route(quiz_id, section_id):
    try:
        quiz = _author_quiz(quiz_id)
        remove_section(quiz, get_section_or_error(quiz, section_id))
        return jsonify({'success': True, 'message': 'Section removed', 'quiz': quiz.to_dict()}), 200
    except QuizBuilderError as e:
        return _handle_builder_error(e)
    except SQLAlchemyError as e:
        return _handle_db_error(e, 'remove section')


@quiz_bp.route('/<int:quiz_id>/sections/<int:section_id>/questions', methods=['PUT'])
@educator_required
def set_section_questions_route(quiz_id, section_id):
    """Replace the questions of a section. Body: {"question_ids": [..]}"""
    try:
        quiz = _author_quiz(quiz_id)
        section = set_section_questions(
            quiz, get_section_or_error(quiz, section_id), get_json_body().get('question_ids', [])
        )
        return jsonify({
            'success': True,
            'section': section.to_dict(),
            'total_marks': float(quiz.total_marks),
        }), 200
    except QuizBuilderError as e:
        return _handle_builder_error(e)
    except SQLAlchemyError as e:
        return _handle_db_error(e, 'update section questions')


@quiz_bp.route('/<int:quiz_id>/sections/<int:section_id>/questions', methods=['POST'])
@educator_required
def add_question_route(quiz_id, section_id):
    """Add one question to a section. Body: {"question_id": 12}"""
    question_id = parse_int(get_json_body().get('question_id'))
    if question_id is None:
        return error_response('question_id is required', 400)
    try:
        quiz = _author_quiz(quiz_id)
        section = add_question(quiz, get_section_or_error(quiz, section_id), question_id)
        return jsonify({
            'success': True,
            'section': section.to_dict(),
            'total_marks': float(quiz.total_marks),
        }), 200
    except QuizBuilderError as e:
        return _handle_builder_error(e)
    except SQLAlchemyError as e:
        return _handle_db_error(e, 'add question')


@quiz_bp.route('/<int:quiz_id>/sections/<int:section_id>/questions/<int:question_id>', methods=['DELETE'])
@educator_required
def remove_question_route(quiz_id, section_id, question_id):
    try:
        quiz = _author_quiz(quiz_id)
        section = remove_question(quiz, get_section_or_error(quiz, section_id), question_id)
        return jsonify({
            'success': True,
            'section': section.to_dict(),
            'total_marks': float(quiz.total_marks),
        }), 200
    except QuizBuilderError as e:
        return _handle_builder_error(e)
    except SQLAlchemyError as e:
        return _handle_db_error(e, 'remove question')


@quiz_bp.route('/<int:quiz_id>/sections/<int:section_id>/questions/<int:question_id>', methods=['PUT'])
@educator_required
def replace_question_route(quiz_id, section_id, question_id):
    """Swap a question for another at the same position. Body: {"question_id": 34}"""
    new_question_id = parse_int(get_json_body().get('question_id'))
    if new_question_id is None:
        return error_response('question_id is required', 400)
    try:
        quiz = _author_quiz(quiz_id)
        section = replace_question(quiz, get_section_or_error(quiz, section_id), question_id, new_question_id)
        return jsonify({
            'success': True,
            'section': section.to_dict(),
            'total_marks': float(quiz.total_marks),
        }), 200
    except QuizBuilderError as e:
        return _handle_builder_error(e)
    except SQLAlchemyError as e:
        return _handle_db_error(e, 'replace question')


@quiz_bp.route('/<int:quiz_id>/available-questions', methods=['GET'])
@educator_required
def available_questions(quiz_id):
    """
    Questions that can be picked for a section: none used by the quiz's other sections.

    Query params: section_id (omit for a new section), tag fields, search, page, per_page
    """
    try:
        quiz = get_quiz_or_error(quiz_id)
    except QuizBuilderError as e:
        return error_response(e.message, e.status)

    used = get_used_questions(quiz, parse_int(request.args.get('section_id')))
    filters = {field: request.args.get(field) for field in TAG_FIELDS if request.args.get(field)}
    query = filter_questions_query(filters, request.args.get('search'))
    if used:
        query = query.filter(~Question.id.in_(used))

    page, per_page = get_pagination_args()
    pagination = db.paginate(query, page=page, per_page=per_page, error_out=False)
    return jsonify({
        'success': True,
        'questions': [question.to_dict() for question in pagination.items],
        'pagination': {
            'page': pagination.page,
            'per_page': pagination.per_page,
            'total': pagination.total,
            'pages': pagination.pages,
        }
    }), 200
