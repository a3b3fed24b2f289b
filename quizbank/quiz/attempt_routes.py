"""
Test-taking routes.

Any signed-in user can:
- Open (or resume) an attempt and accept the instructions
- Move between questions, answer, clear and mark for review
- Submit and read the graded result
"""
from flask import current_app, jsonify
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from quizbank import db
from quizbank.common.decorators import api_login_required
from quizbank.common.request_utils import error_response, get_json_body
from quizbank.quiz import quiz_bp
from quizbank.quiz.attempts import (
    AttemptError,
    accept_instructions,
    attempt_state,
    build_result,
    check_expiry,
    clear_response,
    get_attempt_or_error,
    mark_for_review,
    navigate,
    palette_summary,
    save_response,
    start_attempt,
    submit_attempt,
)
from quizbank.quiz.builder import QuizBuilderError, get_quiz_or_error


def _attempt_error(e: AttemptError):
    db.session.rollback()
    return error_response(e.message, e.status)


def _db_error(e: SQLAlchemyError, attempt_id):
    db.session.rollback()
    current_app.logger.error(f"Database error on attempt {attempt_id}: {str(e)}")
    return error_response('Failed to update attempt', 500)


def _response_payload(attempt, response):
    return jsonify({
        'success': True,
        'response': response.to_status_dict(),
        'palette': palette_summary(attempt.responses),
        'current_question_id': attempt.current_question_id,
    }), 200


@quiz_bp.route('/<int:quiz_id>/attempts', methods=['POST'])
@api_login_required
def start_attempt_route(quiz_id):
    """Open an attempt on the instructions view, or resume the unfinished one."""
    try:
        quiz = get_quiz_or_error(quiz_id)
        attempt, resumed = start_attempt(quiz, current_user)
    except QuizBuilderError as e:
        return error_response(e.message, e.status)
    except AttemptError as e:
        return _attempt_error(e)
    except SQLAlchemyError as e:
        return _db_error(e, None)

    return jsonify({
        'success': True,
        'message': 'Resuming existing attempt' if resumed else 'Quiz attempt started',
        'attempt': attempt_state(attempt),
    }), (200 if resumed else 201)


@quiz_bp.route('/attempts/<int:attempt_id>', methods=['GET'])
@api_login_required
def get_attempt(attempt_id):
    try:
        attempt = get_attempt_or_error(attempt_id, current_user)
        return jsonify({'success': True, 'attempt': attempt_state(attempt)}), 200
    except AttemptError as e:
        return _attempt_error(e)


@quiz_bp.route('/attempts/<int:attempt_id>/accept', methods=['POST'])
@api_login_required
def accept_attempt_instructions(attempt_id):
    """Accept the instructions and start the timer. Body: {"accepted": true}"""
    if get_json_body().get('accepted') is not True:
        return error_response('Please accept the instructions to continue', 400)
    try:
        attempt = accept_instructions(get_attempt_or_error(attempt_id, current_user))
        return jsonify({'success': True, 'attempt': attempt_state(attempt)}), 200
    except AttemptError as e:
        return _attempt_error(e)
    except SQLAlchemyError as e:
        return _db_error(e, attempt_id)


@quiz_bp.route('/attempts/<int:attempt_id>/questions/<int:question_id>/visit', methods=['POST'])
@api_login_required
def visit_question(attempt_id, question_id):
    try:
        attempt = get_attempt_or_error(attempt_id, current_user)
        response = navigate(attempt, question_id)
        return _response_payload(attempt, response)
    except AttemptError as e:
        return _attempt_error(e)
    except SQLAlchemyError as e:
        return _db_error(e, attempt_id)


@quiz_bp.route('/attempts/<int:attempt_id>/questions/<int:question_id>/answer', methods=['PUT'])
@api_login_required
def answer_question(attempt_id, question_id):
    """Save an answer. Body: {"selected_answers": ["A"]} or {"selected_answers": ["9.8"]}"""
    try:
        attempt = get_attempt_or_error(attempt_id, current_user)
        response = save_response(attempt, question_id, get_json_body().get('selected_answers'))
        return _response_payload(attempt, response)
    except AttemptError as e:
        return _attempt_error(e)
    except SQLAlchemyError as e:
        return _db_error(e, attempt_id)


@quiz_bp.route('/attempts/<int:attempt_id>/questions/<int:question_id>/answer', methods=['DELETE'])
@api_login_required
def clear_answer(attempt_id, question_id):
    try:
        attempt = get_attempt_or_error(attempt_id, current_user)
        response = clear_response(attempt, question_id)
        return _response_payload(attempt, response)
    except AttemptError as e:
        return _attempt_error(e)
    except SQLAlchemyError as e:
        return _db_error(e, attempt_id)


@quiz_bp.route('/attempts/<int:attempt_id>/questions/<int:question_id>/review', methods=['PUT'])
@api_login_required
def review_question(attempt_id, question_id):
    """Mark or unmark a question for review. Body: {"marked": true}"""
    marked = get_json_body().get('marked', True)
    try:
        attempt = get_attempt_or_error(attempt_id, current_user)
        response = mark_for_review(attempt, question_id, bool(marked))
        return _response_payload(attempt, response)
    except AttemptError as e:
        return _attempt_error(e)
    except SQLAlchemyError as e:
        return _db_error(e, attempt_id)


@quiz_bp.route('/attempts/<int:attempt_id>/submit', methods=['POST'])
@api_login_required
def submit_attempt_route(attempt_id):
    try:
        attempt = get_attempt_or_error(attempt_id, current_user)
        submit_attempt(attempt)
        return jsonify({'success': True, 'message': 'Quiz submitted', 'result': build_result(attempt)}), 200
    except AttemptError as e:
        return _attempt_error(e)
    except SQLAlchemyError as e:
        return _db_error(e, attempt_id)


@quiz_bp.route('/attempts/<int:attempt_id>/result', methods=['GET'])
@api_login_required
def attempt_result(attempt_id):
    try:
        attempt = get_attempt_or_error(attempt_id, current_user)
        check_expiry(attempt)
        return jsonify({'success': True, 'result': build_result(attempt)}), 200
    except AttemptError as e:
        return _attempt_error(e)
