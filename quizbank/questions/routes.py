"""
Question bank routes.

Educators can:
- Create, update and delete tagged questions
- Browse the bank with tag filters, search and pagination
- Export the filtered bank as JSON or CSV and import questions from CSV
"""
from flask import Response, current_app, jsonify, request
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from quizbank import db
from quizbank.common.decorators import educator_required
from quizbank.common.request_utils import error_response, get_json_body, get_pagination_args
from quizbank.questions import questions_bp
from quizbank.questions.models import TAG_FIELDS, Question
from quizbank.questions.service import (
    QuestionValidationError,
    create_question,
    delete_question,
    export_questions_csv,
    export_questions_json,
    filter_questions_query,
    get_usage_map,
    import_questions_csv,
    update_question,
)


def _filters_from_args() -> dict:
    return {field: request.args.get(field) for field in TAG_FIELDS if request.args.get(field)}


@questions_bp.route('', methods=['GET'])
@educator_required
def list_questions():
    """
    List questions.

    Query params: any tag field (exact match), search, page, per_page
    """
    page, per_page = get_pagination_args()
    query = filter_questions_query(_filters_from_args(), request.args.get('search'))
    pagination = db.paginate(query, page=page, per_page=per_page, error_out=False)

    usage = get_usage_map([question.id for question in pagination.items])
    questions_data = []
    for question in pagination.items:
        data = question.to_dict()
        data['used_in_quizzes'] = usage.get(question.id, [])
        questions_data.append(data)

    return jsonify({
        'success': True,
        'questions': questions_data,
        'pagination': {
            'page': pagination.page,
            'per_page': pagination.per_page,
            'total': pagination.total,
            'pages': pagination.pages,
        }
    }), 200


@questions_bp.route('', methods=['POST'])
@educator_required
def create_question_route():
    """
    Create a question.

    Request body:
    {
        "question_text": "...",
        "option_a": "...", "option_b": "...", "option_c": "...", "option_d": "...",
        "correct_answers": ["B"],
        "explanation": "...",
        "tags": {"exam_type": "JEE", "subject": "Physics", "chapter": "Mechanics",
                 "topic": "Newton's Laws", "difficulty_level": "Easy",
                 "question_type": "MCQ", "source": "NCERT"}
    }
    """
    try:
        question = create_question(get_json_body(), current_user.id)
        return jsonify({
            'success': True,
            'message': 'Question created successfully',
            'question': question.to_dict(include_usage=True),
        }), 201
    except QuestionValidationError as e:
        db.session.rollback()
        return error_response(e.errors[0] if len(e.errors) == 1 else 'Invalid question', e.status, errors=e.errors)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating question: {str(e)}")
        return error_response('Failed to create question', 500)


@questions_bp.route('/<int:question_id>', methods=['GET'])
@educator_required
def get_question(question_id):
    question = db.session.get(Question, question_id)
    if not question:
        return error_response('Question not found', 404)
    return jsonify({'success': True, 'question': question.to_dict(include_usage=True)}), 200


@questions_bp.route('/<int:question_id>', methods=['PUT'])
@educator_required
def update_question_route(question_id):
    question = db.session.get(Question, question_id)
    if not question:
        return error_response('Question not found', 404)
    try:
        update_question(question, get_json_body())
        return jsonify({
            'success': True,
            'message': 'Question updated successfully',
            'question': question.to_dict(include_usage=True),
        }), 200
    except QuestionValidationError as e:
        db.session.rollback()
        return error_response(e.errors[0] if len(e.errors) == 1 else 'Invalid question', e.status, errors=e.errors)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating question {question_id}: {str(e)}")
        return error_response('Failed to update question', 500)


@questions_bp.route('/<int:question_id>', methods=['DELETE'])
@educator_required
def delete_question_route(question_id):
    question = db.session.get(Question, question_id)
    if not question:
        return error_response('Question not found', 404)
    try:
        delete_question(question)
        return jsonify({'success': True, 'message': 'Question deleted successfully'}), 200
    except QuestionValidationError as e:
        db.session.rollback()
        return error_response(e.errors[0], e.status)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting question {question_id}: {str(e)}")
        return error_response('Failed to delete question', 500)


@questions_bp.route('/export', methods=['GET'])
@educator_required
def export_questions():
    """Export the filtered bank. Query params: format (json or csv), tag fields, search"""
    export_format = (request.args.get('format') or 'json').lower()
    if export_format not in ('json', 'csv'):
        return error_response('format must be json or csv', 400)

    questions = filter_questions_query(_filters_from_args(), request.args.get('search')).all()
    current_app.logger.info(f"Exporting {len(questions)} questions as {export_format}")
    if export_format == 'csv':
        return Response(
            export_questions_csv(questions),
            mimetype='text/csv',
            headers={'Content-Disposition': 'attachment; filename=questions.csv'},
        )
    return Response(
        export_questions_json(questions),
        mimetype='application/json',
        headers={'Content-Disposition': 'attachment; filename=questions.json'},
    )


@questions_bp.route('/import', methods=['POST'])
@educator_required
def import_questions():
    """Import questions from an uploaded CSV file (form field "file") or a raw text/csv body."""
    upload = request.files.get('file')
    if upload is not None:
        if not upload.filename.lower().endswith('.csv'):
            return error_response('Please upload a CSV file', 400)
        content = upload.read().decode('utf-8-sig', errors='replace')
    else:
        content = request.get_data(as_text=True)
    if not content.strip():
        return error_response('CSV file is empty', 400)

    try:
        result = import_questions_csv(content, current_user.id)
    except QuestionValidationError as e:
        db.session.rollback()
        return error_response(e.errors[0], e.status)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Question CSV import failed: {str(e)}")
        return error_response('Failed to import questions', 500)

    return jsonify({
        'success': True,
        'message': f"Imported {result['imported']} question{'s' if result['imported'] != 1 else ''}",
        'imported': result['imported'],
        'errors': result['errors'],
    }), 200
