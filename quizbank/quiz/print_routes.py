"""
Print routes: the print layout as JSON and the same layout as a PDF.
"""
from flask import Response, current_app, jsonify, request

from quizbank.common.decorators import educator_required
from quizbank.common.request_utils import error_response
from quizbank.quiz import quiz_bp
from quizbank.quiz.builder import QuizBuilderError, get_quiz_or_error
from quizbank.quiz.printing import build_print_layout, render_pdf


def _layout_from_request(quiz_id: int) -> dict:
    """Query params: answer_key (true/false), batch, date"""
    quiz = get_quiz_or_error(quiz_id)
    return build_print_layout(
        quiz,
        include_answer_key=request.args.get('answer_key', '').lower() in ('1', 'true', 'yes'),
        batch=request.args.get('batch'),
        test_date=request.args.get('date'),
    )


@quiz_bp.route('/<int:quiz_id>/print', methods=['GET'])
@educator_required
def print_layout(quiz_id):
    try:
        layout = _layout_from_request(quiz_id)
    except QuizBuilderError as e:
        return error_response(e.message, e.status)
    return jsonify({'success': True, 'layout': layout}), 200


@quiz_bp.route('/<int:quiz_id>/pdf', methods=['GET'])
@educator_required
def export_pdf(quiz_id):
    try:
        layout = _layout_from_request(quiz_id)
    except QuizBuilderError as e:
        return error_response(e.message, e.status)

    pdf = render_pdf(layout)
    current_app.logger.info(f"Rendered PDF for quiz {quiz_id} ({len(pdf)} bytes)")
    filename = f"quiz_{quiz_id}.pdf"
    return Response(
        pdf,
        mimetype='application/pdf',
        headers={'Content-Disposition': f'inline; filename={filename}'},
    )
