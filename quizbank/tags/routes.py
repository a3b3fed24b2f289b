"""
Tag system routes.

Educators can:
- Read the whole tag system
- Add exam types, subjects, chapters, topics and sources
- Rename or delete unused chapters and topics
- Bulk-add hierarchies from a CSV file
"""
from flask import Response, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from quizbank import db
from quizbank.common.decorators import educator_required
from quizbank.common.request_utils import error_response, get_json_body
from quizbank.tags import tags_bp
from quizbank.tags.service import (
    TagError,
    add_tag,
    delete_tag,
    get_tag_system,
    get_tag_usage,
    import_tags_csv,
    rename_tag,
    tag_template_csv,
)


@tags_bp.route('', methods=['GET'])
@educator_required
def get_tags():
    return jsonify({'success': True, 'tags': get_tag_system()}), 200


@tags_bp.route('/<category>', methods=['POST'])
@educator_required
def create_tag(category):
    """
    Add a tag value.

    Request body:
    {
        "value": "Mechanics",
        "parent": "Physics"  // subjects, chapters and topics only
    }
    """
    data = get_json_body()
    try:
        tag = add_tag(category, data.get('value') or '', data.get('parent'))
        return jsonify({
            'success': True,
            'message': 'Tag added successfully',
            'tag': tag.to_dict(),
            'tags': get_tag_system(),
        }), 201
    except TagError as e:
        db.session.rollback()
        return error_response(e.message, e.status)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error adding {category} tag: {str(e)}")
        return error_response('Failed to add tag', 500)


@tags_bp.route('/<category>', methods=['PUT'])
@educator_required
def update_tag(category):
    """
    Rename a chapter or topic.

    Request body: {"old_value": "...", "new_value": "...", "parent": "..."}
    """
    data = get_json_body()
    old_value = (data.get('old_value') or '').strip()
    if not old_value:
        return error_response('old_value is required', 400)
    try:
        tag = rename_tag(category, old_value, data.get('new_value') or '', data.get('parent'))
        return jsonify({'success': True, 'tag': tag.to_dict(), 'tags': get_tag_system()}), 200
    except TagError as e:
        db.session.rollback()
        return error_response(e.message, e.status)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error renaming {category} tag '{old_value}': {str(e)}")
        return error_response('Failed to update tag', 500)


@tags_bp.route('/<category>', methods=['DELETE'])
@educator_required
def remove_tag(category):
    """Delete a chapter (with its topics) or a topic. Body: {"value": "...", "parent": "..."}"""
    data = get_json_body()
    value = (data.get('value') or '').strip()
    if not value:
        return error_response('value is required', 400)
    try:
        delete_tag(category, value, data.get('parent'))
        return jsonify({'success': True, 'message': 'Tag deleted successfully', 'tags': get_tag_system()}), 200
    except TagError as e:
        db.session.rollback()
        return error_response(e.message, e.status)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting {category} tag '{value}': {str(e)}")
        return error_response('Failed to delete tag', 500)


@tags_bp.route('/<category>/usage', methods=['GET'])
@educator_required
def tag_usage(category):
    """
    Describe whether a tag value can be changed.

    Query params: value, operation (add/edit/delete), parent
    """
    value = (request.args.get('value') or '').strip()
    operation = request.args.get('operation', 'edit')
    if not value:
        return error_response('value is required', 400)
    if operation not in ('add', 'edit', 'delete'):
        return error_response('operation must be one of: add, edit, delete', 400)
    try:
        usage = get_tag_usage(category, value, operation, request.args.get('parent'))
    except TagError as e:
        return error_response(e.message, e.status)
    return jsonify({'success': True, 'usage': usage.to_dict()}), 200


@tags_bp.route('/import', methods=['POST'])
@educator_required
def import_tags():
    """Bulk-add tags from an uploaded CSV file (form field "file") or a raw text/csv body."""
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
        added = import_tags_csv(content)
    except TagError as e:
        db.session.rollback()
        return error_response(e.message, e.status)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Tag CSV import failed: {str(e)}")
        return error_response('Failed to import tags', 500)

    parts = [f"{count} {category.replace('_', ' ')}" for category, count in added.items() if count]
    message = f"Added {', '.join(parts)}" if parts else 'No new tags to add'
    return jsonify({'success': True, 'message': message, 'added': added, 'tags': get_tag_system()}), 200


@tags_bp.route('/template', methods=['GET'])
@educator_required
def download_template():
    return Response(
        tag_template_csv(),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=tag_template.csv'},
    )
