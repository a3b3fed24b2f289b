"""
Helpers shared by the JSON routes.
"""
from flask import jsonify, request

from quizbank.config import config


def get_json_body() -> dict:
    """Return the JSON object body of the request, or {} when absent or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_int(value, default: int | None = None) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def get_pagination_args() -> tuple[int, int]:
    """Read page/per_page query args, clamped to the configured page size limits."""
    page = max(parse_int(request.args.get('page'), 1), 1)
    per_page = parse_int(request.args.get('per_page'), config.DEFAULT_PAGE_SIZE)
    per_page = min(max(per_page, 1), config.MAX_PAGE_SIZE)
    return page, per_page


def error_response(message, status: int, **extra):
    """Build the JSON error envelope used by every blueprint."""
    body = {'success': False, 'error': message}
    body.update(extra)
    return jsonify(body), status
