from functools import wraps
from flask import jsonify, request
from flask_login import current_user

from quizbank.security import SecurityLogger


def api_login_required(f):
    """Decorator to require login for an API route."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def educator_required(f):
    """Decorator to require the educator role for an API route."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        if getattr(current_user, 'user_type', None) != 'educator':
            SecurityLogger.log_unauthorized_access(request.path, current_user.id)
            return jsonify({'success': False, 'error': 'Unauthorized'}), 403
        return f(*args, **kwargs)
    return decorated_function
