"""
Security logging module.

Specialized logging for authentication and authorization events.
"""

from flask import request, current_app, has_request_context
from datetime import datetime
import json


class SecurityLogger:
    """
    Security event logger.

    Logs security-related events for monitoring and auditing.
    """

    @staticmethod
    def log_failed_login(email: str, reason: str = "Invalid credentials"):
        """
        Log a failed login attempt.

        Args:
            email: Email address used in login attempt
            reason: Reason for failure
        """
        current_app.logger.warning(
            f"SECURITY: Failed login attempt - Email: {email}, "
            f"IP: {request.remote_addr}, Reason: {reason}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_successful_login(user_id: int, email: str):
        current_app.logger.info(
            f"SECURITY: Successful login - User ID: {user_id}, "
            f"Email: {email}, IP: {request.remote_addr}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_rate_limit_exceeded(identifier: str, endpoint: str):
        current_app.logger.warning(
            f"SECURITY: Rate limit exceeded - Identifier: {identifier}, "
            f"Endpoint: {endpoint}, IP: {request.remote_addr}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_unauthorized_access(resource: str, user_id: int = None):
        """
        Log unauthorized access attempt.

        Args:
            resource: Resource that was accessed
            user_id: User ID if authenticated
        """
        user_info = f"User ID: {user_id}" if user_id else "Unauthenticated"
        current_app.logger.warning(
            f"SECURITY: Unauthorized access - {user_info}, "
            f"Resource: {resource}, IP: {request.remote_addr}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_suspicious_input(input_type: str, value: str):
        """
        Log authored content that matches an injection pattern.

        Args:
            input_type: Type of pattern matched (SQL, XSS)
            value: Suspicious input value (truncated)
        """
        current_app.logger.warning(
            f"SECURITY: Potential {input_type} injection - "
            f"IP: {request.remote_addr if has_request_context() else 'n/a'}, "
            f"Value: {json.dumps(value[:100])}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )
