"""
Input validation and sanitization module.

Question text, options and tag names are stored verbatim (math markup such
as ``$x^2$`` must survive), so sanitization only normalises whitespace,
removes NUL bytes and reports suspicious patterns.
"""

import re
from typing import Any

from .security_logger import SecurityLogger


class InputValidator:
    """
    Input validator for authored content.
    """

    SQL_INJECTION_PATTERNS = [
        r'(\bUNION\s+SELECT\b)',
        r'(\b(OR|AND)\s+\d+\s*=\s*\d+)',
        r'(;\s*DROP\s+TABLE\b)',
        r'(\bEXEC(UTE)?\s+\w+)',
    ]

    XSS_PATTERNS = [
        r'<script[^>]*>.*?</script>',
        r'javascript:',
        r'<iframe[^>]*>',
        r'<object[^>]*>',
        r'<embed[^>]*>',
    ]

    @classmethod
    def detect_sql_injection(cls, value: str) -> bool:
        """
        Detect potential SQL injection attempts.

        Args:
            value: Input value to check

        Returns:
            True if suspicious pattern detected, False otherwise
        """
        if not value or not isinstance(value, str):
            return False
        return any(re.search(pattern, value, re.IGNORECASE) for pattern in cls.SQL_INJECTION_PATTERNS)

    @classmethod
    def detect_xss(cls, value: str) -> bool:
        if not value or not isinstance(value, str):
            return False
        return any(re.search(pattern, value, re.IGNORECASE | re.DOTALL) for pattern in cls.XSS_PATTERNS)


def sanitize_input(value: Any) -> str:
    """
    Sanitize a free-text field.

    Args:
        value: Input value to sanitize

    Returns:
        Sanitized string ('' for None)
    """
    if value is None:
        return ''

    if not isinstance(value, str):
        value = str(value)

    value = value.strip().replace('\x00', '')

    if InputValidator.detect_sql_injection(value):
        SecurityLogger.log_suspicious_input('SQL', value)

    if InputValidator.detect_xss(value):
        SecurityLogger.log_suspicious_input('XSS', value)

    return value
