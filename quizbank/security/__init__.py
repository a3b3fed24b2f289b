"""
Security module for the application.

This module provides:
- Rate limiting for authentication endpoints
- Input sanitization for authored content
- Security headers
- Security logging
"""

from .rate_limiter import RateLimiter, rate_limit
from .input_validator import InputValidator, sanitize_input
from .security_headers import SecurityHeaders
from .security_logger import SecurityLogger
from .security_init import init_security

__all__ = [
    'RateLimiter',
    'rate_limit',
    'InputValidator',
    'sanitize_input',
    'SecurityHeaders',
    'SecurityLogger',
    'init_security',
]
