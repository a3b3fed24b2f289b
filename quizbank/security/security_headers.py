"""
Security headers module.

Adds security headers to every API response.
"""


class SecurityHeaders:
    """
    Security headers middleware.

    The API only serves JSON, CSV and PDF payloads, so the content
    security policy denies everything except same-origin fetches.
    """

    @staticmethod
    def init_app(app):
        """
        Initialize security headers for the Flask app.

        Args:
            app: Flask application instance
        """
        @app.after_request
        def add_security_headers(response):
            response.headers['Content-Security-Policy'] = (
                "default-src 'none'; "
                "connect-src 'self'; "
                "frame-ancestors 'none'; "
                "base-uri 'none'; "
                "form-action 'self';"
            )
            response.headers['X-Content-Type-Options'] = 'nosniff'
            # PDF exports may be embedded by the same origin's print preview
            if response.mimetype == 'application/pdf':
                response.headers['X-Frame-Options'] = 'SAMEORIGIN'
            else:
                response.headers['X-Frame-Options'] = 'DENY'
            response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
            response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'

            # Attempt state and answer keys must never be cached by intermediaries
            if 'Cache-Control' not in response.headers:
                response.headers['Cache-Control'] = 'no-store'

            if app.config.get('SESSION_COOKIE_SECURE'):
                response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

            return response
