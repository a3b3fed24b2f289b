from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from dotenv import load_dotenv
from flask_migrate import Migrate
from flask_compress import Compress
import logging

# Load environment variables early so config is available for blueprint creation
load_dotenv()

from quizbank.config import config

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
compress = Compress()


def _is_api_path(path: str) -> bool:
    return path.startswith(config.API_PREFIX + "/") or path == config.API_PREFIX


def create_app(overrides: dict | None = None) -> Flask:
    """
    Application factory for the Flask app.
    Loads environment variables, configures the database,
    and registers blueprints.

    Args:
        overrides: Optional Flask config values applied last (used by tests)
    """
    # Re-initialize config to ensure latest .env values are loaded
    from quizbank.config import Config
    global config
    config = Config()

    # Validate configuration
    config.validate()

    app = Flask(__name__)

    # Load configuration from config module
    app.config["SECRET_KEY"] = config.SECRET_KEY
    app.config["SQLALCHEMY_DATABASE_URI"] = config.SQLALCHEMY_DATABASE_URI
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = config.SQLALCHEMY_TRACK_MODIFICATIONS
    app.config["SQLALCHEMY_ECHO"] = config.SQLALCHEMY_ECHO
    app.config["SESSION_COOKIE_SECURE"] = config.SESSION_COOKIE_SECURE
    app.config["SESSION_COOKIE_HTTPONLY"] = config.SESSION_COOKIE_HTTPONLY
    app.config["SESSION_COOKIE_SAMESITE"] = config.SESSION_COOKIE_SAMESITE
    app.json.sort_keys = False
    app.config["RATELIMIT_ENABLED"] = True

    # Response compression settings
    app.config["COMPRESS_MIMETYPES"] = [
        'application/json', 'text/csv', 'application/pdf',
    ]
    app.config["COMPRESS_LEVEL"] = 6
    app.config["COMPRESS_MIN_SIZE"] = 500

    if overrides:
        app.config.update(overrides)

    # Pooling options only apply to server databases
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("mysql"):
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {
            "pool_size": 10,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
            "max_overflow": 20,
            "connect_args": {
                "connect_timeout": 5,
                "charset": "utf8mb4",
            }
        })

    app.logger.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    compress.init_app(app)

    # Initialize security features
    from quizbank.security import init_security
    init_security(app)

    @login_manager.user_loader
    def load_user(user_id):
        from quizbank.auth.models import User
        try:
            return db.session.get(User, int(user_id))
        except (ValueError, TypeError):
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Authentication required'}), 401

    @app.route("/")
    def index():
        return jsonify({
            'status': 'ok',
            'service': 'quizbank',
            'api': {
                'auth': config.AUTH_API_PREFIX,
                'tags': config.TAGS_API_PREFIX,
                'questions': config.QUESTIONS_API_PREFIX,
                'quizzes': config.QUIZ_API_PREFIX,
            }
        }), 200

    # Register blueprints
    from quizbank.auth import auth_bp
    app.register_blueprint(auth_bp)

    from quizbank.tags import tags_bp
    app.register_blueprint(tags_bp)

    from quizbank.questions import questions_bp
    app.register_blueprint(questions_bp)

    from quizbank.quiz import quiz_bp
    app.register_blueprint(quiz_bp)

    # Custom error handlers for API routes to return JSON instead of HTML
    @app.errorhandler(404)
    def handle_404(e):
        """Handle 404 errors - return JSON for API routes."""
        path = request.path
        method = request.method
        app.logger.warning(f"404 error: {method} {path}")
        if _is_api_path(path):
            return jsonify({
                'success': False,
                'error': f'Route not found: {method} {path}',
                'path': path,
                'method': method
            }), 404
        return f"Page not found: {path}", 404

    @app.errorhandler(405)
    def handle_405(e):
        """Handle 405 Method Not Allowed - return JSON for API routes."""
        path = request.path
        method = request.method
        app.logger.warning(f"405 error: {method} {path}")
        if _is_api_path(path):
            return jsonify({
                'success': False,
                'error': f'Method not allowed: {method} {path}',
                'path': path,
                'method': method
            }), 405
        return e

    @app.errorhandler(500)
    def handle_500(e):
        app.logger.error(f"500 error: {request.method} {request.path}: {e}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    # Create tables if they do not exist
    with app.app_context():
        from quizbank.auth import models as auth_models  # noqa: F401
        from quizbank.tags import models as tag_models  # noqa: F401
        from quizbank.questions import models as question_models  # noqa: F401
        from quizbank.quiz import models as quiz_models  # noqa: F401
        db.create_all()

    app.logger.info(f"QuizBank started with database {app.config['SQLALCHEMY_DATABASE_URI'].split('://')[0]}")
    return app
