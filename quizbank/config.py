"""
Configuration module for the application.
All configuration values are read from environment variables.
Values that have no sensible default must be set in the .env file.
"""
import os
import secrets
import warnings


def _env_bool(name: str, default: str = "") -> bool:
    value = os.getenv(name, default)
    return value.lower() == "true" if value else False


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "")
    return int(value) if value else default


def _env_list(name: str, default: str = "") -> list[str]:
    value = os.getenv(name, default)
    return [item.strip() for item in value.split(",") if item.strip()] if value else []


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        # Flask Configuration
        self.SECRET_KEY: str = os.getenv("SECRET_KEY", "")
        self.FLASK_ENV: str = os.getenv("FLASK_ENV", "")
        self.FLASK_DEBUG: bool = _env_bool("FLASK_DEBUG")

        # Generate a development SECRET_KEY if not set and in development mode
        if not self.SECRET_KEY and self.FLASK_ENV != "production":
            self.SECRET_KEY = secrets.token_urlsafe(32)
            warnings.warn(
                "SECRET_KEY not set. Generated a temporary key for development. "
                "Set SECRET_KEY in your .env file for production!",
                UserWarning
            )

        # Database Configuration
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "")
        self.DB_USER: str = os.getenv("DB_USER", "")
        self.DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
        self.DB_HOST: str = os.getenv("DB_HOST", "")
        self.DB_PORT: str = os.getenv("DB_PORT", "3306")
        self.DB_NAME: str = os.getenv("DB_NAME", "quizbank")
        self.SQLITE_PATH: str = os.getenv("SQLITE_PATH", "quizbank.db")

        # API Configuration
        self.API_PREFIX: str = os.getenv("API_PREFIX", "/api")
        self.AUTH_API_PREFIX: str = os.getenv("AUTH_API_PREFIX", "/api/auth")
        self.TAGS_API_PREFIX: str = os.getenv("TAGS_API_PREFIX", "/api/tags")
        self.QUESTIONS_API_PREFIX: str = os.getenv("QUESTIONS_API_PREFIX", "/api/questions")
        self.QUIZ_API_PREFIX: str = os.getenv("QUIZ_API_PREFIX", "/api/quizzes")

        # User Type Validation
        self.VALID_USER_TYPES: list[str] = _env_list("VALID_USER_TYPES", "educator,student")
        self.DEFAULT_USER_TYPE: str = os.getenv("DEFAULT_USER_TYPE", "student")

        # Password Validation
        self.MIN_PASSWORD_LENGTH: int = _env_int("MIN_PASSWORD_LENGTH", 8)

        # Login throttling
        self.LOGIN_RATE_LIMIT: int = _env_int("LOGIN_RATE_LIMIT", 10)
        self.LOGIN_RATE_WINDOW_SECONDS: int = _env_int("LOGIN_RATE_WINDOW_SECONDS", 60)

        # Session Configuration
        self.SESSION_COOKIE_SECURE: bool = _env_bool("SESSION_COOKIE_SECURE")
        self.SESSION_COOKIE_HTTPONLY: bool = _env_bool("SESSION_COOKIE_HTTPONLY", "true")
        self.SESSION_COOKIE_SAMESITE: str = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")

        # SQLAlchemy Configuration
        self.SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
        self.SQLALCHEMY_ECHO: bool = _env_bool("SQLALCHEMY_ECHO")

        # Logging
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Question bank listing
        self.DEFAULT_PAGE_SIZE: int = _env_int("DEFAULT_PAGE_SIZE", 10)
        self.MAX_PAGE_SIZE: int = _env_int("MAX_PAGE_SIZE", 100)

        # Grading
        self.NUMERIC_ANSWER_TOLERANCE: float = float(os.getenv("NUMERIC_ANSWER_TOLERANCE", "0.01"))

        # Print header
        self.INSTITUTE_NAME: str = os.getenv("INSTITUTE_NAME", "")
        self.INSTITUTE_TAGLINE: str = os.getenv("INSTITUTE_TAGLINE", "")

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Construct database URI from environment variables."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if self.DB_HOST:
            return (
                f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4"
            )
        return f"sqlite:///{self.SQLITE_PATH}"

    def validate(self) -> None:
        """
        Validate required configuration values.
        Only enforces SECRET_KEY in production environment.
        """
        if not self.SECRET_KEY:
            if self.FLASK_ENV == "production":
                raise ValueError(
                    "SECRET_KEY environment variable is required in production. "
                    "Set it in your .env file or environment variables."
                )
        if self.DEFAULT_USER_TYPE not in self.VALID_USER_TYPES:
            raise ValueError(
                f"DEFAULT_USER_TYPE '{self.DEFAULT_USER_TYPE}' is not one of "
                f"VALID_USER_TYPES ({', '.join(self.VALID_USER_TYPES)})"
            )
        if self.DEFAULT_PAGE_SIZE < 1 or self.MAX_PAGE_SIZE < self.DEFAULT_PAGE_SIZE:
            raise ValueError("DEFAULT_PAGE_SIZE must be >= 1 and <= MAX_PAGE_SIZE")


# Global config instance - will be re-initialized after load_dotenv()
config = Config()
