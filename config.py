"""
Configuration management for the Business Card Scanning API.

Handles environment variables, API keys, and pipeline settings.
"""

import os
import logging
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_timeout(name: str, default: str) -> Optional[float]:
    """Seconds; 0 or an empty value disables the timeout."""
    value = float(os.getenv(name, default) or 0)
    return value or None


class Config:
    """Application configuration class.

    Attributes:
        DEBUG: Enable debug mode
        TESTING: Enable testing mode
        SECRET_KEY: Flask secret key
        MAX_CONTENT_LENGTH: Maximum upload file size (16MB default)
        ALLOWED_EXTENSIONS: Allowed image file extensions
        CONFIDENCE_THRESHOLD: Default arbitration threshold in [0, 1]
    """

    # Flask Settings
    DEBUG: bool = _env_bool("CARDSCAN_DEBUG")
    TESTING: bool = _env_bool("CARDSCAN_TESTING")
    SECRET_KEY: str = os.getenv("CARDSCAN_SECRET_KEY", "dev-secret-key-change-in-production")

    # File Upload Settings
    MAX_CONTENT_LENGTH: int = int(os.getenv("CARDSCAN_MAX_CONTENT_LENGTH", str(16 * 1024 * 1024)))
    ALLOWED_EXTENSIONS: set = {"png", "jpg", "jpeg", "gif", "bmp", "webp", "tif", "tiff"}

    # OCR Settings
    OCR_LANGUAGES: list = os.getenv("CARDSCAN_OCR_LANGUAGES", "ch_tra,en").split(",")
    OCR_GPU: bool = _env_bool("CARDSCAN_OCR_GPU")
    OCR_MODEL_DIR: str = os.getenv("CARDSCAN_OCR_MODEL_DIR", "./models")
    OCR_WORKERS: int = int(os.getenv("CARDSCAN_OCR_WORKERS", "2"))

    # Gemini (AI text parsing)
    GOOGLE_API_KEY: Optional[str] = os.getenv("GOOGLE_API_KEY")
    GEMINI_MODEL: str = os.getenv("CARDSCAN_GEMINI_MODEL", "gemini-2.5-flash")
    USE_AI_PARSING: bool = _env_bool("CARDSCAN_USE_AI_PARSING", "True")
    AI_FALLBACK_TO_LOCAL: bool = _env_bool("CARDSCAN_AI_FALLBACK_TO_LOCAL")

    # Pipeline
    CONFIDENCE_THRESHOLD: float = float(os.getenv("CARDSCAN_CONFIDENCE_THRESHOLD", "0.7"))
    VALIDATE_IMAGE_FORMAT: bool = _env_bool("CARDSCAN_VALIDATE_IMAGE_FORMAT", "True")
    REJECT_ACTIVE_INJECTION: bool = _env_bool("CARDSCAN_REJECT_ACTIVE_INJECTION", "True")
    OCR_TIMEOUT: Optional[float] = _env_timeout("CARDSCAN_OCR_TIMEOUT", "60")
    AI_TIMEOUT: Optional[float] = _env_timeout("CARDSCAN_AI_TIMEOUT", "30")
    PERSIST_TIMEOUT: Optional[float] = _env_timeout("CARDSCAN_PERSIST_TIMEOUT", "10")
    ITEM_TIMEOUT: Optional[float] = _env_timeout("CARDSCAN_ITEM_TIMEOUT", "120")
    BATCH_CONCURRENCY: int = int(os.getenv("CARDSCAN_BATCH_CONCURRENCY", "3"))
    STORE_CAPACITY: Optional[int] = int(os.getenv("CARDSCAN_STORE_CAPACITY", "0")) or None
    OCR_CACHE_SIZE: int = int(os.getenv("CARDSCAN_OCR_CACHE_SIZE", "100"))
    OCR_CACHE_TTL: Optional[float] = _env_timeout("CARDSCAN_OCR_CACHE_TTL", "86400")

    # Logging
    LOG_LEVEL: str = os.getenv("CARDSCAN_LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def init_app(cls, app) -> None:
        """Initialize Flask app with configuration.

        Args:
            app: Flask application instance
        """
        app.config.from_object(cls)

        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL.upper()),
            format=cls.LOG_FORMAT
        )

        logger.info("Configuration initialized successfully")

    @classmethod
    def is_allowed_file(cls, filename: str) -> bool:
        """Check if file extension is allowed.

        Args:
            filename: Name of the file to check

        Returns:
            True if file extension is allowed, False otherwise
        """
        return "." in filename and \
            filename.rsplit(".", 1)[1].lower() in cls.ALLOWED_EXTENSIONS

    @classmethod
    def get_api_status(cls) -> dict:
        """Get status of configured API keys."""
        return {
            "gemini_api": cls.GOOGLE_API_KEY is not None,
            "ai_parsing_enabled": cls.USE_AI_PARSING,
        }


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    LOG_LEVEL = "INFO"


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    DEBUG = True
    LOG_LEVEL = "DEBUG"
    USE_AI_PARSING = False


# Configuration mapping
config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig
}


def get_config(config_name: Optional[str] = None) -> Config:
    """Get configuration class by name.

    Args:
        config_name: Configuration name (development, production, testing)

    Returns:
        Configuration class
    """
    if config_name is None:
        config_name = os.getenv("CARDSCAN_ENV", "development")
    return config_by_name.get(config_name, DevelopmentConfig)
