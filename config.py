"""
Configuration management for the Business Card Extraction API.

Handles environment variables, API keys, and application settings.
"""

import os
import logging
from typing import Optional
from dotenv import load_dotenv

from card_ocr.settings import PipelineConfig

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """Application configuration class.

    Attributes:
        DEBUG: Enable debug mode
        TESTING: Enable testing mode
        SECRET_KEY: Flask secret key
        MAX_CONTENT_LENGTH: Maximum upload file size (16MB default)
        ALLOWED_EXTENSIONS: Allowed image file extensions
        GOOGLE_API_KEY: Gemini credential; absent means local-only recognition
        FORCE_OFFLINE: Never use the cloud backend
        QUOTA_CEILING: Cloud requests allowed per quota period
    """

    # Flask Settings
    DEBUG: bool = _env_bool("CARD_API_DEBUG")
    TESTING: bool = _env_bool("CARD_API_TESTING")
    SECRET_KEY: str = os.getenv("CARD_API_SECRET_KEY", "dev-secret-key-change-in-production")

    # File Upload Settings
    MAX_CONTENT_LENGTH: int = 16 * 1024 * 1024  # 16MB max file size
    ALLOWED_EXTENSIONS: set = {"png", "jpg", "jpeg", "gif", "bmp", "webp"}

    # Local OCR Settings
    OCR_LANGUAGES: list = ["en"]  # EasyOCR language codes
    OCR_GPU: bool = _env_bool("CARD_API_OCR_GPU")
    LOCAL_TIMEOUT: float = float(os.getenv("CARD_API_LOCAL_TIMEOUT", "30"))

    # Cloud OCR Settings
    GOOGLE_API_KEY: Optional[str] = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL: str = os.getenv("CARD_API_GEMINI_MODEL", "gemini-2.5-flash")
    CLOUD_TIMEOUT: float = float(os.getenv("CARD_API_CLOUD_TIMEOUT", "60"))
    QUOTA_CEILING: int = int(os.getenv("CARD_API_QUOTA_CEILING", "1000"))
    QUOTA_PERIOD_DAYS: int = int(os.getenv("CARD_API_QUOTA_PERIOD_DAYS", "30"))

    # Strategy
    FORCE_OFFLINE: bool = _env_bool("CARD_API_FORCE_OFFLINE")
    NETWORK_PROBE_URL: str = os.getenv("CARD_API_NETWORK_PROBE_URL", "https://www.google.com/favicon.ico")
    NETWORK_PROBE_TIMEOUT: float = float(os.getenv("CARD_API_NETWORK_PROBE_TIMEOUT", "10"))
    ENABLE_ANALYTICS: bool = _env_bool("CARD_API_ENABLE_ANALYTICS", "True")

    # Confidence floors enforced by the arbiter
    NAME_CONFIDENCE_FLOOR: float = float(os.getenv("CARD_API_NAME_FLOOR", "50"))
    TITLE_CONFIDENCE_FLOOR: float = float(os.getenv("CARD_API_TITLE_FLOOR", "60"))
    COMPANY_CONFIDENCE_FLOOR: float = float(os.getenv("CARD_API_COMPANY_FLOOR", "50"))

    # Logging
    LOG_LEVEL: str = os.getenv("CARD_API_LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def init_app(cls, app) -> None:
        """Initialize Flask app with configuration.

        Args:
            app: Flask application instance
        """
        app.config.from_object(cls)
        app.config["CONFIG_CLASS"] = cls

        # Configure logging
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
    def pipeline_config(cls) -> PipelineConfig:
        """Build the pipeline settings from this configuration.

        Returns:
            PipelineConfig instance
        """
        return PipelineConfig(
            cloud_api_key=cls.GOOGLE_API_KEY,
            quota_ceiling=cls.QUOTA_CEILING,
            quota_period_days=cls.QUOTA_PERIOD_DAYS,
            force_offline=cls.FORCE_OFFLINE,
            network_probe_url=cls.NETWORK_PROBE_URL,
            network_probe_timeout=cls.NETWORK_PROBE_TIMEOUT,
            local_timeout=cls.LOCAL_TIMEOUT,
            cloud_timeout=cls.CLOUD_TIMEOUT,
            confidence_floors={
                "name": cls.NAME_CONFIDENCE_FLOOR,
                "title": cls.TITLE_CONFIDENCE_FLOOR,
                "company": cls.COMPANY_CONFIDENCE_FLOOR,
            },
            enable_analytics=cls.ENABLE_ANALYTICS,
            gemini_model=cls.GEMINI_MODEL,
            ocr_languages=list(cls.OCR_LANGUAGES),
            ocr_gpu=cls.OCR_GPU,
        )

    @classmethod
    def get_api_status(cls) -> dict:
        """Get status of configured API keys.

        Returns:
            Dictionary with API availability status
        """
        return {
            "gemini_api": cls.GOOGLE_API_KEY is not None,
            "force_offline": cls.FORCE_OFFLINE
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
    FORCE_OFFLINE = True
    GOOGLE_API_KEY = None


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
        config_name = os.getenv("CARD_API_ENV", "development")
    return config_by_name.get(config_name, DevelopmentConfig)
