"""
config.py
---------
Loads environment variables for the assistant and strips inline comments.
"""

import os
from dotenv import load_dotenv
import logging

logger = logging.getLogger(__name__)


def _clean(name, default=""):
    value = os.getenv(name)
    if value is None:
        return default
    return value.split('#')[0].strip()


def load_clean_config():
    """
    Load environment variables from .env file and clean up any comments.
    Returns a clean configuration dictionary.
    """
    load_dotenv()

    config = {}

    # Database connection parameters (any ODBC data source, Postgres in production)
    config["DB_CONNECTION_STRING"] = _clean("DB_CONNECTION_STRING")
    config["DB_DRIVER"] = _clean("DB_DRIVER", "{PostgreSQL Unicode}")
    config["DB_SERVER"] = _clean("DB_SERVER", "localhost")
    config["DB_PORT"] = _clean("DB_PORT", "5432")
    config["DB_NAME"] = _clean("DB_NAME", "healthcare")
    config["DB_USER"] = _clean("DB_USER")
    config["DB_PASSWORD"] = os.getenv("DB_PASSWORD", "")

    # LLM and translation providers
    config["OPENAI_API_KEY"] = os.getenv("OPENAI_API_KEY")
    config["OPENAI_MODEL"] = _clean("OPENAI_MODEL", "gpt-4o-mini")
    config["SARVAM_API_KEY"] = os.getenv("SARVAM_API_KEY")
    config["SARVAM_API_URL"] = _clean("SARVAM_API_URL", "https://api.sarvam.ai/translate")

    # Google Calendar and OAuth
    config["GOOGLE_CLIENT_ID"] = _clean("GOOGLE_CLIENT_ID")
    config["GOOGLE_CLIENT_SECRET"] = os.getenv("GOOGLE_CLIENT_SECRET", "")
    config["GOOGLE_REDIRECT_URI"] = _clean("GOOGLE_REDIRECT_URI", "http://localhost:5050/auth/callback")
    config["GOOGLE_APPLICATION_CREDENTIALS"] = _clean("GOOGLE_APPLICATION_CREDENTIALS")
    config["GOOGLE_TOKEN_FILE"] = _clean("GOOGLE_TOKEN_FILE", "token.json")
    config["CALENDAR_ID"] = _clean("CALENDAR_ID", "primary")
    config["CALENDAR_TIMEZONE"] = _clean("CALENDAR_TIMEZONE", "Asia/Kolkata")

    # Twilio webhook validation
    config["TWILIO_AUTH_TOKEN"] = os.getenv("TWILIO_AUTH_TOKEN")
    config["TWILIO_VALIDATE_REQUESTS"] = _clean("TWILIO_VALIDATE_REQUESTS", "false").lower() in ("1", "true", "yes")

    # Conversation behaviour
    config["PRIORITY_STRATEGY"] = _clean("PRIORITY_STRATEGY", "rules").lower()
    config["SESSION_TTL_SECONDS"] = int(_clean("SESSION_TTL_SECONDS", "3600"))
    config["SESSION_SWEEP_INTERVAL"] = int(_clean("SESSION_SWEEP_INTERVAL", "1800"))
    config["PORT"] = int(_clean("PORT", "5050"))

    # Log configuration (without sensitive values)
    logger.info("Loaded configuration:")
    logger.info(f"Database Driver: {config['DB_DRIVER']}")
    logger.info(f"Database Server: {config['DB_SERVER']}:{config['DB_PORT']}")
    logger.info(f"Database Name: {config['DB_NAME']}")
    logger.info(f"OpenAI Model: {config['OPENAI_MODEL']}")
    logger.info(f"Calendar: {config['CALENDAR_ID']} ({config['CALENDAR_TIMEZONE']})")
    logger.info(f"Priority Strategy: {config['PRIORITY_STRATEGY']}")
    logger.info(f"Port: {config['PORT']}")

    return config
