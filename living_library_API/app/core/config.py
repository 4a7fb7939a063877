# config.py
# Description: Configuration settings for the Living Library server application.
#
# Imports
import os
from pathlib import Path
from typing import Any, Dict, List
#
# 3rd-party Libraries
from dotenv import load_dotenv
from loguru import logger
#
# Local Imports
#
########################################################################################################################
#
# Functions:

# --- Constants ---
API_V1_PREFIX = "/api/v1"
DEFAULT_JWT_SECRET = "a_very_insecure_default_secret_key_for_dev_only"

# Allowlist for signed uploads
ALLOWED_UPLOAD_TYPES: List[str] = [
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "audio/mpeg",
    "audio/wav",
    "audio/ogg",
    "audio/m4a",
    "video/mp4",
    "video/webm",
    "video/quicktime",
]
MAX_UPLOAD_FILE_SIZE = 100 * 1024 * 1024  # 100MB


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: '{raw}'. Using default {default}.")
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}: '{raw}'. Using default {default}.")
        return default


def load_settings() -> Dict[str, Any]:
    """Loads all settings from environment variables or defaults into a dictionary."""
    # A local .env file is optional; real environment variables win.
    load_dotenv(override=False)

    # --- General ---
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    allowed_origins_raw = os.getenv("ALLOWED_ORIGINS", "")
    allowed_origins = [o.strip() for o in allowed_origins_raw.split(",") if o.strip()]
    site_url = os.getenv("SITE_URL", "http://localhost:8000").rstrip("/")

    # --- Auth (JWT + login links) ---
    jwt_secret_key = os.getenv("JWT_SECRET_KEY", DEFAULT_JWT_SECRET)
    login_link_delivery = os.getenv("LOGIN_LINK_DELIVERY", "log").lower()

    # --- Storage ---
    library_db_path = Path(os.getenv("LIBRARY_DB_PATH", "./library_data/living_library.sqlite"))
    media_storage_dir = Path(os.getenv("MEDIA_STORAGE_DIR", "./library_data/media"))

    config_dict = {
        # General App
        "APP_NAME": os.getenv("APP_NAME", "Living Library API"),
        "LOG_LEVEL": log_level,
        "ALLOWED_ORIGINS": allowed_origins,
        "SITE_URL": site_url,

        # Database / Storage
        "LIBRARY_DB_PATH": library_db_path,
        "MEDIA_STORAGE_DIR": media_storage_dir,
        "MEDIA_BUCKET": os.getenv("MEDIA_BUCKET", "fragments"),
        "UPLOAD_URL_EXPIRE_SECONDS": _get_int("UPLOAD_URL_EXPIRE_SECONDS", 3600),
        "MAX_UPLOAD_BYTES": _get_int("MAX_UPLOAD_BYTES", MAX_UPLOAD_FILE_SIZE),

        # Auth
        "JWT_SECRET_KEY": jwt_secret_key,
        "JWT_ALGORITHM": os.getenv("JWT_ALGORITHM", "HS256"),
        "ACCESS_TOKEN_EXPIRE_MINUTES": _get_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24),
        "LOGIN_LINK_EXPIRE_MINUTES": _get_int("LOGIN_LINK_EXPIRE_MINUTES", 15),
        "LOGIN_LINK_DELIVERY": login_link_delivery,
        "LOGIN_LINK_WEBHOOK_URL": os.getenv("LOGIN_LINK_WEBHOOK_URL"),
        "LOGIN_RATE_LIMIT": os.getenv("LOGIN_RATE_LIMIT", "10/minute"),

        # AI providers
        "TRANSCRIBE_PROVIDER": os.getenv("TRANSCRIBE_PROVIDER", "local").lower(),
        "EMBEDDINGS_PROVIDER": os.getenv("EMBEDDINGS_PROVIDER", "local").lower(),
        "CLASSIFICATION_PROVIDER": os.getenv("CLASSIFICATION_PROVIDER", "rules").lower(),
        "OPENAI_API_KEY": os.getenv("OPENAI_API_KEY") or None,
        "OPENAI_BASE_URL": os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/"),
        "LOCAL_WHISPER_ENDPOINT": os.getenv("LOCAL_WHISPER_ENDPOINT", "http://localhost:8001"),
        "LOCAL_EMBEDDING_ENDPOINT": os.getenv("LOCAL_EMBEDDING_ENDPOINT", "http://localhost:8002"),
        "AI_REQUEST_TIMEOUT": _get_float("AI_REQUEST_TIMEOUT", 30.0),
    }

    # --- Warnings ---
    if config_dict["JWT_SECRET_KEY"] == DEFAULT_JWT_SECRET:
        logger.warning("!!! SECURITY WARNING: Using default JWT_SECRET_KEY. Set a strong JWT_SECRET_KEY environment variable! !!!")
    if login_link_delivery == "webhook" and not config_dict["LOGIN_LINK_WEBHOOK_URL"]:
        logger.warning("LOGIN_LINK_DELIVERY is 'webhook' but LOGIN_LINK_WEBHOOK_URL is not set. Login links cannot be delivered.")
    if login_link_delivery not in ("log", "webhook"):
        logger.warning(f"Unknown LOGIN_LINK_DELIVERY '{login_link_delivery}'. Falling back to 'log'.")
        config_dict["LOGIN_LINK_DELIVERY"] = "log"

    return config_dict


settings = load_settings()

#
# End of config.py
########################################################################################################################
