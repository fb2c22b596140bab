import os
import secrets
from functools import lru_cache

HF_SUMMARIZER_URL = "https://api-inference.huggingface.co/models/facebook/bart-large-cnn"


class Settings:
    """
    Runtime configuration pulled from environment variables.

    Values are read once, when the settings object is first requested.
    """

    def __init__(self):
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./smart_notes.db")
        # A random secret invalidates tokens on restart; set SECRET_KEY outside dev
        self.secret_key = os.getenv("SECRET_KEY") or secrets.token_urlsafe(32)
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "43200"))
        self.frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:5173")
        self.public_base_url = os.getenv("PUBLIC_BASE_URL", self.frontend_origin)
        self.summarizer_api_key = os.getenv("SUMMARIZER_API_KEY", "")
        self.summarizer_api_url = os.getenv("SUMMARIZER_API_URL", HF_SUMMARIZER_URL)
        self.summarizer_timeout = float(os.getenv("SUMMARIZER_TIMEOUT_SECONDS", "30"))
        self.api_prefix = os.getenv("API_PREFIX", "/api")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.service_name = os.getenv("SERVICE_NAME", "smart-notes-api")
        self.environment = os.getenv("ENV", "dev")


# PUBLIC_INTERFACE
@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
