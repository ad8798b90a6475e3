# callpilot/config.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    ENV: str = "dev"
    APP_NAME: str = "CallPilot AI"
    LOG_LEVEL: str = "INFO"

    # DB URL – SQLite local by default, also backs the call history store
    DATABASE_URL: str = "sqlite:///./callpilot.db"
    HISTORY_STORAGE_KEY: str = "callpilot-history"

    # Twilio config
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_CALLER_ID: Optional[str] = None  # our Twilio "from" number
    TWILIO_STATUS_CALLBACK_URL: Optional[str] = None

    # OpenAI integration (optional)
    # This will happily read OPENAI_API_KEY or openai_api_key from the env.
    openai_api_key: Optional[str] = None
    enable_openai: bool = False  # gate so tests never call OpenAI by accident
    openai_model: str = "gpt-4.1-mini"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

_settings: Optional[Settings] = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
