from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Outreach"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 5000
    log_level: str = "INFO"
    secret_key: str = "change-me"
    session_ttl_min: int = 1440
    cors_origins: str = "http://127.0.0.1:5000"

    database_url: str = "sqlite:///./data/outreach.db"
    data_dir: Path = Path("./data")
    upload_dir: Path = Path("./data/uploads")
    resume_dir: Path = Path("./data/resumes")
    max_upload_bytes: int = 10 * 1024 * 1024

    llm_provider: str = "gemini"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-2.0-flash"
    gemini_timeout_sec: int = 60
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_timeout_sec: int = 60

    apollo_base_url: str = "https://api.apollo.io/v1"
    apollo_timeout_sec: int = 30
    apollo_per_page: int = 5

    google_client_id: str = ""
    google_client_secret: str = ""
    google_token_uri: str = "https://oauth2.googleapis.com/token"

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_timeout_sec: int = 30
    send_delay_sec: float = 10.0

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, value: str) -> str:
        allowed = {"gemini", "openai"}
        if value not in allowed:
            raise ValueError(f"llm_provider must be one of {sorted(allowed)}")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def session_cookie_secure(self) -> bool:
        return self.app_env == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
