"""Configuration for the relay.

Uses Pydantic Settings, read from the environment and an optional .env file.
"""

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PERSONA = """
Bạn là một cô gái dịu dàng, thanh lịch,
Sử dụng từ ngữ tinh tế, trả lời không quá dài nhưng đủ để cuộc trò chuyện không bị mất cảm giác.
""".strip()

STATIC_DIR = Path(__file__).parent / "static"


class Settings(BaseSettings):
    """Runtime settings, read once at startup and handed to create_app()."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_ignore_empty=True,
        populate_by_name=True,
        extra="ignore",
    )

    # Gemini; VITE_GEMINI_API_KEY is accepted when GEMINI_API_KEY is not set
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "VITE_GEMINI_API_KEY"),
    )
    gemini_model: str = "gemini-2.5-flash"
    persona_mode: Literal["contents", "system_instruction"] = Field(
        default="contents",
        validation_alias=AliasChoices("GEMINI_PERSONA_MODE", "persona_mode"),
    )
    persona: str = Field(
        default=DEFAULT_PERSONA,
        validation_alias=AliasChoices("CHAT_PERSONA", "persona"),
    )

    # Text-to-speech
    tts_provider: Literal["fpt", "murf"] = "fpt"
    fpt_api_key: Optional[str] = None
    murf_api_key: Optional[str] = None
    fpt_poll_attempts: int = 10
    fpt_poll_interval: float = 1.0

    # Service
    http_timeout: float = 30.0
    allowed_origins: str = "*"
    static_dir: str = str(STATIC_DIR)
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @field_validator("gemini_api_key", "fpt_api_key", "murf_api_key", mode="before")
    @classmethod
    def empty_key_is_missing(cls, value):
        return value or None

    @field_validator("persona", mode="before")
    @classmethod
    def empty_persona_is_default(cls, value):
        return value or DEFAULT_PERSONA

    @field_validator("persona_mode", "tts_provider", mode="before")
    @classmethod
    def lowercase_choice(cls, value):
        return value.lower() if isinstance(value, str) else value

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse allowed origins as list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
