from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field, field_validator
from typing import Optional, Literal
from loguru import logger
import sys

from leadscout.services.leadgen.models import PlanTier


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Application environment"
    )

    # Gemini configuration
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "api_key"),
        description="Gemini API key (GEMINI_API_KEY, or API_KEY)",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash", min_length=1, description="Gemini model id"
    )

    # Acquisition loop tuning
    leadgen_batch_size: int = Field(
        default=20,
        ge=1,
        le=20,
        description="Maximum leads requested in a single provider turn",
    )
    leadgen_backoff_seconds: float = Field(
        default=0.8,
        ge=0,
        le=30,
        description="Pause before every turn after the first (upstream rate limiting)",
    )
    default_plan: PlanTier = Field(
        default=PlanTier.FREE, description="Plan applied when a request names none"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: str = Field(
        default="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} - {message}",
        description="Log format string",
    )
    log_rotation: str = Field(default="100 MB", description="Log file rotation size")
    log_retention: str = Field(default="10 days", description="Log retention period")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_json: bool = Field(default=False, description="Emit JSON logs to stdout")

    app_name: str = Field(default="LeadScout", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    cors_origins: list[str] = Field(default=["*"], description="CORS allowed origins")

    @field_validator("gemini_api_key")
    @classmethod
    def blank_key_is_missing(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @property
    def has_gemini_key(self) -> bool:
        return bool(self.gemini_api_key)

    def configure_logging(self) -> None:
        """Configure loguru based on settings"""
        logger.remove()

        if self.log_json:
            from leadscout.core.logging import json_sink

            logger.add(json_sink, level=self.log_level)
        else:
            logger.add(
                sys.stderr, format=self.log_format, level=self.log_level, colorize=True
            )

        if self.log_file:
            logger.add(
                self.log_file,
                format=self.log_format,
                level=self.log_level,
                rotation=self.log_rotation,
                retention=self.log_retention,
                compression="zip",
            )

        logger.info(f"Logging configured for {self.environment} environment")
        if not self.has_gemini_key:
            logger.warning("GEMINI_API_KEY is not configured; lead searches will fail.")


def get_settings() -> Settings:
    """Load settings from the environment and configure logging"""
    settings = Settings()
    settings.configure_logging()
    return settings


settings = get_settings()
