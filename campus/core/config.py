from decimal import Decimal
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(True, alias="LOG_JSON")

    application_number_prefix: str = Field("ADM", alias="APPLICATION_NUMBER_PREFIX")
    application_number_width: int = Field(6, alias="APPLICATION_NUMBER_WIDTH")

    exam_subject_fee: Decimal = Field(Decimal("100"), alias="EXAM_SUBJECT_FEE")
    fee_due_months: int = Field(3, alias="FEE_DUE_MONTHS")

    # Optimistic write retry budget shared by every contended operation.
    write_max_attempts: int = Field(25, alias="WRITE_MAX_ATTEMPTS")
    write_retry_backoff_ms: int = Field(5, alias="WRITE_RETRY_BACKOFF_MS")

    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
