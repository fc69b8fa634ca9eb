"""Application settings loaded from environment variables."""

from pathlib import Path

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_LOCAL_DATA_DIR = BASE_DIR / "data"


class Settings(BaseSettings):
    """Runtime configuration for the grading service."""

    model_config = SettingsConfigDict(env_prefix="SALESGRADER_", extra="ignore")

    app_name: str = "Sales Grader API"
    data_dir: str = Field(
        default=str(DEFAULT_LOCAL_DATA_DIR),
        validation_alias=AliasChoices("SALESGRADER_DATA_DIR", "DATA_DIR"),
    )
    sqlite_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SALESGRADER_SQLITE_PATH", "SQLITE_PATH"),
    )
    log_level: str = "INFO"

    # Grading
    batch_size: int = Field(default=5, gt=0)
    default_rubric: str = "door_to_door"

    # Enhanced grading pass
    enhancement_enabled: bool = True
    enhancement_model: str = "gpt-4o-mini"
    enhancement_timeout_seconds: float = 30.0

    # Job queue
    queue_backend: str = "threaded"
    worker_concurrency: int = Field(default=3, gt=0)
    job_max_attempts: int = Field(default=3, gt=0)
    job_retry_backoff_seconds: float = 1.0

    # Conversation transcript provider
    transcript_provider_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SALESGRADER_TRANSCRIPT_PROVIDER_URL", "TRANSCRIPT_PROVIDER_URL"),
    )
    transcript_provider_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SALESGRADER_TRANSCRIPT_PROVIDER_API_KEY", "TRANSCRIPT_PROVIDER_API_KEY"),
    )
    transcript_provider_timeout_seconds: float = 15.0

    # CORS configuration
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("SALESGRADER_CORS_ALLOW_ORIGINS", "CORS_ALLOW_ORIGINS"),
    )

    @model_validator(mode="after")
    def _set_sqlite_path(self) -> "Settings":
        if not self.sqlite_path:
            self.sqlite_path = str(Path(self.data_dir) / "salesgrader.db")
        return self

    @property
    def sqlite_url(self) -> str:
        return f"sqlite:///{self.sqlite_path}"

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)

    @property
    def cors_origin_list(self) -> list[str]:
        if self.cors_allow_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


settings = Settings()
