from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables from .env into os.environ
load_dotenv()


class Settings(BaseSettings):
    """Process configuration settings backed by environment variables."""

    config_path: str = Field(
        default="configs/sqlmetrics.yaml",
        validation_alias="SQLMETRICS_CONFIG",
        description="Path to the YAML file listing servers and queries."
    )
    log_level: str = Field(default="INFO", validation_alias="SQLMETRICS_LOG_LEVEL")
    log_json: bool = Field(
        default=False,
        validation_alias="SQLMETRICS_LOG_JSON",
        description="Emit logs as JSON documents instead of plain text."
    )

    collection_interval_sec: float = Field(
        default=10.0,
        validation_alias="SQLMETRICS_INTERVAL_SEC",
        description="Pause between collection cycles for the `run` command."
    )

    observability_exporter: str = Field(
        default="none",
        validation_alias="OBSERVABILITY_EXPORTER",
        description="Exporter for self-metrics: 'none', 'console', 'otlp'."
    )

    otlp_endpoint: Optional[str] = Field(
        default=None,
        validation_alias="OTEL_EXPORTER_OTLP_ENDPOINT",
        description="Endpoint for OTLP exporter (e.g. http://localhost:4317)."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def configure_env(self, env: str) -> None:
        """Loads environment-specific variables and reloads settings."""
        if not env:
            return

        load_dotenv(f".env.{env}", override=True)
        new_settings = Settings()
        self.__dict__.update(new_settings.__dict__)

settings = Settings()

# Configure logging during import
from sqlmetrics.common.logger import configure_logging
configure_logging(
    level=settings.log_level,
    json_format=settings.log_json
)
