"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file and override existing env vars
load_dotenv(override=True)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Google Cloud
    gcp_project_id: str = "bodigi-mvp-builder"
    gcp_region: str = "us-east5"
    gcp_registry: str = "us-east5-docker.pkg.dev"
    gcp_repository: str = "bodigi-mvps"
    gcp_deploy_real: bool = False  # Set to True to call Cloud Build / Cloud Run
    gcloud_binary: str = "gcloud"

    # Pipeline
    service_name_max_length: int = Field(default=63, ge=1)
    deployment_id_prefix: str = "artifact"
    serialize_service_deploys: bool = True
    build_poll_interval_seconds: float = 5.0
    build_timeout_seconds: int = 1200
    simulated_delay_scale: float = Field(default=1.0, ge=0)
    bundle_directory: str | None = None

    # Record store (remote entity API); in-memory store is used when unset
    record_store_url: str | None = None
    record_store_token: str = Field(default="")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


class CloudConfig(BaseModel):
    """Explicit pipeline configuration handed to the orchestrator and clients.

    Unlike ``Settings`` this is never read from process-wide state by the
    pipeline itself, so several differently configured orchestrators can
    coexist in one process.
    """

    model_config = ConfigDict(frozen=True)

    project_id: str = "bodigi-mvp-builder"
    region: str = "us-east5"
    registry: str = "us-east5-docker.pkg.dev"
    repository: str = "bodigi-mvps"
    gcloud_binary: str = "gcloud"

    service_name_max_length: int = Field(default=63, ge=1)
    deployment_id_prefix: str = "artifact"
    serialize_service_deploys: bool = True

    build_poll_interval_seconds: float = 5.0
    build_timeout_seconds: int = 1200
    simulated_delay_scale: float = Field(default=1.0, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudConfig":
        """Build a config snapshot from application settings."""
        return cls(
            project_id=settings.gcp_project_id,
            region=settings.gcp_region,
            registry=settings.gcp_registry,
            repository=settings.gcp_repository,
            gcloud_binary=settings.gcloud_binary,
            service_name_max_length=settings.service_name_max_length,
            deployment_id_prefix=settings.deployment_id_prefix,
            serialize_service_deploys=settings.serialize_service_deploys,
            build_poll_interval_seconds=settings.build_poll_interval_seconds,
            build_timeout_seconds=settings.build_timeout_seconds,
            simulated_delay_scale=settings.simulated_delay_scale,
        )

    def image_reference(self, service_name: str, tag: str = "latest") -> str:
        """Artifact Registry reference for a service image."""
        return (
            f"{self.registry}/{self.project_id}/{self.repository}/"
            f"{service_name}:{tag}"
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
