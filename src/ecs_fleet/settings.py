# src/ecs_fleet/settings.py
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """
    Single source of truth for all fleet settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from ecs_fleet.settings import get_settings
        settings = get_settings()
        region = settings.aws_region
    """

    # Deployment Mode
    deployment_mode: str = Field(
        default="aws-prod",
        description="Deployment mode: local-dev, aws-mock, or aws-prod"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    # Console links
    console_host: str = Field(
        default="console.aws.amazon.com",
        description="Host used when generating AWS console links"
    )

    # Reconciliation
    populate_max_workers: Optional[int] = Field(
        default=None,
        description="Cap on concurrent instance lookups (default: one per instance)"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('deployment_mode')
    @classmethod
    def validate_deployment_mode(cls, v):
        """Validate deployment mode is one of the allowed values."""
        valid_modes = ["local-dev", "aws-mock", "aws-prod"]
        if v not in valid_modes:
            raise ValueError(f"Invalid deployment_mode: {v}. Must be one of {valid_modes}")
        return v

    @field_validator('populate_max_workers')
    @classmethod
    def validate_max_workers(cls, v):
        if v is not None and v < 1:
            raise ValueError("populate_max_workers must be at least 1")
        return v

    @property
    def uses_local_endpoint(self) -> bool:
        """Whether clients should be pointed at aws_endpoint_url."""
        return bool(self.aws_endpoint_url) and self.deployment_mode in ["local-dev", "aws-mock"]

    def console_logs_url(self, region: str, cluster: str, service: str) -> str:
        """Build the console URL for a service's log view."""
        return (f"https://{self.console_host}/ecs/home?region={region}"
                f"#/clusters/{cluster}/services/{service}/logs")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_prefix="ECS_FLEET_",
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
