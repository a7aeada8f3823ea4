"""Configuration management for the Jira gateway."""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


REQUIRED_JIRA_ENV = {
    "jira_host": "JIRA_HOST",
    "jira_email": "JIRA_EMAIL",
    "jira_api_token": "JIRA_API_TOKEN",
}


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Jira Configuration
    jira_host: str = Field(
        default="", description="Jira Cloud host, e.g. example.atlassian.net"
    )
    jira_email: str = Field(default="", description="Jira account email")
    jira_api_token: str = Field(default="", description="Jira API token")
    jira_allowed_projects: str = Field(
        default="",
        description="Comma-separated project keys the gateway may read",
    )
    jira_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Timeout for Jira API calls in seconds"
    )
    jira_max_results: int = Field(
        default=50, ge=1, le=100, description="Result cap per Jira request"
    )

    # Security Configuration
    rate_limit_enabled: bool = Field(
        default=True, description="Enable rate limiting"
    )
    rate_limit_max_requests: int = Field(
        default=30, ge=0, description="Jira requests admitted per window"
    )
    rate_limit_window_ms: int = Field(
        default=60000, ge=1, description="Rate limit window (ms)"
    )

    # Notifier Configuration
    slack_webhook_url: Optional[str] = Field(
        default=None, description="Slack incoming webhook URL"
    )
    teams_webhook_url: Optional[str] = Field(
        default=None, description="Microsoft Teams incoming webhook URL"
    )

    # Health Service Configuration
    health_enabled: bool = Field(
        default=True, description="Serve health endpoints next to the MCP server"
    )
    health_host: str = Field(default="127.0.0.1", description="Health service bind host")
    health_port: int = Field(
        default=3000, ge=1, le=65535, description="Health service port"
    )
    health_require_token: bool = Field(
        default=False, description="Protect /metrics and /info with a token"
    )
    health_token: Optional[str] = Field(
        default=None, description="Expected X-Health-Token header value"
    )
    health_memory_limit_mb: int = Field(
        default=512, ge=1, description="Process memory limit used by the health check (MB)"
    )

    # Logging Configuration
    environment: str = Field(
        default="development", description="Deployment environment name"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path"
    )

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ["json", "text"]:
            raise ValueError(f"Invalid log format: {v}")
        return v

    @field_validator("jira_host")
    def normalize_jira_host(cls, v: str) -> str:
        """Accept hosts pasted with a scheme or trailing slash."""
        host = v.strip()
        for prefix in ("https://", "http://"):
            if host.startswith(prefix):
                host = host[len(prefix):]
        return host.rstrip("/")

    @property
    def allowed_projects(self) -> List[str]:
        """Normalized project allow-list (empty means unrestricted)."""
        return self._split_csv(self.jira_allowed_projects)

    @staticmethod
    def _split_csv(raw: str) -> List[str]:
        """Split a comma-separated value, dropping blank entries."""
        return [item.strip() for item in raw.split(",") if item.strip()]

    def missing_credentials(self) -> List[str]:
        """Names of required Jira environment variables that are unset."""
        return [
            env_name
            for field_name, env_name in REQUIRED_JIRA_ENV.items()
            if not getattr(self, field_name)
        ]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    # Load .env file if it exists
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    return Settings()
