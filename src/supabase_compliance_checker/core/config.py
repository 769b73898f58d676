"""
Configuration management for the Supabase Compliance Checker.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogStoreConfig(BaseModel):
    """Supabase project that holds the compliance_logs table."""

    url: str = Field("", description="Supabase project URL of the logging database")
    service_role_key: SecretStr = Field(
        SecretStr(""), description="Service role key of the logging database"
    )
    table: str = Field("compliance_logs", description="Table compliance results are written to")

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.service_role_key.get_secret_value())


class AIConfig(BaseModel):
    """Chat assistant configuration."""

    openai_api_key: Optional[SecretStr] = None
    model: str = Field("gpt-3.5-turbo", description="Model used for chat completions")
    max_tokens: int = Field(250, description="Completion token limit per answer")
    temperature: float = Field(0.7, description="Sampling temperature")


class DashboardConfig(BaseModel):
    """Dashboard HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"], description="Origins allowed to call the API"
    )


class Config(BaseSettings):
    """Main configuration class for the Supabase Compliance Checker."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_COMPLIANCE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Where compliance results are logged
    log_store: LogStoreConfig = Field(default_factory=LogStoreConfig)

    # Chat assistant
    ai: AIConfig = Field(default_factory=AIConfig)

    # Dashboard server
    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)

    # Upstream endpoints
    management_api_url: str = Field(
        "https://api.supabase.com", description="Supabase Management API base URL"
    )
    project_url_template: str = Field(
        "https://{ref}.supabase.co", description="Project URL built from a project reference"
    )
    request_timeout: float = Field(10.0, description="Timeout for upstream requests in seconds")
    users_page_size: int = Field(
        1000, description="Page size used when listing auth users"
    )

    verbose: bool = False

    @classmethod
    def from_file(cls, config_path: Path | str) -> "Config":
        """Load configuration from a JSON file."""
        config_path = Path(config_path) if isinstance(config_path, str) else config_path
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = json.load(f)

        return cls(**data)

    def to_dict(self, exclude_secrets: bool = True) -> Dict[str, Any]:
        """Export configuration to a dictionary."""
        if exclude_secrets:
            return json.loads(
                self.model_dump_json(
                    exclude={
                        "log_store": {"service_role_key"},
                        "ai": {"openai_api_key"},
                    }
                )
            )
        data = self.model_dump(mode="python")
        data["log_store"]["service_role_key"] = self.log_store.service_role_key.get_secret_value()
        if self.ai.openai_api_key is not None:
            data["ai"]["openai_api_key"] = self.ai.openai_api_key.get_secret_value()
        return json.loads(json.dumps(data, default=str))

    def save_to_file(self, config_path: Path, exclude_secrets: bool = True) -> None:
        """Save configuration to a JSON file."""
        with open(config_path, "w") as f:
            json.dump(self.to_dict(exclude_secrets=exclude_secrets), f, indent=2)

    def get_openai_api_key(self) -> str:
        if self.ai.openai_api_key is None:
            return ""
        return self.ai.openai_api_key.get_secret_value()


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Config:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Provided overrides
    2. Config file
    3. Environment variables
    4. Default values
    """
    config_data: Dict[str, Any] = {}

    if config_path:
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        with open(config_path) as f:
            config_data = json.load(f)

    if overrides:
        config_data.update(overrides)

    return Config(**config_data)


def create_default_config(output_path: Path) -> None:
    """Create a default configuration file."""
    default_config = {
        "log_store": {
            "url": "https://your-logging-project.supabase.co",
            "service_role_key": "your-service-role-key-here",
            "table": "compliance_logs",
        },
        "ai": {
            "openai_api_key": "your-openai-api-key-here",
            "model": "gpt-3.5-turbo",
            "max_tokens": 250,
            "temperature": 0.7,
        },
        "dashboard": {
            "host": "0.0.0.0",
            "port": 8080,
        },
        "management_api_url": "https://api.supabase.com",
        "request_timeout": 10,
    }

    with open(output_path, "w") as f:
        json.dump(default_config, f, indent=2)
