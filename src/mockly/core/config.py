"""
Configuration management for Mockly.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_COMMON_TABLES: List[str] = [
    "users",
    "profiles",
    "accounts",
    "posts",
    "comments",
    "products",
    "orders",
    "customers",
    "items",
    "messages",
    "notifications",
    "settings",
    "files",
    "images",
    "documents",
    "categories",
]


class ScannerConfig(BaseModel):
    """Configuration for table discovery and accessibility probing."""

    rpc_function: str = Field(
        "get_tables_info", description="RPC function that returns table metadata"
    )
    common_tables: List[str] = Field(
        default_factory=lambda: list(DEFAULT_COMMON_TABLES),
        description="Table names probed when the schema cannot be read",
    )
    request_timeout: Optional[float] = Field(
        None, description="Per-request timeout in seconds (unset: client default)"
    )
    probe_concurrency: int = Field(
        1, ge=1, description="How many tables to probe at once (1 = sequential)"
    )


class AIConfig(BaseModel):
    """AI provider configuration for fix generation."""

    provider: str = Field("none", description="AI provider: openai, openrouter, or none")
    openai_api_key: Optional[SecretStr] = None
    openrouter_api_key: Optional[SecretStr] = None
    model: str = Field("gpt-4o-mini", description="OpenAI model used for fixes")
    openrouter_model: str = Field(
        "anthropic/claude-3-haiku", description="OpenRouter model used for fixes"
    )
    temperature: float = 0.7
    max_tokens: int = 2048
    request_timeout: float = Field(30.0, description="Timeout for AI requests")

    @property
    def enabled(self) -> bool:
        return self.provider in ("openai", "openrouter")


class ServerConfig(BaseModel):
    """Web service configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    store_dir: Optional[Path] = Field(
        None, description="Directory for the JSON store (unset: in-memory store)"
    )


class Config(BaseSettings):
    """Main configuration class for Mockly."""

    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    log_level: str = Field("INFO", description="Logging level")
    verbose: bool = False

    model_config = SettingsConfigDict(
        env_prefix="MOCKLY_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_file(
        cls, config_path: Path | str, overrides: Optional[Dict[str, Any]] = None
    ) -> "Config":
        """Load configuration from a JSON file, with top-level keys replaced by overrides."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = json.load(f)

        return cls(**{**data, **(overrides or {})})

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration to a dictionary, without API keys."""
        return json.loads(
            self.model_dump_json(exclude={"ai": {"openai_api_key", "openrouter_api_key"}})
        )


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
    if config_path:
        return Config.from_file(config_path, overrides)
    return Config(**(overrides or {}))


def create_default_config(output_path: Path) -> None:
    """Create a default configuration file."""
    default_config = {
        "scanner": {
            "rpc_function": "get_tables_info",
            "common_tables": DEFAULT_COMMON_TABLES,
            "request_timeout": None,
            "probe_concurrency": 1,
        },
        "ai": {
            "provider": "none",
            "openai_api_key": "your-openai-key-here",
            "model": "gpt-4o-mini",
        },
        "server": {
            "host": "0.0.0.0",
            "port": 8080,
            "store_dir": None,
        },
        "log_level": "INFO",
    }

    with open(output_path, "w") as f:
        json.dump(default_config, f, indent=2)
