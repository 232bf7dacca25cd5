"""Configuration management for the ACC Transform MCP Server.

Uses pydantic-settings for environment variable support with validation.
"""

from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List, Optional


class ServerConfig(BaseSettings):
    """Server configuration with environment variable support."""

    # Autodesk Platform Services app credentials
    aps_client_id: str = Field(default="", description="APS application client id")
    aps_client_secret: str = Field(default="", description="APS application client secret")
    aps_callback_url: str = Field(
        default="http://localhost:8080/api/auth/callback",
        description="Redirect URI registered for the 3-legged flow"
    )
    aps_base_url: str = Field(
        default="https://developer.api.autodesk.com",
        description="Root of the Autodesk REST API"
    )
    user_scopes: str = Field(
        default="data:read data:write viewables:read",
        description="Scopes requested for the user (3-legged) token"
    )
    app_scopes: str = Field(
        default="code:all bucket:create bucket:read data:read data:write",
        description="Scopes requested for the app (2-legged) token"
    )

    # Design Automation
    da_region: str = Field(default="us-east", description="Design Automation region")
    da_nickname: Optional[str] = Field(
        default=None,
        description="Owner nickname; falls back to the client id"
    )
    appbundle_name: str = Field(default="RevitTransformApp", description="AppBundle id")
    activity_name: str = Field(default="RevitTransformActivity", description="Activity id")
    da_alias: str = Field(default="prod", description="Alias used for bundle and activity")
    da_engine: str = Field(default="Autodesk.Revit+2025", description="Revit engine")

    # Persisted client state
    token_store_path: Path = Field(
        default=Path("~/.acc_transform/tokens.json"),
        description="File holding the persisted token pair"
    )
    token_storage_key: str = Field(
        default="autodesk_tokens",
        description="Key under which the token pair is stored"
    )
    token_refresh_margin: float = Field(
        default=300.0,
        description="Seconds before expiry at which a token counts as expired"
    )

    # Project whitelist (empty allows every project)
    allowed_project_ids: List[str] = Field(default_factory=list)

    # Poll loop
    poll_interval: float = Field(default=10.0, description="Seconds between status polls")
    max_poll_attempts: int = Field(default=60, description="Poll budget per save")

    # Server settings
    server_transport: str = Field(
        default="stdio",
        description="MCP transport type: sse or stdio"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="json",
        description="Log format: json or console"
    )

    # Timeouts
    request_timeout: float = Field(
        default=30.0,
        description="HTTP request timeout in seconds"
    )
    transfer_timeout: float = Field(
        default=300.0,
        description="Timeout for signed URL uploads and downloads in seconds"
    )

    # Retry settings
    max_retries: int = Field(default=3, description="Maximum retry attempts")
    retry_delay: float = Field(default=1.0, description="Delay between retries in seconds")

    # Object storage
    output_url_expiration: int = Field(
        default=30,
        description="Lifetime of the signed output slot in minutes"
    )
    upload_chunk_size: int = Field(
        default=100 * 1024 * 1024,
        description="Part size for signed multi-part uploads in bytes"
    )

    # Diagnostics
    max_diagnostic_entry_bytes: int = Field(
        default=500 * 1024,
        description="Archive entries above this size are skipped"
    )
    journal_tail_chars: int = Field(
        default=100_000,
        description="Characters kept from the end of a journal file"
    )

    @property
    def da_base_url(self) -> str:
        """Get the base URL for Design Automation v3."""
        return f"{self.aps_base_url}/da/{self.da_region}/v3"

    @property
    def owner(self) -> str:
        """Owner prefix of fully qualified Design Automation ids."""
        return self.da_nickname or self.aps_client_id

    @property
    def activity_id(self) -> str:
        """Fully qualified activity id, e.g. ``owner.RevitTransformActivity+prod``."""
        return f"{self.owner}.{self.activity_name}+{self.da_alias}"

    @property
    def appbundle_id(self) -> str:
        """Fully qualified app bundle id."""
        return f"{self.owner}.{self.appbundle_name}+{self.da_alias}"

    model_config = {
        "env_prefix": "ACC_TRANSFORM_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Singleton instance
_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get the configuration singleton."""
    global _config
    if _config is None:
        _config = ServerConfig()
    return _config


def reset_config() -> None:
    """Reset the configuration singleton (for testing)."""
    global _config
    _config = None
