"""
Application Settings
===================

Main application settings and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

from typing import Optional, List, Union
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json
from pathlib import Path


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="Ogify Image Service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=False, description="Debug mode")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Storage Configuration
    storage_path: Path = Field(default=Path("./storage"), description="Storage directory path")
    log_to_file: bool = Field(default=False, description="Write rotating log files")

    # Rendering Configuration
    default_width: int = Field(default=1200, description="Default image width")
    default_height: int = Field(default=630, description="Default image height")
    max_width: int = Field(default=4000, description="Maximum image width")
    max_height: int = Field(default=4000, description="Maximum image height")
    optimize_png: bool = Field(default=False, description="Re-encode PNG output with Pillow")

    # Font and asset Configuration
    default_font_family: str = Field(default="Bitter", description="Fallback font family")
    default_font_weight: int = Field(default=600, description="Fallback font weight")
    google_fonts_css_url: str = Field(
        default="https://fonts.googleapis.com/css2", description="Google Fonts CSS2 endpoint"
    )
    asset_timeout: int = Field(default=10, description="Asset download timeout in seconds")
    emoji_cache_size: int = Field(default=512, description="Cached emoji assets per process")

    # Browser Configuration
    playwright_headless: bool = Field(default=True, description="Run browser in headless mode")
    playwright_timeout: int = Field(default=30000, description="Playwright timeout in milliseconds")
    browser_pool_size: int = Field(default=2, description="Browser instance pool size")
    warmup_engines: bool = Field(default=True, description="Bootstrap rendering engines at startup")

    # Response Configuration
    cache_control: str = Field(
        default="public, immutable, no-transform, max-age=31536000",
        description="Cache-Control for regular responses",
    )
    debug_cache_control: str = Field(
        default="no-cache, no-store", description="Cache-Control for debug responses"
    )

    # Security Configuration
    allowed_hosts: List[str] = Field(default=["*"], description="Allowed hosts for CORS")

    # Monitoring Configuration
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("allowed_hosts", mode="before")
    @classmethod
    def parse_allowed_hosts(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse allowed hosts from string or list."""
        if isinstance(v, str):
            # Handle JSON-like string: ["*"] or ["host1", "host2"]
            v = v.strip()
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            # Handle comma-separated string: "*" or "host1,host2"
            return [host.strip() for host in v.split(",") if host.strip()]
        return v

    @field_validator("browser_pool_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        """Pool needs at least one browser."""
        if v < 1:
            raise ValueError("browser_pool_size must be at least 1")
        return v

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="OGIFY_"
    )


# Global settings instance - will be initialized when needed
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings

