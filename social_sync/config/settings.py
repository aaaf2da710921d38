"""
Application Settings
===================

Application settings and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

from typing import Annotated, Optional, List, Union
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
import json
from pathlib import Path


class AuthorProfile(BaseModel):
    """Author shown on post cards."""

    name: str
    avatar: Optional[str] = None


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="Social Image Sync", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=True, description="Include error details in API responses")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Site Configuration
    site_name: str = Field(default="Noxionite", description="Site name shown on cards")
    site_domain: str = Field(default="localhost:3000", description="Public site domain")
    locales: Annotated[List[str], NoDecode] = Field(
        default=["en"], description="Supported locales"
    )
    default_locale: str = Field(default="en", description="Default locale")
    authors: List[AuthorProfile] = Field(default=[], description="Known authors and avatars")
    default_background: str = Field(
        default="/default_background.png", description="Card background when a page has no cover"
    )
    site_icon: str = Field(default="/icon.png", description="Site icon path")

    # Storage Configuration
    public_dir: Path = Field(default=Path("./public"), description="Static public directory")
    social_images_dir: str = Field(
        default="social-images", description="Artifact directory name under public_dir"
    )
    state_file: Path = Field(
        default=Path("./.next/social-images-state.json"), description="Sync state file"
    )

    # Rendering Configuration
    render_base_url: Optional[str] = Field(
        default=None, description="Base URL used to resolve card assets"
    )
    image_width: int = Field(default=1200, description="Card width in pixels")
    image_height: int = Field(default=630, description="Card height in pixels")
    jpeg_quality: int = Field(default=90, ge=1, le=100, description="JPEG quality")
    render_timeout: int = Field(default=30, gt=0, description="Render timeout in seconds")
    batch_size: int = Field(default=8, gt=0, description="Concurrent renders per batch")
    force_regenerate: bool = Field(
        default=False, description="Treat every page and tag as new on each sync"
    )

    # Browser Configuration
    browser_headless: bool = Field(default=True, description="Run browser in headless mode")
    browser_executable_path: Optional[str] = Field(
        default=None, description="Explicit Chromium executable"
    )
    serverless: bool = Field(default=False, description="Constrained serverless sandbox")
    browser_args: Annotated[List[str], NoDecode] = Field(
        default=[
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-web-security",
            "--disable-features=VizDisplayCompositor",
            "--disable-gpu",
            "--no-first-run",
            "--no-default-browser-check",
            "--disable-background-timer-throttling",
            "--disable-backgrounding-occluded-windows",
            "--disable-renderer-backgrounding",
            "--disable-dev-shm-usage",
            "--disable-extensions",
        ],
        description="Chromium launch arguments",
    )

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

    @field_validator("locales", "browser_args", mode="before")
    @classmethod
    def parse_string_list(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse a list from a JSON or comma-separated string."""
        if isinstance(v, str):
            # Handle JSON-like string: ["en", "ko"]
            v = v.strip()
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            # Handle comma-separated string: "en,ko"
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @property
    def artifact_root(self) -> Path:
        """Directory holding every generated card."""
        return self.public_dir / self.social_images_dir

    @property
    def public_url_prefix(self) -> str:
        """URL path under which the artifact root is served."""
        return "/" + self.social_images_dir.strip("/")

    @property
    def base_url(self) -> str:
        """Base URL injected as <base href> into rendered cards."""
        if self.render_base_url:
            return self.render_base_url.rstrip("/")
        if self.environment == "production":
            return f"https://{self.site_domain}"
        return "http://localhost:3000"

    @property
    def all_locales(self) -> List[str]:
        """Configured locales with the default locale guaranteed present."""
        locales = list(self.locales)
        if self.default_locale not in locales:
            locales.insert(0, self.default_locale)
        return locales

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="SOCIAL_SYNC_"
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
