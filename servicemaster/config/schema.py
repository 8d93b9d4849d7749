"""Settings and metadata schemas using Pydantic."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceMetadata(BaseModel):
    """User-supplied overlay merged onto a unit file's data. Keyed by label."""
    display_name: str | None = None
    description: str | None = None
    icon: str | None = None
    port: int | None = Field(default=None, ge=0, le=65535)
    health_url: str | None = None
    order: int | None = None  # Display position; unordered services sort last
    project_path: str | None = None
    app_path: str | None = None  # Set when the service launches a GUI application


class AppSettings(BaseModel):
    """Per-installation settings. One document, last writer wins."""
    theme_color: str = "#3b82f6"
    opacity: float = 0.8
    config_path: str | None = None  # Unit directory override
    theme_mode: str = "auto"
    webdav_url: str | None = None
    webdav_username: str | None = None
    webdav_password: str | None = None
    auto_launch: bool | None = False

    def without_credentials(self) -> "AppSettings":
        """Copy with the WebDAV username and password cleared."""
        return self.model_copy(update={"webdav_username": None, "webdav_password": None})


class Environment(BaseSettings):
    """Process environment overrides."""
    model_config = SettingsConfigDict(env_prefix="SERVICEMASTER_")

    config_dir: str | None = None  # Holds settings.json and metadata.json
