"""Platform detection and per-user directory resolution."""

import os
import sys
from pathlib import Path

APP_DIR_NAME = "service-master"


def detect_platform() -> str:
    """Return 'macos', 'windows' or 'linux'.

    Any other POSIX platform is treated as 'linux'.
    """
    if sys.platform == "darwin":
        return "macos"
    elif sys.platform.startswith("win"):
        return "windows"
    return "linux"


def get_user_config_dir(platform: str | None = None) -> Path:
    """Return the per-user configuration root for *platform*."""
    platform = platform or detect_platform()
    if platform == "macos":
        return Path.home() / "Library" / "Application Support"
    if platform == "windows":
        appdata = os.environ.get("APPDATA")
        return Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    return Path(xdg) if xdg else Path.home() / ".config"


def get_app_dir(platform: str | None = None) -> Path:
    """Return the directory holding settings.json and metadata.json.

    ``SERVICEMASTER_CONFIG_DIR`` overrides the platform default.
    """
    from servicemaster.config.schema import Environment

    env = Environment()
    if env.config_dir:
        return Path(env.config_dir).expanduser()
    return get_user_config_dir(platform) / APP_DIR_NAME
