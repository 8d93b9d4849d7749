"""Supervisor adapters — factory and re-exports."""

from servicemaster.supervisor.base import SupervisorAdapter, SupervisorError
from servicemaster.supervisor.resolve import detect_platform

__all__ = [
    "SupervisorAdapter",
    "SupervisorError",
    "detect_platform",
    "get_adapter",
]


def get_adapter(platform: str | None = None) -> SupervisorAdapter:
    """Return the SupervisorAdapter for *platform* (default: this host)."""
    platform = platform or detect_platform()
    if platform == "macos":
        from servicemaster.supervisor.launchd import LaunchdAdapter
        return LaunchdAdapter()
    elif platform == "windows":
        from servicemaster.supervisor.unsupported import UnsupportedAdapter
        return UnsupportedAdapter()
    else:
        from servicemaster.supervisor.systemd import SystemdAdapter
        return SystemdAdapter()
