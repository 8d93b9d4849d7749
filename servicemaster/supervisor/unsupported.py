"""Adapter for platforms without a usable per-user supervisor (Windows)."""

from pathlib import Path

from servicemaster.errors import UnsupportedOperationError
from servicemaster.supervisor.base import SupervisorAdapter
from servicemaster.supervisor.resolve import get_app_dir


class UnsupportedAdapter(SupervisorAdapter):
    """Keeps unit files in the app config dir; every supervisor action fails."""

    name = "unsupported"

    def default_unit_dir(self) -> Path:
        return get_app_dir("windows") / "services"

    def load(self, unit_path: Path) -> str:
        raise UnsupportedOperationError(
            "Windows service loading not yet implemented. Please start the process manually."
        )

    def unload(self, unit_path: Path) -> str:
        raise UnsupportedOperationError("Windows service unloading not yet implemented.")

    def restart(self, unit_path: Path) -> str:
        raise UnsupportedOperationError("Windows service restart not yet implemented.")

    def loaded_units(self) -> dict[str, int | None]:
        return {}
