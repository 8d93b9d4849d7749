"""macOS launchd supervisor adapter."""

from pathlib import Path

from loguru import logger

from servicemaster.errors import TransportError
from servicemaster.supervisor.base import SupervisorAdapter


class LaunchdAdapter(SupervisorAdapter):

    name = "launchd"

    def default_unit_dir(self) -> Path:
        return Path.home() / "Library" / "LaunchAgents"

    def load(self, unit_path: Path) -> str:
        self._check(["launchctl", "load", str(unit_path)])
        return "Service loaded successfully"

    def unload(self, unit_path: Path) -> str:
        self._check(["launchctl", "unload", str(unit_path)])
        return "Service unloaded successfully"

    def loaded_units(self) -> dict[str, int | None]:
        try:
            result = self._run(["launchctl", "list"])
        except TransportError as e:
            logger.warning(f"Cannot list launchd units: {e}")
            return {}
        return self._parse_list(result.stdout)

    @staticmethod
    def _parse_list(output: str) -> dict[str, int | None]:
        """Parse ``launchctl list`` output (PID, Status, Label columns).

        A '-' PID means the job is loaded but not running.
        """
        units: dict[str, int | None] = {}
        for line in output.splitlines()[1:]:
            parts = line.split()
            if len(parts) < 3:
                continue
            try:
                pid = int(parts[0])
            except ValueError:
                pid = None
            units[parts[2]] = pid
        return units
