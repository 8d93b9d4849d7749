"""Linux systemd --user supervisor adapter."""

from pathlib import Path

from loguru import logger

from servicemaster.errors import ServiceMasterError, TransportError
from servicemaster.supervisor.base import SupervisorAdapter


class SystemdAdapter(SupervisorAdapter):

    name = "systemd"
    supports_disable = True

    def default_unit_dir(self) -> Path:
        return Path.home() / ".config" / "systemd" / "user"

    def load(self, unit_path: Path) -> str:
        self._ctl("start", self.unit_name(unit_path))
        return "Service started successfully"

    def unload(self, unit_path: Path) -> str:
        self._ctl("stop", self.unit_name(unit_path))
        return "Service stopped successfully"

    def disable(self, unit_path: Path) -> None:
        try:
            self._ctl("disable", self.unit_name(unit_path))
        except ServiceMasterError as e:
            logger.debug(f"Ignoring disable failure for {unit_path}: {e}")

    def loaded_units(self) -> dict[str, int | None]:
        try:
            result = self._run(
                ["systemctl", "--user", "list-units", "--type=service", "--no-pager", "--plain"]
            )
        except TransportError as e:
            logger.warning(f"Cannot list systemd units: {e}")
            return {}
        return self._parse_list(result.stdout)

    @staticmethod
    def unit_name(unit_path: Path) -> str:
        """systemd addresses units by name: the unit file stem."""
        return Path(unit_path).stem

    @staticmethod
    def _parse_list(output: str) -> dict[str, int | None]:
        """Parse ``systemctl list-units --plain``. PIDs are not listed."""
        units: dict[str, int | None] = {}
        for line in output.splitlines()[1:]:
            parts = line.split()
            if not parts:
                continue
            name = parts[0]
            if name.endswith(".service"):
                name = name[: -len(".service")]
            units[name] = None
        return units

    @classmethod
    def _ctl(cls, *args: str) -> None:
        cls._check(["systemctl", "--user", *args])
