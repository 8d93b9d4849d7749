"""Abstract supervisor adapter interface and shared types."""

import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger

from servicemaster.errors import ServiceMasterError, TransportError


class SupervisorError(ServiceMasterError):
    """Raised when the native supervisor rejects a command.

    The message is the supervisor's stderr, verbatim.
    """


class SupervisorAdapter(ABC):
    """Run service actions through the platform's native supervisor.

    One implementation per platform family, selected once by ``get_adapter``.
    Commands address a service by its unit file path; adapters that address
    units by name derive it from the file stem.
    """

    name: str = ""
    unit_suffix: str = ".plist"
    # Whether the supervisor distinguishes enabled/disabled units.
    supports_disable: bool = False

    @abstractmethod
    def default_unit_dir(self) -> Path:
        """Directory scanned for unit files when no override is configured."""

    @abstractmethod
    def load(self, unit_path: Path) -> str:
        """Load/start the unit. Returns a success message."""

    @abstractmethod
    def unload(self, unit_path: Path) -> str:
        """Unload/stop the unit. Returns a success message."""

    @abstractmethod
    def loaded_units(self) -> dict[str, int | None]:
        """Map label -> pid (None when unknown) for every live unit."""

    def restart(self, unit_path: Path) -> str:
        """Unload (errors ignored) then load (errors raised)."""
        try:
            self.unload(unit_path)
        except ServiceMasterError as e:
            logger.debug(f"Ignoring unload failure before restart of {unit_path}: {e}")
        self.load(unit_path)
        return "Service restarted successfully"

    def disable(self, unit_path: Path) -> None:
        """Disable the unit on supervisors that support it. No-op otherwise."""

    @staticmethod
    def _run(args: list[str]) -> subprocess.CompletedProcess:
        """Run a command, capturing output. Spawn failures raise TransportError."""
        logger.debug(f"Running: {' '.join(args)}")
        try:
            return subprocess.run(args, capture_output=True, text=True)
        except OSError as e:
            raise TransportError(f"Failed to run {args[0]}: {e}") from e

    @classmethod
    def _check(cls, args: list[str]) -> subprocess.CompletedProcess:
        """Run a command and raise SupervisorError on a non-zero exit."""
        result = cls._run(args)
        if result.returncode != 0:
            raise SupervisorError(result.stderr)
        return result
