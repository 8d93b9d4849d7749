"""Service lifecycle: listing, load/unload/restart and create/update/delete."""

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from servicemaster.config.loader import MetadataStore, SettingsStore
from servicemaster.errors import ServiceMasterError, ServiceNotFoundError, TransportError
from servicemaster.services.models import ServiceConfig, ServiceDescriptor
from servicemaster.services.presets import get_preset
from servicemaster.services.store import (
    list_unit_files,
    resolve_unit_dir,
    rewrite_unit_file,
    unit_path_for,
    write_unit_file,
)
from servicemaster.supervisor.base import SupervisorAdapter


@dataclass
class PhaseOutcome:
    """Result of a best-effort step followed by a required step.

    ``best_effort_error`` is informational only; a failed required step raises.
    """
    message: str
    best_effort_error: Exception | None = None


def sort_services(services: list[ServiceDescriptor]) -> list[ServiceDescriptor]:
    """Explicit order ascending first, then unordered services by label."""
    def key(s: ServiceDescriptor):
        if s.order is None:
            return (1, 0, s.label)
        return (0, s.order, "")
    return sorted(services, key=key)


class ServiceManager:
    """Compose a supervisor adapter, the unit-file store and the metadata overlay."""

    def __init__(
        self,
        adapter: SupervisorAdapter | None = None,
        settings_store: SettingsStore | None = None,
        metadata_store: MetadataStore | None = None,
    ):
        if adapter is None:
            from servicemaster.supervisor import get_adapter
            adapter = get_adapter()
        self.adapter = adapter
        self.settings_store = settings_store or SettingsStore()
        self.metadata_store = metadata_store or MetadataStore()

    @property
    def unit_dir(self) -> Path:
        return resolve_unit_dir(self.settings_store.load(), self.adapter)

    def unit_path(self, label: str) -> Path:
        return unit_path_for(self.unit_dir, label)

    def list_services(self) -> list[ServiceDescriptor]:
        """Every unit file, with live status and metadata merged, in display order."""
        descriptors = list_unit_files(self.unit_dir)
        if not descriptors:
            return []
        loaded = self.adapter.loaded_units()
        metadata = self.metadata_store.load_all()

        for descriptor in descriptors:
            if descriptor.label in loaded:
                descriptor.is_loaded = True
                descriptor.pid = loaded[descriptor.label]
            if descriptor.label in metadata:
                descriptor.metadata = metadata[descriptor.label]
        return sort_services(descriptors)

    def load(self, unit_path: Path) -> str:
        message = self.adapter.load(Path(unit_path))
        logger.info(f"Loaded {unit_path}")
        return message

    def unload(self, unit_path: Path) -> str:
        message = self.adapter.unload(Path(unit_path))
        logger.info(f"Unloaded {unit_path}")
        return message

    def restart(self, unit_path: Path) -> str:
        message = self.adapter.restart(Path(unit_path))
        logger.info(f"Restarted {unit_path}")
        return message

    def create(self, config: ServiceConfig) -> Path:
        """Write a new unit file. An existing file with the same label is overwritten."""
        path = write_unit_file(config, self.unit_dir)
        logger.info(f"Created {path}")
        return path

    def create_from_preset(self, preset_label: str, **overrides) -> Path:
        """Create a service from a built-in preset and record its metadata."""
        preset = get_preset(preset_label)
        if preset is None:
            raise ServiceNotFoundError(f"Unknown preset: {preset_label}")
        config = preset.to_config(**overrides)
        path = self.create(config)
        self.metadata_store.upsert(config.label, preset.to_metadata())
        return path

    def update(self, unit_path: Path, config: ServiceConfig) -> PhaseOutcome:
        """Stop the old unit (best effort) and rewrite its file.

        The file is renamed when the label changes so exactly one unit file
        remains; a label already owned by another unit file is refused before
        anything is touched. The service is not reloaded.
        """
        unit_path = Path(unit_path)
        if not unit_path.is_file():
            raise ServiceNotFoundError(f"Service file not found: {unit_path}")

        new_path = unit_path_for(unit_path.parent, config.label)
        if new_path != unit_path and new_path.exists():
            raise ServiceMasterError(f"Another service already uses label {config.label}: {new_path}")

        stop_error = self._best_effort_stop(unit_path)

        rewrite_unit_file(new_path, config)
        if new_path != unit_path:
            try:
                unit_path.unlink()
            except OSError as e:
                raise TransportError(f"Failed to remove {unit_path}: {e}") from e
        logger.info(f"Updated {new_path}")
        return PhaseOutcome("Service updated successfully", stop_error)

    def delete(self, unit_path: Path) -> PhaseOutcome:
        """Stop and disable the unit (best effort), then remove its file."""
        unit_path = Path(unit_path)
        if not unit_path.is_file():
            raise ServiceNotFoundError(f"Service file not found: {unit_path}")

        stop_error = self._best_effort_stop(unit_path)
        if self.adapter.supports_disable:
            try:
                self.adapter.disable(unit_path)
            except ServiceMasterError as e:
                logger.debug(f"Ignoring disable failure for {unit_path}: {e}")

        try:
            unit_path.unlink()
        except OSError as e:
            raise TransportError(f"Failed to remove {unit_path}: {e}") from e
        logger.info(f"Deleted {unit_path}")
        return PhaseOutcome("Service deleted successfully", stop_error)

    def _best_effort_stop(self, unit_path: Path) -> Exception | None:
        try:
            self.adapter.unload(unit_path)
        except ServiceMasterError as e:
            logger.debug(f"Ignoring unload failure for {unit_path}: {e}")
            return e
        return None
