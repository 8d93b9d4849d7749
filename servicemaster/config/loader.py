"""Load and save the settings and metadata documents."""

import json
import os
import tempfile
from pathlib import Path

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from servicemaster.config.schema import AppSettings, ServiceMetadata
from servicemaster.errors import TransportError
from servicemaster.supervisor.resolve import get_app_dir

_METADATA_ADAPTER = TypeAdapter(dict[str, ServiceMetadata])


def get_settings_path() -> Path:
    """Get the default settings file path."""
    return get_app_dir() / "settings.json"


def get_metadata_path() -> Path:
    """Get the default metadata file path."""
    return get_app_dir() / "metadata.json"


def write_json_atomic(path: Path, data) -> None:
    """Write *data* as pretty JSON, replacing *path* in one rename."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise TransportError(f"Failed to write {path}: {e}") from e


class SettingsStore:
    """Whole-document persistence for AppSettings."""

    def __init__(self, path: Path | None = None):
        self.path = path or get_settings_path()

    def load(self) -> AppSettings:
        """Load settings from file or return defaults."""
        if self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as f:
                    return AppSettings.model_validate(json.load(f))
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Failed to load settings from {self.path}: {e}. Using defaults.")
        return AppSettings()

    def save(self, settings: AppSettings) -> None:
        write_json_atomic(self.path, settings.model_dump(mode="json"))
        logger.debug(f"Settings saved to {self.path}")


class MetadataStore:
    """The metadata overlay: one document mapping label -> ServiceMetadata.

    Every operation is a whole-document read-modify-write.
    """

    def __init__(self, path: Path | None = None):
        self.path = path or get_metadata_path()

    def load_all(self) -> dict[str, ServiceMetadata]:
        if self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as f:
                    return _METADATA_ADAPTER.validate_python(json.load(f))
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Failed to load metadata from {self.path}: {e}. Starting empty.")
        return {}

    def save_all(self, metadata: dict[str, ServiceMetadata]) -> None:
        write_json_atomic(self.path, _METADATA_ADAPTER.dump_python(metadata, mode="json"))

    def get(self, label: str) -> ServiceMetadata | None:
        return self.load_all().get(label)

    def upsert(self, label: str, metadata: ServiceMetadata) -> None:
        current = self.load_all()
        current[label] = metadata
        self.save_all(current)
        logger.info(f"Metadata saved for {label}")

    def bulk_import(self, metadata: dict[str, ServiceMetadata]) -> None:
        """Merge *metadata* in: given labels are overwritten, others untouched."""
        current = self.load_all()
        current.update(metadata)
        self.save_all(current)
        logger.info(f"Imported metadata for {len(metadata)} service(s)")

    def reorder(self, orders: dict[str, int]) -> None:
        """Set the display order of each label, creating blank entries as needed."""
        current = self.load_all()
        for label, order in orders.items():
            entry = current.get(label) or ServiceMetadata()
            current[label] = entry.model_copy(update={"order": order})
        self.save_all(current)
