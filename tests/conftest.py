"""Shared fixtures: isolated config directory and a recording supervisor."""

from pathlib import Path

import pytest

from servicemaster.config.loader import MetadataStore, SettingsStore
from servicemaster.supervisor.base import SupervisorAdapter, SupervisorError


class FakeAdapter(SupervisorAdapter):
    """Records supervisor calls instead of running launchctl/systemctl."""

    name = "fake"

    def __init__(self, unit_dir: Path, loaded=None, fail_unload=False, supports_disable=False):
        self.unit_dir = unit_dir
        self.loaded = dict(loaded or {})
        self.fail_unload = fail_unload
        self.supports_disable = supports_disable
        self.calls: list[tuple[str, Path]] = []

    def default_unit_dir(self) -> Path:
        return self.unit_dir

    def load(self, unit_path: Path) -> str:
        self.calls.append(("load", unit_path))
        return "loaded"

    def unload(self, unit_path: Path) -> str:
        self.calls.append(("unload", unit_path))
        if self.fail_unload:
            raise SupervisorError("Could not find specified service")
        return "unloaded"

    def disable(self, unit_path: Path) -> None:
        self.calls.append(("disable", unit_path))

    def loaded_units(self) -> dict[str, int | None]:
        return dict(self.loaded)


@pytest.fixture(autouse=True)
def config_dir(tmp_path, monkeypatch) -> Path:
    """Point settings.json / metadata.json at a temp directory."""
    path = tmp_path / "config"
    monkeypatch.setenv("SERVICEMASTER_CONFIG_DIR", str(path))
    return path


@pytest.fixture
def unit_dir(tmp_path) -> Path:
    path = tmp_path / "units"
    path.mkdir()
    return path


@pytest.fixture
def settings_store(config_dir) -> SettingsStore:
    return SettingsStore(config_dir / "settings.json")


@pytest.fixture
def metadata_store(config_dir) -> MetadataStore:
    return MetadataStore(config_dir / "metadata.json")


@pytest.fixture
def adapter(unit_dir) -> FakeAdapter:
    return FakeAdapter(unit_dir)
