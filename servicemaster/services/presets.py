"""Built-in service templates used to pre-fill ``create``."""

from dataclasses import dataclass

from servicemaster.config.schema import ServiceMetadata
from servicemaster.services.models import ServiceConfig


@dataclass(frozen=True)
class PresetService:
    label: str
    display_name: str
    description: str
    icon: str
    program: str | None = None
    program_arguments: tuple[str, ...] | None = None
    working_directory: str | None = None
    port: int | None = None
    health_url: str | None = None
    run_at_load: bool = False
    keep_alive: bool = False
    app_path: str | None = None  # Launches a GUI application instead of a daemon

    def to_config(self, **overrides) -> ServiceConfig:
        """Unit fields for this preset, with *overrides* applied."""
        fields = {
            "label": self.label,
            "program": self.program,
            "program_arguments": list(self.program_arguments) if self.program_arguments else None,
            "run_at_load": self.run_at_load,
            "keep_alive": self.keep_alive,
            "working_directory": self.working_directory,
        }
        fields.update({k: v for k, v in overrides.items() if v is not None})
        return ServiceConfig(**fields)

    def to_metadata(self) -> ServiceMetadata:
        return ServiceMetadata(
            display_name=self.display_name,
            description=self.description,
            icon=self.icon,
            port=self.port,
            health_url=self.health_url,
            app_path=self.app_path,
        )


PRESETS: tuple[PresetService, ...] = (
    PresetService(
        label="com.user.cliproxy",
        display_name="CLIProxy",
        description="CLI proxy service - API relay",
        icon="globe",
        program_arguments=("./cli-proxy-api",),
        port=8317,
        health_url="http://127.0.0.1:8317/management.html",
        run_at_load=True,
        keep_alive=True,
    ),
    PresetService(
        label="com.user.openwebui",
        display_name="OpenWebUI",
        description="Open-source AI chat interface",
        icon="terminal",
        program_arguments=("open-webui", "serve"),
        port=3000,
        health_url="http://127.0.0.1:8080",
        run_at_load=True,
        keep_alive=True,
    ),
    PresetService(
        label="com.user.antigravitytools",
        display_name="AntigravityTools",
        description="Antigravity developer tools",
        icon="cpu",
        program="open",
        program_arguments=("-a", "AntigravityTools"),
        app_path="AntigravityTools",
    ),
)


def get_presets() -> list[PresetService]:
    return list(PRESETS)


def get_preset(label: str) -> PresetService | None:
    for preset in PRESETS:
        if preset.label == label:
            return preset
    return None
