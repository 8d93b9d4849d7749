"""Service descriptor types."""

from pydantic import BaseModel, Field, field_validator

from servicemaster.config.schema import ServiceMetadata

# Field name -> property-list key, in the order keys are written.
UNIT_KEYS: dict[str, str] = {
    "label": "Label",
    "program": "Program",
    "program_arguments": "ProgramArguments",
    "run_at_load": "RunAtLoad",
    "keep_alive": "KeepAlive",
    "working_directory": "WorkingDirectory",
    "standard_out_path": "StandardOutPath",
    "standard_error_path": "StandardErrorPath",
    "environment_variables": "EnvironmentVariables",
}


class ServiceConfig(BaseModel):
    """The fields persisted in a unit file. ``None`` means absent."""
    label: str
    program: str | None = None
    program_arguments: list[str] | None = None
    run_at_load: bool | None = None
    keep_alive: bool | None = None
    working_directory: str | None = None
    standard_out_path: str | None = None
    standard_error_path: str | None = None
    environment_variables: dict[str, str] | None = None

    @field_validator("label")
    @classmethod
    def _label_is_file_name(cls, v: str) -> str:
        # The unit file name is derived from the label.
        if not v or v in (".", "..") or "/" in v or "\\" in v:
            raise ValueError(f"invalid service label: {v!r}")
        return v


class ServiceDescriptor(ServiceConfig):
    """A unit file as discovered on disk, with live status and overlay merged in.

    ``is_loaded`` and ``pid`` are computed at read time and never persisted.
    """
    file_path: str
    is_loaded: bool = False
    pid: int | None = None
    metadata: ServiceMetadata = Field(default_factory=ServiceMetadata)

    @property
    def order(self) -> int | None:
        return self.metadata.order

    @property
    def display_name(self) -> str:
        return self.metadata.display_name or self.label

    def to_config(self) -> ServiceConfig:
        return ServiceConfig.model_validate(self.model_dump(include=set(UNIT_KEYS)))
