"""Read and write property-list unit files.

Only ``.plist`` files are understood. A systemd ``.service`` format is not
parsed; on Linux the unit directory holds property-list descriptors too.
"""

import os
import plistlib
import tempfile
from pathlib import Path
from xml.parsers.expat import ExpatError

from loguru import logger

from servicemaster.config.schema import AppSettings
from servicemaster.errors import ServiceNotFoundError, TransportError, UnitParseError
from servicemaster.services.models import UNIT_KEYS, ServiceConfig, ServiceDescriptor
from servicemaster.supervisor.base import SupervisorAdapter

UNIT_SUFFIX = ".plist"


def resolve_unit_dir(settings: AppSettings, adapter: SupervisorAdapter) -> Path:
    """Return the configured override directory if valid, else the adapter default."""
    if settings.config_path:
        override = Path(settings.config_path).expanduser()
        if override.is_dir():
            return override
        logger.warning(f"Configured unit directory {override} is not a directory, using default")
    return adapter.default_unit_dir()


def unit_path_for(directory: Path, label: str) -> Path:
    return Path(directory) / f"{label}{UNIT_SUFFIX}"


def parse_unit(data: object) -> ServiceConfig | None:
    """Build a ServiceConfig from a decoded plist. None if there is no string Label.

    Values of the wrong type are treated as absent; non-string array items and
    environment values are dropped.
    """
    if not isinstance(data, dict):
        return None
    label = data.get("Label")
    if not isinstance(label, str):
        return None

    def string(key: str) -> str | None:
        value = data.get(key)
        return value if isinstance(value, str) else None

    def boolean(key: str) -> bool | None:
        value = data.get(key)
        return value if isinstance(value, bool) else None

    args = data.get("ProgramArguments")
    env = data.get("EnvironmentVariables")
    try:
        return ServiceConfig(
            label=label,
            program=string("Program"),
            program_arguments=[a for a in args if isinstance(a, str)] if isinstance(args, list) else None,
            run_at_load=boolean("RunAtLoad"),
            keep_alive=boolean("KeepAlive"),
            working_directory=string("WorkingDirectory"),
            standard_out_path=string("StandardOutPath"),
            standard_error_path=string("StandardErrorPath"),
            environment_variables=(
                {k: v for k, v in env.items() if isinstance(v, str)} if isinstance(env, dict) else None
            ),
        )
    except ValueError:
        return None


def render_unit(config: ServiceConfig) -> dict:
    """Render the plist dictionary. Unset fields are omitted."""
    values = config.model_dump()
    return {key: values[field] for field, key in UNIT_KEYS.items() if values[field] is not None}


def _load_plist(path: Path) -> object:
    with open(path, "rb") as f:
        return plistlib.load(f)


def read_unit_file(path: Path) -> ServiceDescriptor:
    """Load a single unit file. Missing or malformed files raise."""
    path = Path(path)
    if not path.is_file():
        raise ServiceNotFoundError(f"Service file not found: {path}")
    try:
        config = parse_unit(_load_plist(path))
    except (OSError, ValueError, ExpatError) as e:
        raise UnitParseError(f"Cannot parse {path}: {e}") from e
    if config is None:
        raise UnitParseError(f"Cannot parse {path}: missing Label")
    return ServiceDescriptor(**config.model_dump(), file_path=str(path))


def list_unit_files(directory: Path) -> list[ServiceDescriptor]:
    """Parse every unit file in *directory*, in file name order.

    Unparsable files are skipped; the directory may hold foreign files.
    A missing directory yields an empty list.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []
    try:
        paths = sorted(p for p in directory.iterdir() if p.suffix == UNIT_SUFFIX)
    except OSError as e:
        raise TransportError(f"Cannot read {directory}: {e}") from e

    descriptors = []
    for path in paths:
        try:
            descriptors.append(read_unit_file(path))
        except (ServiceNotFoundError, UnitParseError) as e:
            logger.debug(f"Skipping {path.name}: {e}")
    return descriptors


def rewrite_unit_file(path: Path, config: ServiceConfig) -> Path:
    """Atomically (re)write the unit file at *path*."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                plistlib.dump(render_unit(config), f)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise TransportError(f"Failed to write {path}: {e}") from e
    return path


def write_unit_file(config: ServiceConfig, directory: Path) -> Path:
    """Write ``<directory>/<label>.plist``, overwriting any existing file."""
    return rewrite_unit_file(unit_path_for(directory, config.label), config)
