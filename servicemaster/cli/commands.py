"""CLI commands for servicemaster."""

import json
import sys
from pathlib import Path
from typing import NoReturn

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from servicemaster import __logo__, __version__
from servicemaster.errors import ServiceMasterError

app = typer.Typer(
    name="servicemaster",
    help=f"{__logo__} servicemaster - manage user-level background services",
    no_args_is_help=True,
)

console = Console()


def _fail(e: Exception | str) -> NoReturn:
    console.print(f"[red]Error: {e}[/red]")
    raise typer.Exit(1)


def _manager():
    from servicemaster.services import ServiceManager
    return ServiceManager()


def _unit_path(manager, target: str) -> Path:
    """Accept either a unit file path or a service label."""
    path = Path(target).expanduser()
    if path.suffix == ".plist" or path.is_file():
        return path
    return manager.unit_path(target)


def _parse_env(pairs: list[str] | None) -> dict[str, str] | None:
    if not pairs:
        return None
    env = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{pair}'")
        env[key] = value
    return env


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} servicemaster v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """servicemaster - manage user-level background services."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


# ============================================================================
# Services
# ============================================================================


@app.command("list")
def list_services(
    probe: bool = typer.Option(False, "--probe", "-p", help="Check ports and health URLs"),
):
    """List declared services with their live status."""
    from servicemaster.services.probes import health_check, port_open

    try:
        services = _manager().list_services()
    except ServiceMasterError as e:
        _fail(e)

    if not services:
        console.print("No services found.")
        return

    table = Table(title="Services")
    table.add_column("Label", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("PID")
    table.add_column("Port")
    if probe:
        table.add_column("Health")

    for s in services:
        status = "[green]loaded[/green]" if s.is_loaded else "[dim]unloaded[/dim]"
        port = str(s.metadata.port) if s.metadata.port else ""
        row = [s.label, s.display_name, status, str(s.pid) if s.pid else "", port]
        if probe:
            if s.metadata.health_url:
                healthy = health_check(s.metadata.health_url)
            elif s.metadata.port:
                healthy = port_open(s.metadata.port)
            else:
                healthy = None
            row.append({True: "[green]✓[/green]", False: "[red]✗[/red]", None: ""}[healthy])
        table.add_row(*row)

    console.print(table)


@app.command()
def show(target: str = typer.Argument(..., help="Service label or unit file path")):
    """Show one service as JSON."""
    manager = _manager()
    path = _unit_path(manager, target)
    try:
        services = manager.list_services()
    except ServiceMasterError as e:
        _fail(e)
    for s in services:
        if Path(s.file_path) == path:
            console.print_json(s.model_dump_json())
            return
    _fail(f"Service not found: {target}")


@app.command()
def load(target: str = typer.Argument(..., help="Service label or unit file path")):
    """Load (start) a service."""
    manager = _manager()
    try:
        console.print(f"[green]{manager.load(_unit_path(manager, target))}[/green]")
    except ServiceMasterError as e:
        _fail(e)


@app.command()
def unload(target: str = typer.Argument(..., help="Service label or unit file path")):
    """Unload (stop) a service."""
    manager = _manager()
    try:
        console.print(f"[green]{manager.unload(_unit_path(manager, target))}[/green]")
    except ServiceMasterError as e:
        _fail(e)


@app.command()
def restart(target: str = typer.Argument(..., help="Service label or unit file path")):
    """Unload then load a service."""
    manager = _manager()
    try:
        console.print(f"[green]{manager.restart(_unit_path(manager, target))}[/green]")
    except ServiceMasterError as e:
        _fail(e)


@app.command()
def create(
    label: str = typer.Option(None, "--label", "-l", help="Service label"),
    preset: str = typer.Option(None, "--preset", help="Start from a built-in preset"),
    program: str = typer.Option(None, "--program", help="Executable path"),
    args: list[str] = typer.Option(None, "--arg", "-a", help="Program argument (repeatable)"),
    run_at_load: bool = typer.Option(None, "--run-at-load/--no-run-at-load"),
    keep_alive: bool = typer.Option(None, "--keep-alive/--no-keep-alive"),
    workdir: str = typer.Option(None, "--workdir", "-w", help="Working directory"),
    stdout: str = typer.Option(None, "--stdout", help="Standard output log path"),
    stderr: str = typer.Option(None, "--stderr", help="Standard error log path"),
    env: list[str] = typer.Option(None, "--env", "-e", help="KEY=VALUE (repeatable)"),
):
    """Create a service unit file. The service is not loaded."""
    from pydantic import ValidationError

    from servicemaster.services.models import ServiceConfig

    fields = {
        "label": label,
        "program": program,
        "program_arguments": list(args) if args else None,
        "run_at_load": run_at_load,
        "keep_alive": keep_alive,
        "working_directory": workdir,
        "standard_out_path": stdout,
        "standard_error_path": stderr,
        "environment_variables": _parse_env(env),
    }
    manager = _manager()
    try:
        if preset:
            path = manager.create_from_preset(preset, **fields)
        else:
            if not label:
                raise typer.BadParameter("--label is required without --preset")
            path = manager.create(ServiceConfig(**fields))
    except ValidationError as e:
        _fail(e)
    except ServiceMasterError as e:
        _fail(e)
    console.print(f"[green]Created[/green] {path}")


@app.command()
def update(
    target: str = typer.Argument(..., help="Service label or unit file path"),
    label: str = typer.Option(None, "--label", "-l", help="New label"),
    program: str = typer.Option(None, "--program"),
    args: list[str] = typer.Option(None, "--arg", "-a", help="Program argument (repeatable)"),
    run_at_load: bool = typer.Option(None, "--run-at-load/--no-run-at-load"),
    keep_alive: bool = typer.Option(None, "--keep-alive/--no-keep-alive"),
    workdir: str = typer.Option(None, "--workdir", "-w"),
    stdout: str = typer.Option(None, "--stdout"),
    stderr: str = typer.Option(None, "--stderr"),
    env: list[str] = typer.Option(None, "--env", "-e", help="KEY=VALUE (repeatable)"),
):
    """Rewrite a service unit file. Unset options keep their current value."""
    from pydantic import ValidationError

    from servicemaster.services.models import ServiceConfig
    from servicemaster.services.store import read_unit_file

    manager = _manager()
    path = _unit_path(manager, target)
    changes = {
        "label": label,
        "program": program,
        "program_arguments": list(args) if args else None,
        "run_at_load": run_at_load,
        "keep_alive": keep_alive,
        "working_directory": workdir,
        "standard_out_path": stdout,
        "standard_error_path": stderr,
        "environment_variables": _parse_env(env),
    }
    try:
        current = read_unit_file(path).to_config().model_dump()
        current.update({k: v for k, v in changes.items() if v is not None})
        outcome = manager.update(path, ServiceConfig(**current))
    except ValidationError as e:
        _fail(e)
    except ServiceMasterError as e:
        _fail(e)
    console.print(f"[green]{outcome.message}[/green]")


@app.command()
def delete(
    target: str = typer.Argument(..., help="Service label or unit file path"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Stop a service and remove its unit file."""
    manager = _manager()
    path = _unit_path(manager, target)
    if not yes:
        typer.confirm(f"Delete {path}?", abort=True)
    try:
        outcome = manager.delete(path)
    except ServiceMasterError as e:
        _fail(e)
    console.print(f"[green]{outcome.message}[/green]")


@app.command()
def presets():
    """List built-in service presets."""
    from servicemaster.services.presets import get_presets

    table = Table(title="Presets")
    table.add_column("Label", style="cyan")
    table.add_column("Name")
    table.add_column("Command")
    table.add_column("Port")
    for p in get_presets():
        command = " ".join(filter(None, [p.program, *(p.program_arguments or ())]))
        table.add_row(p.label, p.display_name, command, str(p.port or ""))
    console.print(table)


@app.command()
def platform():
    """Show the detected platform and unit directory."""
    manager = _manager()
    from servicemaster.supervisor import detect_platform

    console.print(f"Platform:   {detect_platform()}")
    console.print(f"Supervisor: {manager.adapter.name}")
    console.print(f"Units:      {manager.unit_dir}")


# ============================================================================
# Metadata
# ============================================================================


meta_app = typer.Typer(help="Manage service metadata")
app.add_typer(meta_app, name="meta")


@meta_app.command("get")
def meta_get(label: str = typer.Argument(None, help="Service label; omit for all")):
    """Print metadata as JSON."""
    from servicemaster.config.loader import MetadataStore

    store = MetadataStore()
    if label is None:
        data = {k: v.model_dump(mode="json") for k, v in store.load_all().items()}
    else:
        meta = store.get(label)
        data = meta.model_dump(mode="json") if meta else None
    console.print_json(json.dumps(data))


@meta_app.command("set")
def meta_set(
    label: str = typer.Argument(..., help="Service label"),
    display_name: str = typer.Option(None, "--name", "-n"),
    description: str = typer.Option(None, "--description", "-d"),
    icon: str = typer.Option(None, "--icon"),
    port: int = typer.Option(None, "--port", "-p"),
    health_url: str = typer.Option(None, "--health-url"),
    order: int = typer.Option(None, "--order"),
    project_path: str = typer.Option(None, "--project"),
    app_path: str = typer.Option(None, "--app"),
):
    """Set metadata fields for a service. Unset options are left unchanged."""
    from pydantic import ValidationError

    from servicemaster.config.loader import MetadataStore
    from servicemaster.config.schema import ServiceMetadata

    store = MetadataStore()
    current = store.get(label) or ServiceMetadata()
    changes = {
        "display_name": display_name,
        "description": description,
        "icon": icon,
        "port": port,
        "health_url": health_url,
        "order": order,
        "project_path": project_path,
        "app_path": app_path,
    }
    try:
        meta = ServiceMetadata.model_validate(
            {**current.model_dump(), **{k: v for k, v in changes.items() if v is not None}}
        )
        store.upsert(label, meta)
    except ValidationError as e:
        _fail(e)
    except ServiceMasterError as e:
        _fail(e)
    console.print(f"[green]Metadata saved for {label}[/green]")


@meta_app.command("import")
def meta_import(file: Path = typer.Argument(..., help="JSON file mapping label to metadata")):
    """Merge metadata from a JSON file."""
    from pydantic import TypeAdapter, ValidationError

    from servicemaster.config.loader import MetadataStore
    from servicemaster.config.schema import ServiceMetadata

    try:
        data = TypeAdapter(dict[str, ServiceMetadata]).validate_json(file.read_bytes())
        MetadataStore().bulk_import(data)
    except (OSError, ValidationError) as e:
        _fail(e)
    except ServiceMasterError as e:
        _fail(e)
    console.print(f"[green]Imported metadata for {len(data)} service(s)[/green]")


@meta_app.command("order")
def meta_order(labels: list[str] = typer.Argument(..., help="Labels in display order")):
    """Set the display order of services."""
    from servicemaster.config.loader import MetadataStore

    try:
        MetadataStore().reorder({label: i for i, label in enumerate(labels)})
    except ServiceMasterError as e:
        _fail(e)
    console.print("[green]Order updated[/green]")


# ============================================================================
# Settings
# ============================================================================


settings_app = typer.Typer(help="Manage application settings")
app.add_typer(settings_app, name="settings")


@settings_app.command("show")
def settings_show():
    """Print settings (password masked)."""
    from servicemaster.config.loader import SettingsStore

    data = SettingsStore().load().model_dump(mode="json")
    if data.get("webdav_password"):
        data["webdav_password"] = "********"
    console.print_json(json.dumps(data))


@settings_app.command("set")
def settings_set(
    key: str = typer.Argument(..., help="Setting name, e.g. webdav_url"),
    value: str = typer.Argument(None, help="New value; omit to clear"),
):
    """Set one setting."""
    from pydantic import ValidationError

    from servicemaster.config.loader import SettingsStore
    from servicemaster.config.schema import AppSettings

    if key not in AppSettings.model_fields:
        _fail(f"Unknown setting '{key}'. Available: {', '.join(AppSettings.model_fields)}")

    store = SettingsStore()
    try:
        settings = AppSettings.model_validate({**store.load().model_dump(), key: value})
        store.save(settings)
    except ValidationError as e:
        _fail(e)
    except ServiceMasterError as e:
        _fail(e)
    console.print(f"[green]{key} updated[/green]")


# ============================================================================
# Sync
# ============================================================================


sync_app = typer.Typer(help="Sync metadata and settings with WebDAV")
app.add_typer(sync_app, name="sync")


def _sync_target(url: str | None, username: str | None, password: str | None):
    from servicemaster.config.loader import SettingsStore

    settings = SettingsStore().load()
    url = url or settings.webdav_url
    if not url:
        _fail("No WebDAV URL configured. Run: servicemaster settings set webdav_url <url>")
    return url, username or settings.webdav_username or "", password or settings.webdav_password or ""


_URL = typer.Option(None, "--url", help="WebDAV collection URL")
_USER = typer.Option(None, "--username", "-u")
_PASS = typer.Option(None, "--password", "-p")


@sync_app.command("test")
def sync_test(url: str = _URL, username: str = _USER, password: str = _PASS):
    """Check the WebDAV connection."""
    from servicemaster.sync import WebDAVSyncEngine

    try:
        console.print(f"[green]{WebDAVSyncEngine().test_connection(*_sync_target(url, username, password))}[/green]")
    except ServiceMasterError as e:
        _fail(e)


@sync_app.command("init")
def sync_init(url: str = _URL, username: str = _USER, password: str = _PASS):
    """Create the WebDAV collection if it does not exist."""
    from servicemaster.sync import WebDAVSyncEngine

    try:
        WebDAVSyncEngine().ensure_directory(*_sync_target(url, username, password))
    except ServiceMasterError as e:
        _fail(e)
    console.print("[green]Directory ready[/green]")


@sync_app.command("push")
def sync_push(url: str = _URL, username: str = _USER, password: str = _PASS):
    """Upload metadata and settings."""
    from servicemaster.sync import WebDAVSyncEngine

    try:
        console.print(f"[green]{WebDAVSyncEngine().push(*_sync_target(url, username, password))}[/green]")
    except ServiceMasterError as e:
        _fail(e)


@sync_app.command("pull")
def sync_pull(url: str = _URL, username: str = _USER, password: str = _PASS):
    """Download and apply metadata and settings."""
    from servicemaster.sync import WebDAVSyncEngine

    try:
        console.print(f"[green]{WebDAVSyncEngine().pull(*_sync_target(url, username, password))}[/green]")
    except ServiceMasterError as e:
        _fail(e)


# ============================================================================
# Probes
# ============================================================================


probe_app = typer.Typer(help="Inspect ports and processes")
app.add_typer(probe_app, name="probe")


@probe_app.command("port")
def probe_port(port: int = typer.Argument(...)):
    """Check whether a local TCP port accepts connections."""
    from servicemaster.services.probes import port_open

    if port_open(port):
        console.print(f"Port {port}: [green]open[/green]")
    else:
        console.print(f"Port {port}: [red]closed[/red]")
        raise typer.Exit(1)


@probe_app.command("health")
def probe_health(url: str = typer.Argument(...)):
    """GET a health URL."""
    from servicemaster.services.probes import health_check

    if health_check(url):
        console.print(f"{url}: [green]healthy[/green]")
    else:
        console.print(f"{url}: [red]unhealthy[/red]")
        raise typer.Exit(1)


@probe_app.command("pid")
def probe_pid(port: int = typer.Argument(...)):
    """Show the PID listening on a port."""
    from servicemaster.services.probes import process_by_port

    try:
        pid = process_by_port(port)
    except ServiceMasterError as e:
        _fail(e)
    if pid is None:
        console.print(f"[yellow]Nothing is listening on port {port}[/yellow]")
        raise typer.Exit(1)
    console.print(str(pid))


@probe_app.command("kill")
def probe_kill(pid: int = typer.Argument(...)):
    """Forcefully terminate a process."""
    from servicemaster.services.probes import kill_by_pid

    try:
        console.print(f"[green]{kill_by_pid(pid)}[/green]")
    except ServiceMasterError as e:
        _fail(e)


@probe_app.command("app-running")
def probe_app_running(name: str = typer.Argument(...)):
    """Check whether an application is running."""
    from servicemaster.services.probes import process_running_by_name

    try:
        running = process_running_by_name(name)
    except ServiceMasterError as e:
        _fail(e)
    console.print(f"{name}: {'[green]running[/green]' if running else '[dim]not running[/dim]'}")
    if not running:
        raise typer.Exit(1)


@probe_app.command("quit-app")
def probe_quit_app(name: str = typer.Argument(...)):
    """Quit an application by name."""
    from servicemaster.services.probes import kill_by_name

    try:
        console.print(f"[green]{kill_by_name(name)}[/green]")
    except ServiceMasterError as e:
        _fail(e)


@probe_app.command("open")
def probe_open(url: str = typer.Argument(...)):
    """Open a URL in the default browser."""
    from servicemaster.services.probes import open_url

    try:
        open_url(url)
    except ServiceMasterError as e:
        _fail(e)


if __name__ == "__main__":
    app()
