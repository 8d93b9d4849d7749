"""Liveness probes: TCP ports, HTTP health endpoints and OS processes."""

import os
import socket
import subprocess

import httpx
import psutil
from loguru import logger

from servicemaster.errors import ServiceMasterError, TransportError
from servicemaster.supervisor.resolve import detect_platform

PORT_TIMEOUT = 0.5
HEALTH_TIMEOUT = 2.0


def port_open(port: int, host: str = "127.0.0.1", timeout: float = PORT_TIMEOUT) -> bool:
    """True if something accepts TCP connections on *host*:*port*."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except (OSError, OverflowError, ValueError):
        return False


def health_check(url: str, timeout: float = HEALTH_TIMEOUT) -> bool:
    """GET *url*; any 2xx or 3xx answer is healthy. Never raises."""
    try:
        response = httpx.get(url, timeout=timeout)
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        logger.debug(f"Health check {url} failed: {e}")
        return False
    return 200 <= response.status_code < 400


def normalize_process_name(name: str) -> str:
    """Lower-case and strip spaces, hyphens and underscores."""
    return name.lower().replace(" ", "").replace("-", "").replace("_", "")


def names_match(wanted: str, candidate: str) -> bool:
    """Substring match in either direction on normalized names."""
    a = normalize_process_name(wanted)
    b = normalize_process_name(candidate)
    if not a or not b:
        return False
    return a in b or b in a


def _run(args: list[str]) -> subprocess.CompletedProcess:
    logger.debug(f"Running: {' '.join(args)}")
    try:
        return subprocess.run(args, capture_output=True, text=True)
    except OSError as e:
        raise TransportError(f"Failed to run {args[0]}: {e}") from e


def _other_processes(attrs: list[str]):
    """psutil processes, excluding this one."""
    own_pid = os.getpid()
    for proc in psutil.process_iter(attrs):
        if proc.pid != own_pid:
            yield proc


def _process_name(proc) -> str:
    try:
        name = proc.info["name"] or ""
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return ""
    return name[:-4] if name.lower().endswith(".exe") else name


def _listening_pids(connections, port: int) -> list[int | None]:
    return [
        conn.pid
        for conn in connections
        if conn.status == psutil.CONN_LISTEN and conn.laddr and conn.laddr.port == port
    ]


def process_by_port(port: int) -> int | None:
    """PID of the process listening on *port*, if any."""
    try:
        pids = [pid for pid in _listening_pids(psutil.net_connections(kind="tcp"), port) if pid]
    except psutil.AccessDenied:
        # System-wide tables need root on macOS; walk our own processes instead.
        pids = []
        for proc in psutil.process_iter(["pid"]):
            try:
                found = _listening_pids(proc.net_connections(kind="tcp"), port)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            if found:
                pids.append(proc.pid)
    return min(pids) if pids else None


def kill_by_pid(pid: int) -> str:
    """Forcefully terminate *pid*."""
    try:
        psutil.Process(pid).kill()
    except psutil.NoSuchProcess as e:
        raise ServiceMasterError(f"No such process: {pid}") from e
    except psutil.AccessDenied as e:
        raise ServiceMasterError(f"Permission denied killing process {pid}") from e
    logger.info(f"Killed process {pid}")
    return "Process killed successfully"


def list_process_names(platform: str | None = None) -> list[str]:
    """Names of the running processes, as the platform reports them."""
    platform = platform or detect_platform()
    if platform == "macos":
        result = _run(["osascript", "-e", 'tell application "System Events" to name of processes'])
        names = result.stdout.split(",") if result.returncode == 0 else []
    else:
        names = [_process_name(proc) for proc in _other_processes(["name"])]
    return [name.strip() for name in names if name.strip()]


def process_running_by_name(name: str, platform: str | None = None) -> bool:
    """True if a process whose name loosely matches *name* is running."""
    return any(names_match(name, process) for process in list_process_names(platform))


def _kill_matching(name: str) -> int:
    """Kill every process whose name matches *name*; returns how many died."""
    killed = 0
    denied = []
    for proc in _other_processes(["name"]):
        if not names_match(name, _process_name(proc)):
            continue
        try:
            proc.kill()
            killed += 1
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            denied.append(proc.pid)
    if not killed:
        if denied:
            raise ServiceMasterError(f"Permission denied killing {name} (pids {denied})")
        raise ServiceMasterError(f"No running process matches {name}")
    logger.info(f"Killed {killed} process(es) matching {name}")
    return killed


def kill_by_name(name: str, platform: str | None = None) -> str:
    """Quit the application or process named *name*."""
    platform = platform or detect_platform()
    if platform == "macos":
        quit_result = _run(["osascript", "-e", f'quit app "{name}"'])
        if quit_result.returncode == 0:
            return "Application quit successfully"
        try:
            _kill_matching(name)
        except ServiceMasterError as e:
            raise ServiceMasterError(
                f"Failed to quit application. AppleScript: {quit_result.stderr.strip()}, kill: {e}"
            ) from e
        return "Application quit successfully"
    try:
        _kill_matching(name)
    except ServiceMasterError as e:
        raise ServiceMasterError(f"Failed to quit application: {e}") from e
    return "Application quit successfully"


def open_url(url: str, platform: str | None = None) -> None:
    """Open *url* with the desktop's default handler."""
    platform = platform or detect_platform()
    if platform == "macos":
        args = ["open", url]
    elif platform == "windows":
        args = ["cmd", "/C", "start", "", url]
    else:
        args = ["xdg-open", url]
    logger.debug(f"Running: {' '.join(args)}")
    try:
        subprocess.Popen(args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except OSError as e:
        raise TransportError(f"Failed to run {args[0]}: {e}") from e
