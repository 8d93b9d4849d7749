"""Push and pull the metadata overlay and settings to a WebDAV collection.

The remote side stores a single JSON document, ``service-master-sync.json``.
Jianguoyun refuses uploads into its bare ``/dav`` root, so for that root the
document lives in a ``service-master`` subcollection created on demand, and
pulls fall back to the root when the subcollection copy is missing.
"""

from datetime import datetime, timezone

import httpx
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from servicemaster.config.loader import MetadataStore, SettingsStore
from servicemaster.config.schema import AppSettings, ServiceMetadata
from servicemaster.errors import (
    RemoteProtocolError,
    SyncAuthError,
    SyncConnectionError,
    SyncError,
    SyncNotFoundError,
    SyncParseError,
)

SYNC_FILENAME = "service-master-sync.json"
SUBCOLLECTION = "service-master"

PROBE_TIMEOUT = 10.0
TRANSFER_TIMEOUT = 30.0

# MKCOL answers meaning the subcollection now exists.
MKCOL_OK = {201, 301, 405}

AUTH_FAILED = "Authentication failed: check the WebDAV username and password"
NO_SYNC_DATA = "No synced data found. Push your configuration to WebDAV first."
MISSING_DIRECTORY = (
    "Upload failed (404): the WebDAV directory does not exist.\n\n"
    "Create a folder (e.g. service-master) in the provider's web interface, then use "
    "its full path as the server address, e.g.\n"
    "https://dav.jianguoyun.com/dav/service-master/"
)
PROVIDER_ROOT_GUIDANCE = (
    "Cannot create files in the Jianguoyun root directory.\n\n"
    "1. Log in to jianguoyun.com\n"
    "2. Create a folder (e.g. service-master)\n"
    "3. Change the server address to:\n"
    "   https://dav.jianguoyun.com/dav/service-master/\n"
    "4. Save the settings and retry"
)


class SyncPayload(BaseModel):
    """The document exchanged with the remote store."""
    metadata: dict[str, ServiceMetadata] = Field(default_factory=dict)
    settings: AppSettings = Field(default_factory=AppSettings)
    sync_time: str = ""


def is_provider_root(url: str) -> bool:
    """True for a bare Jianguoyun-style ``.../dav`` root."""
    return url.rstrip("/").endswith("/dav")


def sync_file_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}/{SYNC_FILENAME}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class WebDAVSyncEngine:
    """Exchange a SyncPayload with a WebDAV server.

    Args:
        settings_store: Local settings document.
        metadata_store: Local metadata overlay.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
    """

    def __init__(
        self,
        settings_store: SettingsStore | None = None,
        metadata_store: MetadataStore | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.settings_store = settings_store or SettingsStore()
        self.metadata_store = metadata_store or MetadataStore()
        self.transport = transport

    def _client(self, username: str, password: str, timeout: float) -> httpx.Client:
        return httpx.Client(
            auth=httpx.BasicAuth(username, password),
            timeout=timeout,
            transport=self.transport,
        )

    @staticmethod
    def _send(client: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
        logger.debug(f"WebDAV {method} {url}")
        try:
            response = client.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SyncConnectionError(f"Connection failed: {e}") from e
        logger.debug(f"WebDAV {method} {url} -> {response.status_code}")
        return response

    # ------------------------------------------------------------------
    # Connection / directories
    # ------------------------------------------------------------------

    def test_connection(self, url: str, username: str, password: str) -> str:
        """Probe the collection at *url* with PROPFIND."""
        with self._client(username, password, PROBE_TIMEOUT) as client:
            response = self._send(client, "PROPFIND", url, headers={"Depth": "0"})
        if response.is_success:
            return "Connection successful"
        if response.status_code == 401:
            raise SyncAuthError(AUTH_FAILED)
        if response.status_code == 404:
            raise SyncNotFoundError("Path not found: check the WebDAV URL")
        raise RemoteProtocolError(
            f"Connection failed with status: {response.status_code}",
            response.status_code,
            response.text,
        )

    def ensure_directory(self, url: str, username: str, password: str) -> None:
        """Create the collection at *url* unless it already exists."""
        dir_url = url.rstrip("/")
        with self._client(username, password, PROBE_TIMEOUT) as client:
            probe = self._send(client, "PROPFIND", dir_url, headers={"Depth": "0"})
            if probe.is_success:
                return
            response = self._send(client, "MKCOL", dir_url)
        if response.status_code == 401:
            raise SyncAuthError(AUTH_FAILED)
        # 405: already exists, 409: parent exists but path conflicts
        if response.status_code not in (201, 405, 409):
            raise RemoteProtocolError(
                f"Failed to create WebDAV directory: {response.status_code}",
                response.status_code,
                response.text,
            )

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def build_payload(self) -> SyncPayload:
        """Snapshot the local overlay and settings, without credentials."""
        return SyncPayload(
            metadata=self.metadata_store.load_all(),
            settings=self.settings_store.load().without_credentials(),
            sync_time=_now(),
        )

    def push(self, url: str, username: str, password: str) -> str:
        data = self.build_payload().model_dump_json(indent=2)

        with self._client(username, password, TRANSFER_TIMEOUT) as client:
            if not is_provider_root(url):
                return self._upload(client, sync_file_url(url), data)

            logger.info("Provider root detected, creating the service-master directory")
            dir_url = f"{url.rstrip('/')}/{SUBCOLLECTION}"
            try:
                mkcol = self._send(client, "MKCOL", dir_url)
            except SyncConnectionError as e:
                logger.debug(f"MKCOL {dir_url} failed: {e}")
                mkcol = None
            if mkcol is not None and mkcol.status_code in MKCOL_OK:
                return self._upload(client, sync_file_url(dir_url), data)

            try:
                return self._upload(client, sync_file_url(url), data)
            except SyncAuthError:
                raise
            except SyncError as e:
                raise SyncError(PROVIDER_ROOT_GUIDANCE) from e

    def _upload(self, client: httpx.Client, url: str, data: str) -> str:
        logger.debug(f"Uploading {len(data)} bytes to {url}")
        response = self._send(
            client,
            "PUT",
            url,
            content=data.encode("utf-8"),
            headers={"Content-Type": "application/json; charset=utf-8"},
        )
        status = response.status_code
        if response.is_success:
            logger.info(f"Pushed sync data to {url}")
            return "Sync successful!"
        if status == 401:
            raise SyncAuthError(AUTH_FAILED)
        if status == 404:
            raise SyncNotFoundError(MISSING_DIRECTORY)
        if status == 405:
            raise RemoteProtocolError(
                "Operation not allowed (405): the WebDAV server may not accept uploads at this path",
                status,
                response.text,
            )
        raise RemoteProtocolError(f"Upload failed ({status}): {response.text}", status, response.text)

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def pull(self, url: str, username: str, password: str) -> str:
        provider_root = is_provider_root(url)
        if provider_root:
            target = sync_file_url(f"{url.rstrip('/')}/{SUBCOLLECTION}")
        else:
            target = sync_file_url(url)

        with self._client(username, password, TRANSFER_TIMEOUT) as client:
            response = self._send(client, "GET", target)
            if response.status_code == 404 and provider_root:
                logger.info("No sync data in service-master directory, trying the root")
                response = self._send(client, "GET", sync_file_url(url))

        status = response.status_code
        if status == 404:
            raise SyncNotFoundError(NO_SYNC_DATA)
        if status == 401:
            raise SyncAuthError(AUTH_FAILED)
        if not response.is_success:
            raise RemoteProtocolError(f"Download failed ({status}): {response.text}", status, response.text)
        return self.apply_payload(response.text)

    def apply_payload(self, content: str) -> str:
        """Replace local metadata and settings, keeping local WebDAV credentials."""
        try:
            payload = SyncPayload.model_validate_json(content)
        except ValidationError as e:
            raise SyncParseError(f"Cannot parse sync data: {e}") from e

        self.metadata_store.save_all(payload.metadata)

        local = self.settings_store.load()
        settings = payload.settings.model_copy(
            update={
                "webdav_url": local.webdav_url,
                "webdav_username": local.webdav_username,
                "webdav_password": local.webdav_password,
            }
        )
        self.settings_store.save(settings)
        logger.info(f"Applied sync data from {payload.sync_time}")
        return f"Sync successful! (sync time: {payload.sync_time})"
