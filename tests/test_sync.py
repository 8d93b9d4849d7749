"""Tests for the WebDAV sync engine against an in-memory WebDAV server."""

import base64
import json

import httpx
import pytest

from servicemaster.config.schema import AppSettings, ServiceMetadata
from servicemaster.errors import (
    RemoteProtocolError,
    SyncAuthError,
    SyncConnectionError,
    SyncError,
    SyncNotFoundError,
    SyncParseError,
)
from servicemaster.sync.webdav import SYNC_FILENAME, WebDAVSyncEngine, is_provider_root, sync_file_url

USER, PASSWORD = "alice", "s3cret"


class FakeWebDAV:
    """Just enough WebDAV: collections, files, Basic auth."""

    def __init__(self, collections=("/remote",), mkcol_status=None, readonly=()):
        self.collections = set(collections)
        self.files: dict[str, bytes] = {}
        self.mkcol_status = mkcol_status
        self.readonly = set(readonly)
        self.requests: list[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.rstrip("/")
        self.requests.append((request.method, path))

        token = base64.b64encode(f"{USER}:{PASSWORD}".encode()).decode()
        if request.headers.get("authorization") != f"Basic {token}":
            return httpx.Response(401)

        parent = path.rsplit("/", 1)[0]
        if request.method == "PROPFIND":
            return httpx.Response(207 if path in self.collections else 404)
        if request.method == "MKCOL":
            if self.mkcol_status is not None:
                return httpx.Response(self.mkcol_status)
            if path in self.collections:
                return httpx.Response(405)
            if parent not in self.collections:
                return httpx.Response(409)
            self.collections.add(path)
            return httpx.Response(201)
        if request.method == "PUT":
            if parent not in self.collections:
                return httpx.Response(404)
            if parent in self.readonly:
                return httpx.Response(403, text="Forbidden")
            assert request.headers["content-type"] == "application/json; charset=utf-8"
            self.files[path] = request.content
            return httpx.Response(201)
        if request.method == "GET":
            if path in self.files:
                return httpx.Response(200, content=self.files[path])
            return httpx.Response(404)
        return httpx.Response(501)


@pytest.fixture
def server():
    return FakeWebDAV()


@pytest.fixture
def engine(server, settings_store, metadata_store):
    return WebDAVSyncEngine(settings_store, metadata_store, transport=httpx.MockTransport(server))


def _seed(settings_store, metadata_store, url="https://dav.example.com/remote"):
    settings = AppSettings(
        theme_mode="dark", opacity=0.6, webdav_url=url, webdav_username=USER, webdav_password=PASSWORD
    )
    metadata = {
        "com.api": ServiceMetadata(display_name="API", port=8000, order=1),
        "com.web": ServiceMetadata(health_url="http://127.0.0.1:3000"),
    }
    settings_store.save(settings)
    metadata_store.save_all(metadata)
    return settings, metadata


class TestHelpers:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://dav.jianguoyun.com/dav", True),
            ("https://dav.jianguoyun.com/dav/", True),
            ("https://dav.jianguoyun.com/dav/service-master/", False),
            ("https://cloud.example.com/remote.php/webdav", False),
        ],
    )
    def test_is_provider_root(self, url, expected):
        assert is_provider_root(url) is expected

    def test_sync_file_url(self):
        assert sync_file_url("https://x/dav/folder/") == f"https://x/dav/folder/{SYNC_FILENAME}"


class TestConnection:
    def test_success(self, engine):
        assert engine.test_connection("https://dav.example.com/remote/", USER, PASSWORD) == "Connection successful"

    def test_bad_credentials(self, engine):
        with pytest.raises(SyncAuthError):
            engine.test_connection("https://dav.example.com/remote", USER, "wrong")

    def test_missing_collection(self, engine):
        with pytest.raises(SyncNotFoundError):
            engine.test_connection("https://dav.example.com/nowhere", USER, PASSWORD)

    def test_other_status_carries_code_and_body(self, settings_store, metadata_store):
        transport = httpx.MockTransport(lambda r: httpx.Response(500, text="boom"))
        engine = WebDAVSyncEngine(settings_store, metadata_store, transport=transport)
        with pytest.raises(RemoteProtocolError) as exc:
            engine.test_connection("https://dav.example.com/remote", USER, PASSWORD)
        assert exc.value.status_code == 500
        assert exc.value.body == "boom"

    def test_unreachable(self, settings_store, metadata_store):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        engine = WebDAVSyncEngine(settings_store, metadata_store, transport=httpx.MockTransport(refuse))
        with pytest.raises(SyncConnectionError, match="refused"):
            engine.test_connection("https://dav.example.com/remote", USER, PASSWORD)

    def test_ensure_directory_creates(self, engine, server):
        engine.ensure_directory("https://dav.example.com/remote/new/", USER, PASSWORD)
        assert "/remote/new" in server.collections

    def test_ensure_directory_existing_is_noop(self, engine, server):
        engine.ensure_directory("https://dav.example.com/remote", USER, PASSWORD)
        assert [m for m, _ in server.requests] == ["PROPFIND"]


class TestPush:
    def test_push_uploads_payload_without_credentials(self, engine, server, settings_store, metadata_store):
        _seed(settings_store, metadata_store)
        assert engine.push("https://dav.example.com/remote/", USER, PASSWORD) == "Sync successful!"

        doc = json.loads(server.files[f"/remote/{SYNC_FILENAME}"])
        assert set(doc) == {"metadata", "settings", "sync_time"}
        assert doc["metadata"]["com.api"]["port"] == 8000
        assert doc["settings"]["theme_mode"] == "dark"
        assert doc["settings"]["webdav_username"] is None
        assert doc["settings"]["webdav_password"] is None
        assert doc["sync_time"]

    def test_push_missing_directory(self, engine):
        with pytest.raises(SyncNotFoundError, match="service-master"):
            engine.push("https://dav.example.com/absent", USER, PASSWORD)

    def test_push_bad_credentials(self, engine):
        with pytest.raises(SyncAuthError):
            engine.push("https://dav.example.com/remote", USER, "nope")

    def test_provider_root_uses_subcollection(self, settings_store, metadata_store):
        server = FakeWebDAV(collections={"/dav"})
        engine = WebDAVSyncEngine(settings_store, metadata_store, transport=httpx.MockTransport(server))

        engine.push("https://dav.jianguoyun.com/dav/", USER, PASSWORD)

        assert ("MKCOL", "/dav/service-master") in server.requests
        assert set(server.files) == {f"/dav/service-master/{SYNC_FILENAME}"}

    def test_provider_root_existing_subcollection(self, settings_store, metadata_store):
        server = FakeWebDAV(collections={"/dav", "/dav/service-master"})
        engine = WebDAVSyncEngine(settings_store, metadata_store, transport=httpx.MockTransport(server))

        engine.push("https://dav.jianguoyun.com/dav", USER, PASSWORD)

        assert set(server.files) == {f"/dav/service-master/{SYNC_FILENAME}"}

    def test_provider_root_falls_back_to_root(self, settings_store, metadata_store):
        server = FakeWebDAV(collections={"/dav"}, mkcol_status=403)
        engine = WebDAVSyncEngine(settings_store, metadata_store, transport=httpx.MockTransport(server))

        engine.push("https://dav.jianguoyun.com/dav", USER, PASSWORD)

        assert set(server.files) == {f"/dav/{SYNC_FILENAME}"}

    def test_provider_root_failure_gives_guidance(self, settings_store, metadata_store):
        server = FakeWebDAV(collections={"/dav"}, mkcol_status=403, readonly={"/dav"})
        engine = WebDAVSyncEngine(settings_store, metadata_store, transport=httpx.MockTransport(server))

        with pytest.raises(SyncError, match="Create a folder") as exc:
            engine.push("https://dav.jianguoyun.com/dav", USER, PASSWORD)
        assert "jianguoyun.com/dav/service-master" in str(exc.value)

    def test_upload_405(self, settings_store, metadata_store):
        transport = httpx.MockTransport(lambda r: httpx.Response(405))
        engine = WebDAVSyncEngine(settings_store, metadata_store, transport=transport)
        with pytest.raises(RemoteProtocolError, match="405"):
            engine.push("https://dav.example.com/remote", USER, PASSWORD)


class TestPull:
    def test_round_trip_restores_state_and_keeps_credentials(self, engine, settings_store, metadata_store):
        settings, metadata = _seed(settings_store, metadata_store)
        engine.push(settings.webdav_url, USER, PASSWORD)

        metadata_store.save_all({"com.other": ServiceMetadata(display_name="Other")})
        settings_store.save(settings.model_copy(update={"theme_mode": "light", "opacity": 1.0}))

        message = engine.pull(settings.webdav_url, USER, PASSWORD)

        assert "sync time" in message
        assert metadata_store.load_all() == metadata
        assert settings_store.load() == settings

    def test_remote_credentials_never_applied(self, engine, server, settings_store):
        settings_store.save(AppSettings(webdav_url="https://local", webdav_username="me", webdav_password="mine"))
        remote = {
            "metadata": {},
            "settings": {
                "theme_color": "#fff",
                "opacity": 0.5,
                "theme_mode": "light",
                "webdav_url": "https://remote",
                "webdav_username": "them",
                "webdav_password": "theirs",
            },
            "sync_time": "1700000000",
        }
        server.files[f"/remote/{SYNC_FILENAME}"] = json.dumps(remote).encode()

        engine.pull("https://dav.example.com/remote", USER, PASSWORD)

        applied = settings_store.load()
        assert applied.theme_color == "#fff"
        assert (applied.webdav_url, applied.webdav_username, applied.webdav_password) == (
            "https://local",
            "me",
            "mine",
        )

    def test_nothing_synced_yet(self, engine):
        with pytest.raises(SyncNotFoundError, match="No synced data"):
            engine.pull("https://dav.example.com/remote", USER, PASSWORD)

    def test_bad_credentials(self, engine):
        with pytest.raises(SyncAuthError):
            engine.pull("https://dav.example.com/remote", "mallory", PASSWORD)

    def test_malformed_payload(self, engine, server, metadata_store):
        metadata_store.save_all({"keep": ServiceMetadata(icon="x")})
        server.files[f"/remote/{SYNC_FILENAME}"] = b"{broken"
        with pytest.raises(SyncParseError):
            engine.pull("https://dav.example.com/remote", USER, PASSWORD)
        assert metadata_store.load_all() == {"keep": ServiceMetadata(icon="x")}

    def test_provider_root_reads_subcollection(self, settings_store, metadata_store):
        server = FakeWebDAV(collections={"/dav"})
        engine = WebDAVSyncEngine(settings_store, metadata_store, transport=httpx.MockTransport(server))
        _seed(settings_store, metadata_store)
        engine.push("https://dav.jianguoyun.com/dav", USER, PASSWORD)
        server.requests.clear()

        engine.pull("https://dav.jianguoyun.com/dav", USER, PASSWORD)

        assert server.requests == [("GET", f"/dav/service-master/{SYNC_FILENAME}")]

    def test_provider_root_falls_back_to_root(self, settings_store, metadata_store):
        server = FakeWebDAV(collections={"/dav"})
        server.files[f"/dav/{SYNC_FILENAME}"] = json.dumps(
            {"metadata": {"com.a": {"order": 2}}, "settings": {}, "sync_time": "t"}
        ).encode()
        engine = WebDAVSyncEngine(settings_store, metadata_store, transport=httpx.MockTransport(server))

        engine.pull("https://dav.jianguoyun.com/dav/", USER, PASSWORD)

        assert server.requests == [
            ("GET", f"/dav/service-master/{SYNC_FILENAME}"),
            ("GET", f"/dav/{SYNC_FILENAME}"),
        ]
        assert metadata_store.get("com.a").order == 2

    def test_provider_root_nothing_anywhere(self, settings_store, metadata_store):
        server = FakeWebDAV(collections={"/dav"})
        engine = WebDAVSyncEngine(settings_store, metadata_store, transport=httpx.MockTransport(server))
        with pytest.raises(SyncNotFoundError):
            engine.pull("https://dav.jianguoyun.com/dav", USER, PASSWORD)
