"""Remote sync of metadata and settings."""

from servicemaster.sync.webdav import SyncPayload, WebDAVSyncEngine

__all__ = ["SyncPayload", "WebDAVSyncEngine"]
