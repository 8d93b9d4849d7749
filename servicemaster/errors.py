"""Error taxonomy shared by every servicemaster component."""


class ServiceMasterError(Exception):
    """Base class for all servicemaster failures. The message is user-facing."""


class ServiceNotFoundError(ServiceMasterError):
    """A unit file (or other addressed local resource) does not exist."""


class TransportError(ServiceMasterError):
    """A process could not be spawned or a filesystem operation failed."""


class UnsupportedOperationError(ServiceMasterError):
    """The operation is not implemented on the current platform."""


class UnitParseError(ServiceMasterError):
    """A unit file could not be parsed."""


class SyncError(ServiceMasterError):
    """Base class for remote sync failures."""


class SyncAuthError(SyncError):
    """The remote store rejected the credentials (HTTP 401)."""


class SyncNotFoundError(SyncError):
    """The remote collection or sync document does not exist (HTTP 404)."""


class SyncConnectionError(SyncError):
    """The remote store could not be reached."""


class SyncParseError(SyncError):
    """The downloaded sync document is malformed."""


class RemoteProtocolError(SyncError):
    """Any other non-2xx answer from the remote store."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
