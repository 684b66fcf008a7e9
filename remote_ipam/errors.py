"""Domain errors shared by the plugin client and the allocation server."""

from __future__ import annotations


class RemoteIpamError(Exception):
    """Base exception for remote IPAM failures."""

    error_code = "remote_ipam_error"


class ConfigError(RemoteIpamError):
    """Raised when local or server configuration is malformed or incomplete."""

    error_code = "config_error"


class FileError(RemoteIpamError):
    """Raised when a configuration file cannot be read."""

    error_code = "file_error"


class TransportError(RemoteIpamError):
    """Raised when the remote cannot be reached or does not answer in time."""

    error_code = "transport_error"


class RemoteError(RemoteIpamError):
    """Raised when the remote answers with a status other than 200."""

    error_code = "remote_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        scope: str,
        command: str,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.scope = scope
        self.command = command


class DecodeError(RemoteIpamError):
    """Raised when a remote response body is not a valid result envelope."""

    error_code = "decode_error"


class DispatchError(RemoteIpamError):
    """Base server-side error mapped onto an HTTP status code."""

    error_code = "dispatch_error"
    status_code = 500


class ValidationError(DispatchError):
    error_code = "validation_error"
    status_code = 400


class NotFoundError(DispatchError):
    error_code = "not_found"
    status_code = 404


class AllocationError(DispatchError):
    """Raised when the allocator cannot reserve or release an address."""

    error_code = "allocation_error"
    status_code = 500


class SerializationError(DispatchError):
    error_code = "serialization_error"
    status_code = 500
