"""HTTP allocation server."""

from remote_ipam.server.app import create_app
from remote_ipam.server.dispatcher import DelegationDispatcher, DispatchResponse

__all__ = [
    "DelegationDispatcher",
    "DispatchResponse",
    "create_app",
]
