"""CNI plugin side of the delegation protocol."""

from remote_ipam.client.config import DelegationConfig, load_delegation_config
from remote_ipam.client.delegator import DelegatorProtocol, RemoteDelegator

__all__ = [
    "DelegationConfig",
    "DelegatorProtocol",
    "RemoteDelegator",
    "load_delegation_config",
]
