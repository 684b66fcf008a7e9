"""Parsing of the calling plugin's network configuration."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from remote_ipam.errors import ConfigError

# A configuration without cniVersion predates the field and speaks 0.1.0.
DEFAULT_CNI_VERSION = "0.1.0"


class IpamSection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    remote: str
    id: str = ""
    scope: str

    @field_validator("remote")
    @classmethod
    def _validate_remote(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("remote must be an http:// or https:// URL")
        return normalized

    @field_validator("scope")
    @classmethod
    def _validate_scope(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("scope is required")
        return normalized


class NetworkConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = ""
    cni_version: str = Field(default="", alias="cniVersion")
    ipam: IpamSection | None = None


@dataclass(frozen=True, slots=True)
class DelegationConfig:
    network_name: str
    protocol_version: str
    remote_endpoint: str
    pool_id: str
    scope: str


def load_delegation_config(data: bytes | str) -> DelegationConfig:
    """Parse the full network configuration passed to the plugin on stdin."""
    try:
        network = NetworkConfig.model_validate_json(data)
    except PydanticValidationError as exc:
        raise ConfigError(f"invalid network configuration: {exc}") from exc

    if network.ipam is None:
        raise ConfigError("IPAM config missing 'ipam' key")

    return DelegationConfig(
        network_name=network.name,
        protocol_version=network.cni_version.strip() or DEFAULT_CNI_VERSION,
        remote_endpoint=network.ipam.remote,
        pool_id=network.ipam.id,
        scope=network.ipam.scope,
    )
