"""Delegation wire protocol: query parameters and JSON result envelopes."""

from __future__ import annotations

import ipaddress
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from remote_ipam.errors import ConfigError, DecodeError, SerializationError, ValidationError
from remote_ipam.models import DelegationResult, DNSConfig, IPConfig, Route

PARAM_COMMAND = "cmd"
PARAM_SCOPE = "scope"
PARAM_VERSION = "version"
PARAM_CONTAINER_ID = "containerid"
REQUIRED_PARAMS = (PARAM_CONTAINER_ID, PARAM_SCOPE, PARAM_VERSION)

SUPPORTED_VERSIONS: tuple[str, ...] = (
    "0.1.0",
    "0.2.0",
    "0.3.0",
    "0.3.1",
    "0.4.0",
    "1.0.0",
    "1.1.0",
)
_LEGACY_VERSIONS = frozenset({"0.1.0", "0.2.0"})
_IP_VERSION_FIELD_VERSIONS = frozenset({"0.3.0", "0.3.1", "0.4.0"})


class Command(StrEnum):
    ADD = "add"
    DEL = "del"


class UnsupportedVersionError(ConfigError):
    error_code = "incompatible_cni_version"


def composite_container_key(pool_id: str, container_id: str) -> str:
    return f"{pool_id}/{container_id}"


@dataclass(frozen=True, slots=True)
class DelegationRequest:
    command: str
    scope: str
    version: str
    container_key: str

    def to_query_params(self) -> dict[str, str]:
        return {
            PARAM_COMMAND: self.command,
            PARAM_SCOPE: self.scope,
            PARAM_VERSION: self.version,
            PARAM_CONTAINER_ID: self.container_key,
        }

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> DelegationRequest:
        """Validate required parameters; ``cmd`` is checked later by the dispatcher."""
        missing = [name for name in REQUIRED_PARAMS if not params.get(name)]
        if missing:
            raise ValidationError(
                f"missing required query parameter(s): {', '.join(missing)}"
            )
        return cls(
            command=params.get(PARAM_COMMAND, ""),
            scope=params[PARAM_SCOPE],
            version=params[PARAM_VERSION],
            container_key=params[PARAM_CONTAINER_ID],
        )


class IPPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: str | None = None
    address: str
    gateway: str | None = None

    @field_validator("address")
    @classmethod
    def _validate_address(cls, value: str) -> str:
        ipaddress.ip_interface(value)
        return value

    @field_validator("gateway")
    @classmethod
    def _validate_gateway(cls, value: str | None) -> str | None:
        if value:
            ipaddress.ip_address(value)
        return value or None

    def to_ip_config(self) -> IPConfig:
        return IPConfig(
            address=ipaddress.ip_interface(self.address),
            gateway=ipaddress.ip_address(self.gateway) if self.gateway else None,
        )


class RoutePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    dst: str
    gw: str | None = None

    @field_validator("dst")
    @classmethod
    def _validate_dst(cls, value: str) -> str:
        ipaddress.ip_network(value, strict=False)
        return value

    @field_validator("gw")
    @classmethod
    def _validate_gw(cls, value: str | None) -> str | None:
        if value:
            ipaddress.ip_address(value)
        return value or None

    def to_route(self) -> Route:
        return Route(
            dst=ipaddress.ip_network(self.dst, strict=False),
            gw=ipaddress.ip_address(self.gw) if self.gw else None,
        )


class DNSPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    nameservers: list[str] = Field(default_factory=list)
    domain: str | None = None
    search: list[str] = Field(default_factory=list)
    options: list[str] = Field(default_factory=list)

    def to_dns_config(self) -> DNSConfig:
        return DNSConfig(
            nameservers=tuple(self.nameservers),
            domain=self.domain or None,
            search=tuple(self.search),
            options=tuple(self.options),
        )


class ResultPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    cni_version: str = Field(default="", alias="cniVersion")
    ips: list[IPPayload] = Field(default_factory=list)
    routes: list[RoutePayload] = Field(default_factory=list)
    dns: DNSPayload | None = None

    @classmethod
    def from_result(
        cls,
        result: DelegationResult,
        *,
        version: str,
        include_ip_version: bool = True,
    ) -> ResultPayload:
        return cls(
            cni_version=version,
            ips=[
                IPPayload(
                    version=ip.version if include_ip_version else None,
                    address=str(ip.address),
                    gateway=str(ip.gateway) if ip.gateway is not None else None,
                )
                for ip in result.ips
            ],
            routes=[_route_payload(route) for route in result.routes],
            dns=_dns_payload(result.dns),
        )

    def to_result(self) -> DelegationResult:
        return DelegationResult(
            ips=tuple(item.to_ip_config() for item in self.ips),
            routes=tuple(item.to_route() for item in self.routes),
            dns=self.dns.to_dns_config() if self.dns is not None else None,
        )


def encode_result(result: DelegationResult, *, version: str) -> bytes:
    try:
        payload = ResultPayload.from_result(result, version=version)
        return payload.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
    except (PydanticValidationError, ValueError, TypeError) as exc:
        raise SerializationError(f"failed to marshal result: {exc}") from exc


def decode_result(body: bytes) -> DelegationResult:
    try:
        payload = ResultPayload.model_validate_json(body)
    except PydanticValidationError as exc:
        raise DecodeError(f"failed to parse remote response: {exc}") from exc
    return payload.to_result()


def render_result(result: DelegationResult, version: str) -> dict[str, Any]:
    """Convert ``result`` to the document layout callers of ``version`` expect."""
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersionError(
            f"unsupported CNI result version {version!r}; expected one of "
            f"{', '.join(SUPPORTED_VERSIONS)}"
        )

    if version in _LEGACY_VERSIONS:
        return _render_legacy(result, version)

    payload = ResultPayload.from_result(
        result,
        version=version,
        include_ip_version=version in _IP_VERSION_FIELD_VERSIONS,
    )
    return payload.model_dump(by_alias=True, exclude_none=True)


def _render_legacy(result: DelegationResult, version: str) -> dict[str, Any]:
    document: dict[str, Any] = {"cniVersion": version}
    # Legacy results hold at most one address per family.
    for family, key in ((4, "ip4"), (6, "ip6")):
        ip = next((item for item in result.ips if item.address.version == family), None)
        if ip is None:
            continue
        entry: dict[str, Any] = {"ip": str(ip.address)}
        if ip.gateway is not None:
            entry["gateway"] = str(ip.gateway)
        routes = [
            _route_payload(route).model_dump(exclude_none=True)
            for route in result.routes
            if route.dst.version == family
        ]
        if routes:
            entry["routes"] = routes
        document[key] = entry

    dns = _dns_payload(result.dns)
    if dns is not None:
        document["dns"] = dns.model_dump(exclude_none=True)
    return document


def _route_payload(route: Route) -> RoutePayload:
    return RoutePayload(
        dst=str(route.dst),
        gw=str(route.gw) if route.gw is not None else None,
    )


def _dns_payload(dns: DNSConfig | None) -> DNSPayload | None:
    if dns is None or dns.is_empty:
        return None
    return DNSPayload(
        nameservers=list(dns.nameservers),
        domain=dns.domain,
        search=list(dns.search),
        options=list(dns.options),
    )
