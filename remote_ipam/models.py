"""Value types exchanged between the dispatcher, the allocator and the wire codec."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field

type IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
type IPInterface = ipaddress.IPv4Interface | ipaddress.IPv6Interface
type IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


@dataclass(frozen=True, slots=True)
class IPConfig:
    address: IPInterface
    gateway: IPAddress | None = None

    @property
    def version(self) -> str:
        return str(self.address.version)


@dataclass(frozen=True, slots=True)
class Route:
    dst: IPNetwork
    gw: IPAddress | None = None


@dataclass(frozen=True, slots=True)
class DNSConfig:
    nameservers: tuple[str, ...] = ()
    domain: str | None = None
    search: tuple[str, ...] = ()
    options: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.nameservers or self.domain or self.search or self.options)


@dataclass(frozen=True, slots=True)
class DelegationResult:
    ips: tuple[IPConfig, ...] = ()
    routes: tuple[Route, ...] = ()
    dns: DNSConfig | None = field(default=None)
