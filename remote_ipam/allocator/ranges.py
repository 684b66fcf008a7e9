"""Address range definitions used to bound allocation within a scope."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from remote_ipam.errors import ConfigError
from remote_ipam.models import IPAddress, IPInterface, IPNetwork


@dataclass(frozen=True, slots=True)
class Range:
    subnet: IPNetwork
    range_start: IPAddress
    range_end: IPAddress
    gateway: IPAddress | None

    def contains(self, address: IPAddress) -> bool:
        return (
            address.version == self.subnet.version
            and int(self.range_start) <= int(address) <= int(self.range_end)
        )

    def interface(self, address: IPAddress) -> IPInterface:
        return ipaddress.ip_interface(f"{address}/{self.subnet.prefixlen}")

    def iter_candidates(self) -> Iterator[IPAddress]:
        current = int(self.range_start)
        last = int(self.range_end)
        while current <= last:
            address = ipaddress.ip_address(current)
            if address != self.gateway:
                yield address
            current += 1


type RangeSet = tuple[Range, ...]


def parse_range_set(raw: Any, *, scope: str) -> RangeSet:
    """Build a range set from a list of ranges, a single range, or a subnet string."""
    if isinstance(raw, (str, Mapping)):
        items: list[Any] = [raw]
    elif isinstance(raw, list):
        items = raw
    else:
        raise ConfigError(f"ranges.{scope} must be a list of ranges")

    if not items:
        raise ConfigError(f"ranges.{scope} must contain at least one range")

    parsed = tuple(_parse_range(item, scope=scope) for item in items)
    versions = {item.subnet.version for item in parsed}
    if len(versions) > 1:
        raise ConfigError(f"ranges.{scope} mixes IPv4 and IPv6 subnets")
    return parsed


def _parse_range(raw: Any, *, scope: str) -> Range:
    if isinstance(raw, str):
        raw = {"subnet": raw}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"ranges.{scope} entries must be objects or subnet strings")

    subnet_value = raw.get("subnet")
    if not isinstance(subnet_value, str) or not subnet_value.strip():
        raise ConfigError(f"ranges.{scope} entry is missing 'subnet'")
    try:
        subnet = ipaddress.ip_network(subnet_value.strip(), strict=False)
    except ValueError as exc:
        raise ConfigError(f"ranges.{scope} has invalid subnet {subnet_value!r}") from exc

    host_bits = subnet.max_prefixlen - subnet.prefixlen
    if host_bits < 2:
        raise ConfigError(f"ranges.{scope} subnet {subnet} is too small to allocate from")

    gateway = _optional_address(raw, "gateway", subnet=subnet, scope=scope)
    if gateway is None:
        gateway = subnet.network_address + 1

    range_start = _optional_address(raw, "rangeStart", subnet=subnet, scope=scope)
    if range_start is None:
        range_start = subnet.network_address + 1

    range_end = _optional_address(raw, "rangeEnd", subnet=subnet, scope=scope)
    if range_end is None:
        range_end = _last_address(subnet)

    if int(range_start) > int(range_end):
        raise ConfigError(
            f"ranges.{scope} rangeStart {range_start} is after rangeEnd {range_end}"
        )

    return Range(
        subnet=subnet,
        range_start=range_start,
        range_end=range_end,
        gateway=gateway,
    )


def _optional_address(
    raw: Mapping[str, Any],
    key: str,
    *,
    subnet: IPNetwork,
    scope: str,
) -> IPAddress | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    try:
        address = ipaddress.ip_address(str(value).strip())
    except ValueError as exc:
        raise ConfigError(f"ranges.{scope} has invalid {key} {value!r}") from exc
    if address not in subnet:
        raise ConfigError(f"ranges.{scope} {key} {address} is outside subnet {subnet}")
    return address


def _last_address(subnet: IPNetwork) -> IPAddress:
    # IPv4 keeps the broadcast address out of the pool.
    if subnet.version == 4:
        return subnet.broadcast_address - 1
    return subnet.broadcast_address
