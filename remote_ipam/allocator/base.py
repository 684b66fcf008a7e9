"""Allocator interface consumed by the delegation dispatcher."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from remote_ipam.allocator.ranges import RangeSet
from remote_ipam.allocator.store import AllocationStore
from remote_ipam.models import IPAddress, IPConfig


class AddressAllocator(Protocol):
    def get(self, container_key: str, requested: IPAddress | None = None) -> IPConfig:
        """Reserve an address for ``container_key`` and return its configuration."""

    def release(self, container_key: str) -> None:
        """Free every address held by ``container_key``."""


type AllocatorFactory = Callable[[RangeSet, AllocationStore], AddressAllocator]
