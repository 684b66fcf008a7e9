"""First-available address allocator over a scope's range set."""

from __future__ import annotations

import ipaddress
import logging

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from remote_ipam.allocator.ranges import Range, RangeSet
from remote_ipam.allocator.store import AllocationStore, IpReservation
from remote_ipam.errors import AllocationError
from remote_ipam.models import IPAddress, IPConfig

logger = logging.getLogger(__name__)


class RangeAllocator:
    """Short-lived allocator bound to one range set and the shared store."""

    def __init__(self, range_set: RangeSet, store: AllocationStore) -> None:
        self._range_set = range_set
        self._store = store

    def get(self, container_key: str, requested: IPAddress | None = None) -> IPConfig:
        try:
            with self._store.transaction() as session:
                for held in self._store.addresses_for_key(session, container_key):
                    if self._find_range(held) is not None:
                        raise AllocationError(
                            f"{held} has been allocated to {container_key}, "
                            "duplicate allocation is not allowed"
                        )

                reserved = self._store.reserved_addresses(session)
                if requested is not None:
                    selected_range = self._find_range(str(requested))
                    if selected_range is None:
                        raise AllocationError(f"requested address {requested} is not in any range")
                    if str(requested) in reserved:
                        raise AllocationError(f"requested address {requested} is already allocated")
                    address = requested
                else:
                    selected_range, address = self._first_available(reserved)

                session.add(IpReservation(address=str(address), container_key=container_key))
                session.flush()
        except SQLAlchemyError as exc:
            raise AllocationError(f"failed to reserve address for {container_key}: {exc}") from exc

        logger.debug("reserved %s for %s", address, container_key)
        return IPConfig(
            address=selected_range.interface(address),
            gateway=selected_range.gateway,
        )

    def release(self, container_key: str) -> None:
        try:
            with self._store.transaction() as session:
                session.execute(
                    delete(IpReservation).where(IpReservation.container_key == container_key)
                )
        except SQLAlchemyError as exc:
            raise AllocationError(f"failed to release {container_key}: {exc}") from exc

    def _first_available(self, reserved: set[str]) -> tuple[Range, IPAddress]:
        for item in self._range_set:
            for candidate in item.iter_candidates():
                if str(candidate) not in reserved:
                    return item, candidate
        subnets = ", ".join(str(item.subnet) for item in self._range_set)
        raise AllocationError(f"no IP addresses available in range set: {subnets}")

    def _find_range(self, address: str) -> Range | None:
        candidate = ipaddress.ip_address(address)
        for item in self._range_set:
            if item.contains(candidate):
                return item
        return None


def create_range_allocator(range_set: RangeSet, store: AllocationStore) -> RangeAllocator:
    return RangeAllocator(range_set, store)
