from __future__ import annotations

import ipaddress
import threading
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from remote_ipam.allocator import AllocationStore, RangeSet, parse_range_set
from remote_ipam.config import ServerSettings
from remote_ipam.errors import AllocationError
from remote_ipam.models import IPAddress, IPConfig, Route


@dataclass(slots=True)
class FakeAllocatorState:
    subnet: str = "10.0.0.0/24"
    held: dict[str, str] = field(default_factory=dict)
    get_calls: list[str] = field(default_factory=list)
    release_calls: list[str] = field(default_factory=list)
    bound_range_sets: list[RangeSet] = field(default_factory=list)
    get_error: Exception | None = None
    release_error: Exception | None = None
    lock: threading.Lock = field(default_factory=threading.Lock)


class FakeAllocator:
    def __init__(self, state: FakeAllocatorState) -> None:
        self._state = state

    def get(self, container_key: str, requested: IPAddress | None = None) -> IPConfig:
        with self._state.lock:
            self._state.get_calls.append(container_key)
            if self._state.get_error is not None:
                raise self._state.get_error
            network = ipaddress.ip_network(self._state.subnet)
            taken = set(self._state.held.values())
            for host in list(network.hosts())[1:]:
                if str(host) not in taken:
                    self._state.held[container_key] = str(host)
                    return IPConfig(
                        address=ipaddress.ip_interface(f"{host}/{network.prefixlen}"),
                        gateway=network.network_address + 1,
                    )
            raise AllocationError("fake range exhausted")

    def release(self, container_key: str) -> None:
        with self._state.lock:
            self._state.release_calls.append(container_key)
            if self._state.release_error is not None:
                raise self._state.release_error
            self._state.held.pop(container_key, None)


@pytest.fixture()
def fake_allocator_state() -> FakeAllocatorState:
    return FakeAllocatorState()


@pytest.fixture()
def fake_allocator_factory(
    fake_allocator_state: FakeAllocatorState,
) -> Callable[[RangeSet, AllocationStore], FakeAllocator]:
    def factory(range_set: RangeSet, _: AllocationStore) -> FakeAllocator:
        fake_allocator_state.bound_range_sets.append(range_set)
        return FakeAllocator(fake_allocator_state)

    return factory


@pytest.fixture()
def allocation_store(tmp_path: Path) -> Generator[AllocationStore]:
    store = AllocationStore.from_data_dir(tmp_path / "data")
    try:
        yield store
    finally:
        store.close()


@pytest.fixture()
def server_settings(tmp_path: Path) -> ServerSettings:
    return ServerSettings(
        ranges={
            "blue": parse_range_set("10.0.0.0/24", scope="blue"),
            "green": parse_range_set(
                [{"subnet": "10.1.0.0/29", "rangeStart": "10.1.0.2", "rangeEnd": "10.1.0.4"}],
                scope="green",
            ),
        },
        data_dir=str(tmp_path / "data"),
        routes=(
            Route(
                dst=ipaddress.ip_network("0.0.0.0/0"),
                gw=ipaddress.ip_address("10.0.0.1"),
            ),
        ),
    )
