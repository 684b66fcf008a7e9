from __future__ import annotations

import json
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

import pytest

from remote_ipam.allocator import AllocationStore, RangeSet
from remote_ipam.config import ServerSettings
from remote_ipam.errors import AllocationError
from remote_ipam.models import DNSConfig
from remote_ipam.server import DelegationDispatcher
from tests.conftest import FakeAllocator, FakeAllocatorState

type FakeFactory = Callable[[RangeSet, AllocationStore], FakeAllocator]


@pytest.mark.parametrize("missing", ["containerid", "scope", "version"])
@pytest.mark.parametrize("cmd", ["add", "del"])
def test_missing_parameter_returns_400_without_allocator_call(
    missing: str,
    cmd: str,
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
    fake_allocator_state: FakeAllocatorState,
) -> None:
    dispatcher = _dispatcher(server_settings, allocation_store, fake_allocator_factory)
    params = _params(cmd=cmd)
    del params[missing]

    response = dispatcher.dispatch(params)

    assert response.status_code == 400
    assert fake_allocator_state.get_calls == []
    assert fake_allocator_state.release_calls == []
    assert fake_allocator_state.bound_range_sets == []


@pytest.mark.parametrize("cmd", ["add", "del", "bogus", ""])
def test_unknown_scope_returns_404_for_any_command(
    cmd: str,
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
    fake_allocator_state: FakeAllocatorState,
) -> None:
    dispatcher = _dispatcher(server_settings, allocation_store, fake_allocator_factory)

    response = dispatcher.dispatch(_params(cmd=cmd, scope="purple"))

    assert response.status_code == 404
    assert fake_allocator_state.get_calls == []


def test_unknown_command_returns_404(
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
    fake_allocator_state: FakeAllocatorState,
) -> None:
    dispatcher = _dispatcher(server_settings, allocation_store, fake_allocator_factory)

    response = dispatcher.dispatch(_params(cmd="check"))

    assert response.status_code == 404
    assert fake_allocator_state.get_calls == []


def test_add_returns_json_result_with_routes(
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
    fake_allocator_state: FakeAllocatorState,
) -> None:
    dispatcher = _dispatcher(server_settings, allocation_store, fake_allocator_factory)

    response = dispatcher.dispatch(_params(cmd="add"))

    assert response.status_code == 200
    assert response.media_type == "application/json"
    assert json.loads(response.body) == {
        "cniVersion": "0.4.0",
        "ips": [{"version": "4", "address": "10.0.0.2/24", "gateway": "10.0.0.1"}],
        "routes": [{"dst": "0.0.0.0/0", "gw": "10.0.0.1"}],
    }
    assert fake_allocator_state.get_calls == ["pool1/abc"]
    assert fake_allocator_state.bound_range_sets == [server_settings.ranges["blue"]]


def test_add_includes_startup_dns_block(
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
) -> None:
    dispatcher = _dispatcher(
        server_settings,
        allocation_store,
        fake_allocator_factory,
        dns=DNSConfig(nameservers=("10.0.0.53",), domain="corp.example"),
    )

    response = dispatcher.dispatch(_params(cmd="add"))

    assert json.loads(response.body)["dns"] == {
        "nameservers": ["10.0.0.53"],
        "domain": "corp.example",
        "search": [],
        "options": [],
    }


def test_add_echoes_requested_version(
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
) -> None:
    dispatcher = _dispatcher(server_settings, allocation_store, fake_allocator_factory)

    response = dispatcher.dispatch(_params(cmd="add", version="1.0.0"))

    assert json.loads(response.body)["cniVersion"] == "1.0.0"


def test_add_allocator_failure_returns_500_with_message(
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
    fake_allocator_state: FakeAllocatorState,
) -> None:
    fake_allocator_state.get_error = AllocationError("range exhausted")
    dispatcher = _dispatcher(server_settings, allocation_store, fake_allocator_factory)

    response = dispatcher.dispatch(_params(cmd="add"))

    assert response.status_code == 500
    assert response.body == b"failed to allocate: range exhausted"


def test_del_releases_composite_key_with_empty_body(
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
    fake_allocator_state: FakeAllocatorState,
) -> None:
    dispatcher = _dispatcher(server_settings, allocation_store, fake_allocator_factory)
    dispatcher.dispatch(_params(cmd="add"))

    response = dispatcher.dispatch(_params(cmd="del"))

    assert response.status_code == 200
    assert response.body == b""
    assert fake_allocator_state.release_calls == ["pool1/abc"]
    assert fake_allocator_state.held == {}


def test_del_allocator_failure_returns_500(
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
    fake_allocator_state: FakeAllocatorState,
) -> None:
    fake_allocator_state.release_error = AllocationError("store unavailable")
    dispatcher = _dispatcher(server_settings, allocation_store, fake_allocator_factory)

    response = dispatcher.dispatch(_params(cmd="del"))

    assert response.status_code == 500
    assert response.body == b"failed to release pool1/abc: store unavailable"


@pytest.mark.parametrize(
    ("command", "expected_body"),
    [
        ("add", b"failed to allocate: pool backend unavailable"),
        ("del", b"failed to release pool1/abc: pool backend unavailable"),
    ],
)
def test_unexpected_allocator_exception_returns_500_with_message(
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
    fake_allocator_state: FakeAllocatorState,
    command: str,
    expected_body: bytes,
) -> None:
    fake_allocator_state.get_error = RuntimeError("pool backend unavailable")
    fake_allocator_state.release_error = RuntimeError("pool backend unavailable")
    dispatcher = _dispatcher(server_settings, allocation_store, fake_allocator_factory)

    response = dispatcher.dispatch(_params(cmd=command))

    assert response.status_code == 500
    assert response.media_type == "text/plain"
    assert response.body == expected_body


def test_each_request_builds_a_fresh_allocator(
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
    fake_allocator_state: FakeAllocatorState,
) -> None:
    dispatcher = _dispatcher(server_settings, allocation_store, fake_allocator_factory)

    dispatcher.dispatch(_params(cmd="add"))
    dispatcher.dispatch(_params(cmd="del"))
    dispatcher.dispatch(_params(cmd="add", scope="green", containerid="pool1/def"))

    assert fake_allocator_state.bound_range_sets == [
        server_settings.ranges["blue"],
        server_settings.ranges["blue"],
        server_settings.ranges["green"],
    ]


def test_concurrent_adds_in_same_scope_receive_distinct_addresses(
    server_settings: ServerSettings,
    allocation_store: AllocationStore,
    fake_allocator_factory: FakeFactory,
) -> None:
    dispatcher = _dispatcher(server_settings, allocation_store, fake_allocator_factory)

    def add(container_id: str) -> str:
        response = dispatcher.dispatch(_params(cmd="add", containerid=f"pool1/{container_id}"))
        assert response.status_code == 200
        return str(json.loads(response.body)["ips"][0]["address"])

    with ThreadPoolExecutor(max_workers=2) as executor:
        first, second = executor.map(add, ["abc", "def"])

    assert first != second


def _dispatcher(
    settings: ServerSettings,
    store: AllocationStore,
    factory: FakeFactory,
    *,
    dns: DNSConfig | None = None,
) -> DelegationDispatcher:
    return DelegationDispatcher(
        settings=settings,
        store=store,
        allocator_factory=factory,
        dns=dns,
    )


def _params(**overrides: str) -> dict[str, str]:
    params = {
        "cmd": "add",
        "scope": "blue",
        "version": "0.4.0",
        "containerid": "pool1/abc",
    }
    params.update(overrides)
    return params
