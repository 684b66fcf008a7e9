"""Client side of the delegation protocol used by the CNI plugin."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol

import httpx

from remote_ipam.client.config import DelegationConfig
from remote_ipam.errors import RemoteError, TransportError
from remote_ipam.models import DelegationResult
from remote_ipam.protocol import (
    Command,
    DelegationRequest,
    composite_container_key,
    decode_result,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 3.0

type HTTPClientFactory = Callable[..., httpx.Client]


class DelegatorProtocol(Protocol):
    def add(self, config: DelegationConfig, container_id: str) -> DelegationResult: ...

    def delete(self, config: DelegationConfig, container_id: str) -> None: ...


class RemoteDelegator:
    """Forwards ADD/DEL to the remote allocation server.

    Each call makes exactly one request and waits at most ``timeout_seconds``
    for the complete response. A failed attempt is final; a timed-out
    ``add`` may still have been applied by the remote.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        http_client_factory: HTTPClientFactory = httpx.Client,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._http_client_factory = http_client_factory

    def add(self, config: DelegationConfig, container_id: str) -> DelegationResult:
        response = self._call(config, Command.ADD, container_id)
        return decode_result(response.content)

    def delete(self, config: DelegationConfig, container_id: str) -> None:
        self._call(config, Command.DEL, container_id)

    def _call(
        self,
        config: DelegationConfig,
        command: Command,
        container_id: str,
    ) -> httpx.Response:
        request = DelegationRequest(
            command=command.value,
            scope=config.scope,
            version=config.protocol_version,
            container_key=composite_container_key(config.pool_id, container_id),
        )
        logger.debug(
            "calling remote %s cmd=%s containerid=%s",
            config.remote_endpoint,
            command,
            request.container_key,
        )

        # httpx timeouts apply per connect/read phase; the join bounds the whole exchange.
        outcome: list[httpx.Response | Exception] = []
        worker = threading.Thread(
            target=self._send,
            args=(config, request, outcome),
            name="remote-ipam-call",
            daemon=True,
        )
        worker.start()
        worker.join(self._timeout_seconds)
        if worker.is_alive() or not outcome:
            raise TransportError(
                f"failed to call remote {config.remote_endpoint!r}: "
                f"no complete response within {self._timeout_seconds:g}s"
            )

        response = outcome[0]
        if isinstance(response, Exception):
            raise response

        if response.status_code != 200:
            raise RemoteError(
                (
                    f"failed to call remote {config.remote_endpoint!r}: "
                    f"unexpected status code {response.status_code}"
                ),
                status_code=response.status_code,
                scope=config.scope,
                command=command.value,
            )
        return response

    def _send(
        self,
        config: DelegationConfig,
        request: DelegationRequest,
        outcome: list[httpx.Response | Exception],
    ) -> None:
        try:
            with self._http_client_factory(timeout=self._timeout_seconds) as client:
                response = client.get(
                    config.remote_endpoint,
                    params=request.to_query_params(),
                )
        except httpx.HTTPError as exc:
            outcome.append(
                TransportError(f"failed to call remote {config.remote_endpoint!r}: {exc}")
            )
        except Exception as exc:
            outcome.append(exc)
        else:
            outcome.append(response)
