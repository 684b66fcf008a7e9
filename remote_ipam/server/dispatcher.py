"""Request dispatcher for the delegation endpoint."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from remote_ipam.allocator import AllocationStore, AllocatorFactory, RangeSet
from remote_ipam.config import ServerSettings
from remote_ipam.errors import AllocationError, DispatchError, NotFoundError
from remote_ipam.models import DelegationResult, DNSConfig
from remote_ipam.protocol import Command, DelegationRequest, encode_result

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"
TEXT_MEDIA_TYPE = "text/plain"


@dataclass(frozen=True, slots=True)
class DispatchResponse:
    status_code: int
    body: bytes = b""
    media_type: str | None = None


class DelegationDispatcher:
    """Turns one delegation query into one allocator call and one response.

    Holds only read-only configuration; all allocation state lives in the store.
    """

    def __init__(
        self,
        *,
        settings: ServerSettings,
        store: AllocationStore,
        allocator_factory: AllocatorFactory,
        dns: DNSConfig | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._allocator_factory = allocator_factory
        self._dns = dns

    def dispatch(self, params: Mapping[str, str]) -> DispatchResponse:
        try:
            request = DelegationRequest.from_query_params(params)
            range_set = self._resolve_scope(request.scope)

            if request.command == Command.ADD:
                body = self._add(request, range_set)
                return DispatchResponse(status_code=200, body=body, media_type=JSON_MEDIA_TYPE)
            if request.command == Command.DEL:
                self._release(request, range_set)
                return DispatchResponse(status_code=200)
            raise NotFoundError(f"unknown command {request.command!r}")
        except DispatchError as exc:
            log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
            logger.log(log_level, "delegation request rejected status=%d: %s", exc.status_code, exc)
            return DispatchResponse(
                status_code=exc.status_code,
                body=str(exc).encode("utf-8"),
                media_type=TEXT_MEDIA_TYPE,
            )

    def _resolve_scope(self, scope: str) -> RangeSet:
        range_set = self._settings.range_set_for(scope)
        if range_set is None:
            raise NotFoundError(f"unknown scope {scope!r}")
        return range_set

    def _add(self, request: DelegationRequest, range_set: RangeSet) -> bytes:
        allocator = self._allocator_factory(range_set, self._store)
        try:
            ip_config = allocator.get(request.container_key)
        except Exception as exc:
            raise AllocationError(f"failed to allocate: {exc}") from exc

        logger.info(
            "allocated %s to %s in scope %s",
            ip_config.address,
            request.container_key,
            request.scope,
        )
        result = DelegationResult(
            ips=(ip_config,),
            routes=self._settings.routes,
            dns=self._dns,
        )
        return encode_result(result, version=request.version)

    def _release(self, request: DelegationRequest, range_set: RangeSet) -> None:
        allocator = self._allocator_factory(range_set, self._store)
        try:
            allocator.release(request.container_key)
        except Exception as exc:
            raise AllocationError(
                f"failed to release {request.container_key}: {exc}"
            ) from exc

        logger.info("released %s in scope %s", request.container_key, request.scope)
