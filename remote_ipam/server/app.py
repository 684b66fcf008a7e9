from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Response

from remote_ipam.allocator import AllocationStore, AllocatorFactory, create_range_allocator
from remote_ipam.config import ServerSettings, get_settings
from remote_ipam.dns import parse_resolv_conf
from remote_ipam.models import DNSConfig
from remote_ipam.server.dependencies import get_dispatcher, get_query_params
from remote_ipam.server.dispatcher import DelegationDispatcher

logger = logging.getLogger(__name__)


def create_app(
    settings: ServerSettings | None = None,
    *,
    store: AllocationStore | None = None,
    allocator_factory: AllocatorFactory = create_range_allocator,
) -> FastAPI:
    server_settings = settings or get_settings()
    owns_store = store is None
    allocation_store = store or AllocationStore.from_data_dir(server_settings.data_dir)

    dns: DNSConfig | None = None
    if server_settings.resolv_conf:
        dns = parse_resolv_conf(server_settings.resolv_conf)
        logger.info(
            "loaded %d nameserver(s) from %s",
            len(dns.nameservers),
            server_settings.resolv_conf,
        )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            if owns_store:
                allocation_store.close()

    app = FastAPI(title="Remote IPAM", version="0.1.0", lifespan=lifespan)
    app.state.settings = server_settings
    app.state.store = allocation_store
    app.state.dispatcher = DelegationDispatcher(
        settings=server_settings,
        store=allocation_store,
        allocator_factory=allocator_factory,
        dns=dns,
    )

    # Sync endpoint: FastAPI serves each request on its own worker thread.
    def delegate(
        dispatcher: Annotated[DelegationDispatcher, Depends(get_dispatcher)],
        params: Annotated[dict[str, str], Depends(get_query_params)],
    ) -> Response:
        outcome = dispatcher.dispatch(params)
        return Response(
            content=outcome.body,
            status_code=outcome.status_code,
            media_type=outcome.media_type,
        )

    app.add_api_route(
        server_settings.http_path,
        delegate,
        methods=["GET"],
        tags=["ipam"],
        name="delegate",
    )

    @app.get("/healthz", tags=["system"])
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app
