"""Common FastAPI dependencies."""

from __future__ import annotations

from typing import cast

from fastapi import Request

from remote_ipam.server.dispatcher import DelegationDispatcher


def get_dispatcher(request: Request) -> DelegationDispatcher:
    return cast(DelegationDispatcher, request.app.state.dispatcher)


def get_query_params(request: Request) -> dict[str, str]:
    """Return the first value of every query parameter."""
    params = request.query_params
    return {key: params.getlist(key)[0] for key in params.keys()}
