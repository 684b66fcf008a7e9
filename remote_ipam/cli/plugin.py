"""CNI IPAM plugin executable that delegates ADD/DEL to a remote server."""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping
from typing import IO, Any, TextIO

from remote_ipam.client import DelegatorProtocol, RemoteDelegator, load_delegation_config
from remote_ipam.errors import ConfigError, DecodeError, RemoteIpamError
from remote_ipam.protocol import SUPPORTED_VERSIONS, UnsupportedVersionError, render_result

logger = logging.getLogger(__name__)

LATEST_VERSION = SUPPORTED_VERSIONS[-1]
LOG_LEVEL_ENV = "REMOTE_IPAM_LOG_LEVEL"

CNI_ERROR_INCOMPATIBLE_VERSION = 1
CNI_ERROR_INVALID_ENVIRONMENT = 4
CNI_ERROR_DECODE = 6
CNI_ERROR_INVALID_CONFIG = 7
CNI_ERROR_INTERNAL = 999


class PluginEnvironmentError(RemoteIpamError):
    error_code = "invalid_environment"


def main(
    *,
    environ: Mapping[str, str] | None = None,
    stdin: IO[bytes] | None = None,
    stdout: TextIO | None = None,
    delegator: DelegatorProtocol | None = None,
) -> int:
    env = environ if environ is not None else os.environ
    input_stream = stdin if stdin is not None else sys.stdin.buffer
    output = stdout if stdout is not None else sys.stdout
    _configure_logging(env)

    command = env.get("CNI_COMMAND", "").strip().upper()
    if command == "VERSION":
        _write_json(
            output,
            {"cniVersion": LATEST_VERSION, "supportedVersions": list(SUPPORTED_VERSIONS)},
        )
        return 0

    result_version = LATEST_VERSION
    try:
        if command not in {"ADD", "DEL"}:
            raise PluginEnvironmentError(f"unknown CNI_COMMAND {command!r}")
        container_id = env.get("CNI_CONTAINERID", "").strip()
        if not container_id:
            raise PluginEnvironmentError("required env variable CNI_CONTAINERID missing")

        config = load_delegation_config(input_stream.read())
        if config.protocol_version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersionError(
                f"unsupported cniVersion {config.protocol_version!r}"
            )
        result_version = config.protocol_version

        remote = delegator or RemoteDelegator()
        if command == "ADD":
            result = remote.add(config, container_id)
            _write_json(output, render_result(result, config.protocol_version))
        else:
            remote.delete(config, container_id)
    except RemoteIpamError as exc:
        logger.error("%s failed: %s", command or "command", exc)
        _write_json(
            output,
            {"cniVersion": result_version, "code": _error_code(exc), "msg": str(exc)},
        )
        return 1

    return 0


def _error_code(exc: RemoteIpamError) -> int:
    if isinstance(exc, UnsupportedVersionError):
        return CNI_ERROR_INCOMPATIBLE_VERSION
    if isinstance(exc, PluginEnvironmentError):
        return CNI_ERROR_INVALID_ENVIRONMENT
    if isinstance(exc, DecodeError):
        return CNI_ERROR_DECODE
    if isinstance(exc, ConfigError):
        return CNI_ERROR_INVALID_CONFIG
    return CNI_ERROR_INTERNAL


def _write_json(output: TextIO, document: dict[str, Any]) -> None:
    output.write(json.dumps(document, indent=4))
    output.write("\n")
    output.flush()


def _configure_logging(env: Mapping[str, str]) -> None:
    # stdout carries the CNI result, so logs go to stderr.
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.getLevelNamesMapping().get(
            env.get(LOG_LEVEL_ENV, "").strip().upper(), logging.WARNING
        ),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    raise SystemExit(main())
