"""Server configuration loading."""

from __future__ import annotations

import ipaddress
import json
import os
from dataclasses import dataclass, field, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

import yaml

from remote_ipam.allocator.ranges import RangeSet, parse_range_set
from remote_ipam.errors import ConfigError, FileError
from remote_ipam.models import Route

CONFIG_PATH_ENV = "REMOTE_IPAM_CONFIG_PATH"
DEFAULT_CONFIG_PATH = "/etc/remote-ipam/config.json"
DEFAULT_LISTEN_HOST = "0.0.0.0"
DEFAULT_LISTEN_PORT = 80
DEFAULT_HTTP_PATH = "/"
YAML_SUFFIXES = frozenset({".yaml", ".yml"})


@dataclass(frozen=True, slots=True)
class ServerSettings:
    ranges: dict[str, RangeSet]
    data_dir: str
    resolv_conf: str = ""
    routes: tuple[Route, ...] = ()
    listen_host: str = DEFAULT_LISTEN_HOST
    listen_port: int = DEFAULT_LISTEN_PORT
    http_path: str = DEFAULT_HTTP_PATH
    config_path: str = field(default="", compare=False)

    def range_set_for(self, scope: str) -> RangeSet | None:
        return self.ranges.get(scope)

    @classmethod
    def from_file(cls, config_path: str) -> ServerSettings:
        normalized_path = config_path.strip()
        if not normalized_path:
            raise ConfigError("server configuration path is required")
        config = _load_config_file(normalized_path)
        return replace(cls.from_mapping(config), config_path=normalized_path)

    @classmethod
    def from_mapping(cls, config: dict[str, Any]) -> ServerSettings:
        ranges_cfg = config.get("ranges")
        if not isinstance(ranges_cfg, dict) or not ranges_cfg:
            raise ConfigError("'ranges' must map at least one scope to a range set")
        listen_cfg = cast(dict[str, Any], config.get("listen") or {})

        data_dir = str(config.get("dataDir") or "").strip()
        if not data_dir:
            raise ConfigError("'dataDir' is required")

        return cls(
            ranges={
                str(scope): parse_range_set(raw, scope=str(scope))
                for scope, raw in ranges_cfg.items()
            },
            data_dir=data_dir,
            resolv_conf=str(config.get("resolvConf") or "").strip(),
            routes=_parse_routes(config.get("routes")),
            listen_host=str(listen_cfg.get("host", DEFAULT_LISTEN_HOST)),
            listen_port=_parse_port(listen_cfg.get("port", DEFAULT_LISTEN_PORT)),
            http_path=_normalize_http_path(str(config.get("path") or DEFAULT_HTTP_PATH)),
        )


def _load_config_file(config_path: str) -> dict[str, Any]:
    path = Path(config_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise FileError(f"failed to read {config_path!r}: {exc}") from exc

    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            parsed = yaml.safe_load(text)
        else:
            parsed = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"failed to parse {config_path!r}: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ConfigError(f"failed to parse {config_path!r}: root must be an object")
    return parsed


def _parse_routes(raw: Any) -> tuple[Route, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigError("'routes' must be a list")

    routes: list[Route] = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("dst"):
            raise ConfigError("each route requires a 'dst'")
        try:
            dst = ipaddress.ip_network(str(item["dst"]).strip(), strict=False)
            gw_value = item.get("gw")
            gw = ipaddress.ip_address(str(gw_value).strip()) if gw_value else None
        except ValueError as exc:
            raise ConfigError(f"invalid route {item!r}: {exc}") from exc
        routes.append(Route(dst=dst, gw=gw))
    return tuple(routes)


def _parse_port(raw: Any) -> int:
    try:
        port = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid listen port {raw!r}") from exc
    if not 1 <= port <= 65535:
        raise ConfigError(f"listen port out of range: {port}")
    return port


def _normalize_http_path(path: str) -> str:
    normalized = path.strip() or DEFAULT_HTTP_PATH
    if not normalized.startswith("/"):
        normalized = f"/{normalized}"
    return normalized


@lru_cache(maxsize=1)
def get_settings() -> ServerSettings:
    return ServerSettings.from_file(os.getenv(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))
