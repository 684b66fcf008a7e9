"""Parser for resolv.conf style resolver configuration files."""

from __future__ import annotations

from pathlib import Path

from remote_ipam.errors import FileError
from remote_ipam.models import DNSConfig

_COMMENT_PREFIXES = ("#", ";")


def parse_resolv_conf(path: str | Path) -> DNSConfig:
    """Read ``path`` and return the nameserver, domain, search and options settings.

    Unknown directives and lines with a single field are ignored. A later
    ``domain`` line replaces an earlier one.
    """
    try:
        raw = Path(path).read_bytes()
    except OSError as exc:
        raise FileError(f"failed to read {str(path)!r}: {exc}") from exc

    # Stray non-UTF-8 bytes, typically in comments, must not reject the file.
    return parse_resolv_conf_text(raw.decode("utf-8", errors="replace"))


def parse_resolv_conf_text(text: str) -> DNSConfig:
    nameservers: list[str] = []
    domain: str | None = None
    search: list[str] = []
    options: list[str] = []

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(_COMMENT_PREFIXES):
            continue

        fields = line.split()
        if len(fields) < 2:
            continue

        directive = fields[0]
        if directive == "nameserver":
            nameservers.append(fields[1])
        elif directive == "domain":
            domain = fields[1]
        elif directive == "search":
            search.extend(fields[1:])
        elif directive == "options":
            options.extend(fields[1:])

    return DNSConfig(
        nameservers=tuple(nameservers),
        domain=domain,
        search=tuple(search),
        options=tuple(options),
    )
