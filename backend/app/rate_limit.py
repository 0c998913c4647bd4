"""Rate limiting for the GigFlow backend.

Requests are bucketed by client address. The address comes from
X-Forwarded-For only when the socket peer is one of the proxies listed in
``TRUSTED_PROXY_CIDRS``; the forwarded chain is then walked right to left,
past further trusted hops, to the first address a proxy of ours actually saw.
"""

import ipaddress
from functools import lru_cache
from typing import Iterable

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from .config import get_settings
from .logging_config import get_logger

logger = get_logger("gigflow.api.rate_limit")

AUTH_LIMIT = "10/minute"
WRITE_LIMIT = "30/minute"
HIRE_LIMIT = "10/minute"
READ_LIMIT = "120/minute"

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


def parse_networks(cidrs: str) -> tuple[Network, ...]:
    """Parse a comma-separated CIDR list, skipping (and logging) bad entries."""
    networks = []
    for entry in (part.strip() for part in cidrs.split(",")):
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            logger.warning(f"Rate limit | ignoring invalid proxy cidr={entry!r}")
    return tuple(networks)


@lru_cache
def trusted_networks() -> tuple[Network, ...]:
    return parse_networks(get_settings().trusted_proxy_cidrs)


def _in_networks(address: str, networks: Iterable[Network]) -> bool:
    try:
        parsed = ipaddress.ip_address(address)
    except ValueError:
        return False
    return any(parsed in network for network in networks)


def resolve_client_ip(peer: str, forwarded_for: str | None, networks: Iterable[Network]) -> str:
    """Pick the rate-limit key from the socket peer and its X-Forwarded-For header."""
    networks = tuple(networks)
    if not forwarded_for or not _in_networks(peer, networks):
        return peer
    hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
    for hop in reversed(hops):
        if not _in_networks(hop, networks):
            return hop
    # Every hop is one of ours: the request started inside the network
    return hops[0] if hops else peer


def get_client_ip(request: Request) -> str:
    return resolve_client_ip(
        get_remote_address(request),
        request.headers.get("x-forwarded-for"),
        trusted_networks(),
    )


limiter = Limiter(key_func=get_client_ip, enabled=get_settings().rate_limit_enabled)
