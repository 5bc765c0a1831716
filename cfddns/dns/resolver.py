"""
Public address discovery.

Queries plain-text "what is my IP" services in order and returns the first
valid answer. Endpoint lists are disjoint per address family because several
services only answer over one protocol.
"""

import ipaddress
from typing import Mapping, Sequence

import aiohttp

from ..errors import DiscoveryUnavailable
from ..logger import logger
from .types import RecordType, ResolvedAddress

DEFAULT_ENDPOINTS: dict[RecordType, tuple[str, ...]] = {
    RecordType.A: (
        "https://api.ipify.org",
        "https://ipv4.icanhazip.com",
        "https://ifconfig.me/ip",
    ),
    RecordType.AAAA: (
        "https://api6.ipify.org",
        "https://ipv6.icanhazip.com",
        "https://v6.ident.me",
    ),
}


def parse_address(body: str, record_type: RecordType) -> str:
    """
    Validate a discovery response body and return the normalized address.

    Raises:
        ValueError: If the body is not an address of the expected family
    """
    text = body.strip()
    if not text:
        raise ValueError("empty response body")

    address = ipaddress.ip_address(text)
    expected = ipaddress.IPv4Address if record_type == RecordType.A else ipaddress.IPv6Address
    if not isinstance(address, expected):
        raise ValueError(f"{text} is not an address for a {record_type.value} record")

    return str(address)


class AddressResolver:
    """
    Resolves the caller's public address, one attempt per endpoint.

    Worst-case latency of ``resolve`` is bounded by the number of endpoints
    times the per-attempt timeout.
    """

    def __init__(
        self,
        endpoints: Mapping[RecordType, Sequence[str]] | None = None,
        timeout: float = 5,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._endpoints = dict(DEFAULT_ENDPOINTS if endpoints is None else endpoints)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    def endpoints_for(self, record_type: RecordType) -> tuple[str, ...]:
        return tuple(self._endpoints.get(RecordType(record_type), ()))

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _fetch(self, endpoint: str) -> str:
        session = self._get_session()
        async with session.get(endpoint, timeout=self._timeout) as response:
            response.raise_for_status()
            return await response.text()

    async def resolve(self, record_type: RecordType) -> ResolvedAddress:
        """
        Return the public address for ``record_type``.

        Raises:
            DiscoveryUnavailable: If every endpoint failed
        """
        record_type = RecordType(record_type)
        attempts: list[tuple[str, str]] = []

        for endpoint in self.endpoints_for(record_type):
            try:
                body = await self._fetch(endpoint)
                address = parse_address(body, record_type)
            except Exception as e:
                cause = f"{type(e).__name__}: {e}"
                logger.warning(f"Address discovery via {endpoint} failed: {cause}")
                attempts.append((endpoint, cause))
                continue

            logger.info(f"Public {record_type.value} address {address} (via {endpoint})")
            return ResolvedAddress(address=address, source=endpoint)

        raise DiscoveryUnavailable(record_type.value, attempts)

    async def close(self):
        """Clean up the session"""
        if self._session is not None:
            await self._session.close()
