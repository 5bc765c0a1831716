"""
Tests for public address discovery
"""

import asyncio
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from cfddns.dns.resolver import DEFAULT_ENDPOINTS, AddressResolver, parse_address
from cfddns.dns.types import RecordType, ResolvedAddress
from cfddns.errors import DiscoveryUnavailable, NoProviderReachable

ENDPOINTS = {
    RecordType.A: ("https://one.example", "https://two.example", "https://three.example"),
    RecordType.AAAA: ("https://six.example",),
}


def test_default_endpoint_lists_are_disjoint():
    assert DEFAULT_ENDPOINTS[RecordType.A]
    assert DEFAULT_ENDPOINTS[RecordType.AAAA]
    assert not set(DEFAULT_ENDPOINTS[RecordType.A]) & set(
        DEFAULT_ENDPOINTS[RecordType.AAAA]
    )


def test_parse_address_strips_whitespace():
    assert parse_address(" 203.0.113.9\n", RecordType.A) == "203.0.113.9"


def test_parse_address_normalizes_ipv6():
    assert (
        parse_address("2001:0db8:0000:0000:0000:0000:0000:0001", RecordType.AAAA)
        == "2001:db8::1"
    )


@pytest.mark.parametrize(
    "body,record_type",
    [
        ("", RecordType.A),
        ("<html>blocked</html>", RecordType.A),
        ("2001:db8::1", RecordType.A),
        ("203.0.113.9", RecordType.AAAA),
    ],
)
def test_parse_address_rejects_invalid_bodies(body, record_type):
    with pytest.raises(ValueError):
        parse_address(body, record_type)


@pytest.mark.asyncio
async def test_resolve_first_endpoint_succeeds():
    resolver = AddressResolver(endpoints=ENDPOINTS)
    resolver._fetch = AsyncMock(return_value="203.0.113.9\n")

    result = await resolver.resolve(RecordType.A)

    assert result == ResolvedAddress(address="203.0.113.9", source="https://one.example")
    resolver._fetch.assert_called_once_with("https://one.example")


@pytest.mark.asyncio
async def test_resolve_falls_back_in_order():
    """Endpoints 1 and 2 fail, endpoint 3 answers: exactly three attempts"""
    resolver = AddressResolver(endpoints=ENDPOINTS)
    resolver._fetch = AsyncMock(
        side_effect=[
            aiohttp.ClientError("connection refused"),
            "not an address",
            "198.51.100.7",
        ]
    )

    result = await resolver.resolve(RecordType.A)

    assert result.address == "198.51.100.7"
    assert result.source == "https://three.example"
    assert [call.args[0] for call in resolver._fetch.call_args_list] == list(
        ENDPOINTS[RecordType.A]
    )


@pytest.mark.asyncio
async def test_resolve_all_endpoints_fail():
    resolver = AddressResolver(endpoints=ENDPOINTS)
    resolver._fetch = AsyncMock(side_effect=asyncio.TimeoutError())

    with patch("cfddns.dns.resolver.logger") as mock_logger:
        with pytest.raises(DiscoveryUnavailable) as exc_info:
            await resolver.resolve(RecordType.A)

        assert mock_logger.warning.call_count == 3

    # Each endpoint is attempted once, never retried
    assert resolver._fetch.call_count == 3
    assert exc_info.value.record_type == "A"
    assert [endpoint for endpoint, _ in exc_info.value.attempts] == list(
        ENDPOINTS[RecordType.A]
    )


@pytest.mark.asyncio
async def test_resolve_uses_family_specific_endpoints():
    resolver = AddressResolver(endpoints=ENDPOINTS)
    resolver._fetch = AsyncMock(return_value="2001:db8::42")

    result = await resolver.resolve(RecordType.AAAA)

    assert result == ResolvedAddress(address="2001:db8::42", source="https://six.example")
    resolver._fetch.assert_called_once_with("https://six.example")


@pytest.mark.asyncio
async def test_resolve_rejects_wrong_family():
    """An IPv4 answer from a dual-stack service does not satisfy AAAA"""
    resolver = AddressResolver(endpoints=ENDPOINTS)
    resolver._fetch = AsyncMock(return_value="203.0.113.9")

    with pytest.raises(NoProviderReachable):
        await resolver.resolve(RecordType.AAAA)


@pytest.mark.asyncio
async def test_resolve_without_endpoints():
    resolver = AddressResolver(endpoints={RecordType.A: ()})

    with pytest.raises(DiscoveryUnavailable):
        await resolver.resolve(RecordType.AAAA)


@pytest.mark.asyncio
async def test_resolve_through_session(fake_session_cls, fake_response_cls):
    """HTTP errors and bad bodies are skipped using the real fetch path"""
    session = fake_session_cls(
        [
            fake_response_cls(status=503, body="unavailable"),
            aiohttp.ClientConnectionError("reset"),
            fake_response_cls(status=200, body="192.0.2.10\n"),
        ]
    )
    resolver = AddressResolver(endpoints=ENDPOINTS, timeout=2, session=session)

    result = await resolver.resolve(RecordType.A)

    assert result.address == "192.0.2.10"
    assert [url for _, url, _ in session.requests] == list(ENDPOINTS[RecordType.A])
    assert all(
        kwargs["timeout"].total == 2 for _, _, kwargs in session.requests
    )


@pytest.mark.asyncio
async def test_close_closes_session(fake_session_cls):
    session = fake_session_cls([])
    resolver = AddressResolver(session=session)

    await resolver.close()

    assert session.closed
