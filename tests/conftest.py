from typing import Any

import aiohttp
import pytest

from cfddns.dns.cloudflare import CloudflareClient
from cfddns.dns.types import RecordType, ResolvedAddress
from cfddns.errors import DiscoveryUnavailable


class MockAsyncContext:
    """Mock async context manager for aiohttp responses"""

    def __init__(self, response):
        self._response = response

    async def __aenter__(self):
        return self._response

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


class FakeResponse:
    def __init__(self, status: int = 200, body: str = ""):
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientError(f"HTTP {self.status}")


class FakeSession:
    """Replays queued responses (or raises queued exceptions) in order"""

    def __init__(self, responses: list[FakeResponse | BaseException]):
        self._responses = list(responses)
        self.requests: list[tuple[str, str, dict]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs):
        self.requests.append((method, url, kwargs))
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return MockAsyncContext(item)

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    async def close(self):
        self.closed = True


class FakeCloudflare(CloudflareClient):
    """
    In-memory Cloudflare zone.

    Records are keyed by (name, type). Every API call is recorded so tests
    can assert on the exact requests issued.
    """

    def __init__(self, records: dict[tuple[str, str], dict[str, Any]] | None = None):
        super().__init__()
        self.records = dict(records or {})
        self.calls: list[tuple[str, str, dict | None, dict | None]] = []
        self.lookup_errors: dict[str, Exception] = {}
        self.write_errors: dict[str, Exception] = {}
        self._next_id = 0

    @property
    def writes(self):
        return [call for call in self.calls if call[0] != "GET"]

    async def _send_request(self, method, path, api_token, params=None, json=None):
        self.calls.append((method, path, params, json))

        if method == "GET":
            assert params is not None
            if params["name"] in self.lookup_errors:
                raise self.lookup_errors[params["name"]]
            record = self.records.get((params["name"], params["type"]))
            return [record] if record else []

        assert json is not None
        if json["name"] in self.write_errors:
            raise self.write_errors[json["name"]]

        if method == "POST":
            self._next_id += 1
            record = {"id": f"rec-{self._next_id}", **json}
            self.records[(json["name"], json["type"])] = record
            return record

        record_id = path.rsplit("/", 1)[-1]
        record = {"id": record_id, **json}
        self.records[(json["name"], json["type"])] = record
        return record


class FakeResolver:
    """Resolver returning fixed addresses per record type"""

    def __init__(self, addresses: dict[RecordType, str | Exception]):
        self.addresses = addresses
        self.calls: list[RecordType] = []

    async def resolve(self, record_type: RecordType) -> ResolvedAddress:
        self.calls.append(record_type)
        value = self.addresses.get(record_type)
        if value is None:
            raise DiscoveryUnavailable(record_type.value, [])
        if isinstance(value, Exception):
            raise value
        return ResolvedAddress(address=value, source="https://fake.example")

    async def close(self):
        pass


@pytest.fixture
def fake_session_cls():
    return FakeSession


@pytest.fixture
def fake_response_cls():
    return FakeResponse


@pytest.fixture
def fake_cloudflare():
    """Factory for in-memory Cloudflare zones"""
    return FakeCloudflare


@pytest.fixture
def fake_resolver():
    """Factory for fixed-address resolvers"""
    return FakeResolver
