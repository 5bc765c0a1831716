"""
Cloudflare DNS client

Looks up, creates and updates a single address record through the
Cloudflare v4 API. Every response is a JSON envelope with a ``success`` flag;
on failure its ``errors`` list is surfaced verbatim.
"""

import asyncio
import json as jsonlib
from typing import Any, Literal, Optional

import aiohttp

from ..errors import AuthenticationError, ProviderError
from ..logger import logger
from .types import (
    Created,
    ExistingRecord,
    Failed,
    ReconciliationOutcome,
    RecordType,
    Unchanged,
    Updated,
)

CLOUDFLARE_API_BASE_URL = "https://api.cloudflare.com/client/v4/"

# Cloudflare error codes meaning the token is invalid or lacks permission
AUTH_ERROR_CODES = frozenset({9103, 9106, 9109, 10000})


def _is_auth_error(errors: Any) -> bool:
    if not isinstance(errors, list):
        return False
    return any(
        isinstance(error, dict) and error.get("code") in AUTH_ERROR_CODES
        for error in errors
    )


class CloudflareClient:
    """
    Record client for a single Cloudflare zone API.

    The zone and credential are passed per call, so one client can serve
    every target of a pass.
    """

    def __init__(
        self,
        base_url: str = CLOUDFLARE_API_BASE_URL,
        timeout: float = 30,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = base_url
        if not self._base_url.endswith("/"):
            self._base_url += "/"

        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _send_request(
        self,
        method: Literal["GET", "POST", "PUT"],
        path: str,
        api_token: str,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Send a request and unwrap the ``result`` of a successful envelope.

        Raises:
            AuthenticationError: If the credential is rejected
            ProviderError: On any other failure, including timeouts
        """
        headers = {"Authorization": f"Bearer {api_token}"}
        if json is not None:
            headers["Content-Type"] = "application/json"

        try:
            async with self._get_session().request(
                method,
                self._base_url + path,
                headers=headers,
                params=params,
                json=json,
                timeout=self._timeout,
            ) as response:
                status = response.status
                response_str = await response.text()
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Cloudflare API request {method} {path} timed out") from e
        except aiohttp.ClientError as e:
            raise ProviderError(
                f"Cloudflare API request {method} {path} failed: {type(e).__name__}: {e}"
            ) from e

        try:
            payload = jsonlib.loads(response_str)
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            if status in (401, 403):
                raise AuthenticationError(
                    f"Cloudflare API rejected the credential (HTTP {status})",
                    status=status,
                )
            raise ProviderError(
                f"Cloudflare API returned a malformed response (HTTP {status})",
                status=status,
            )

        if payload.get("success") is not True:
            errors = payload.get("errors")
            if status in (401, 403) or _is_auth_error(errors):
                raise AuthenticationError(
                    "Cloudflare API rejected the credential", errors, status
                )
            raise ProviderError("Cloudflare API error", errors, status)

        return payload.get("result")

    async def get_record(
        self,
        zone_id: str,
        name: str,
        record_type: RecordType,
        api_token: str,
    ) -> ExistingRecord | None:
        """Return the first record matching name and type, or None"""
        result = await self._send_request(
            "GET",
            f"zones/{zone_id}/dns_records",
            api_token,
            params={"name": name, "type": RecordType(record_type).value},
        )

        if not isinstance(result, list):
            raise ProviderError(
                f"Cloudflare API returned a malformed record list for {name}"
            )
        if not result:
            return None
        if len(result) > 1:
            logger.warning(
                f"{len(result)} {RecordType(record_type).value} records found for {name}, "
                "only the first one is reconciled"
            )

        record = result[0]
        try:
            return ExistingRecord(
                record_id=str(record["id"]),
                current_content=str(record["content"]),
            )
        except (KeyError, TypeError) as e:
            raise ProviderError(
                f"Cloudflare API returned a malformed record for {name}: {record!r}"
            ) from e

    async def create_record(
        self,
        zone_id: str,
        name: str,
        record_type: RecordType,
        content: str,
        ttl: int,
        proxied: bool,
        api_token: str,
    ):
        await self._send_request(
            "POST",
            f"zones/{zone_id}/dns_records",
            api_token,
            json=self._record_payload(name, record_type, content, ttl, proxied),
        )

    async def update_record(
        self,
        zone_id: str,
        record_id: str,
        name: str,
        record_type: RecordType,
        content: str,
        ttl: int,
        proxied: bool,
        api_token: str,
    ):
        await self._send_request(
            "PUT",
            f"zones/{zone_id}/dns_records/{record_id}",
            api_token,
            json=self._record_payload(name, record_type, content, ttl, proxied),
        )

    @staticmethod
    def _record_payload(
        name: str, record_type: RecordType, content: str, ttl: int, proxied: bool
    ) -> dict[str, Any]:
        return {
            "type": RecordType(record_type).value,
            "name": name,
            "content": content,
            "ttl": ttl,
            "proxied": proxied,
        }

    async def reconcile(
        self,
        zone_id: str,
        name: str,
        record_type: RecordType,
        desired_content: str,
        ttl: int,
        proxied: bool,
        api_token: str,
    ) -> ReconciliationOutcome:
        """
        Converge one record on ``desired_content`` with the minimal API call.

        Lookup failures raise; create and update failures are returned as
        ``Failed``. Equal content issues no write request.

        Raises:
            AuthenticationError: If the lookup is rejected for the credential
            ProviderError: If the lookup fails for any other reason
        """
        existing = await self.get_record(zone_id, name, record_type, api_token)
        desired_content = desired_content.strip()

        if existing is None:
            logger.info(f"DNS record {name} not found, attempting to add")
            try:
                await self.create_record(
                    zone_id, name, record_type, desired_content, ttl, proxied, api_token
                )
            except ProviderError as e:
                return Failed(domain_name=name, error=e)
            return Created(domain_name=name, content=desired_content)

        current_content = existing.current_content.strip()
        if current_content == desired_content:
            return Unchanged(domain_name=name, content=current_content)

        logger.info(
            f"IP change detected for {name}: record {current_content}, current {desired_content}"
        )
        try:
            await self.update_record(
                zone_id,
                existing.record_id,
                name,
                record_type,
                desired_content,
                ttl,
                proxied,
                api_token,
            )
        except ProviderError as e:
            return Failed(domain_name=name, error=e)
        return Updated(
            domain_name=name, old_content=current_content, new_content=desired_content
        )

    async def close(self):
        """Clean up the session"""
        if self._session is not None:
            await self._session.close()
