"""
Reconciliation engine

Drives one pass: resolve the public address once per record type, then
reconcile every target in configuration order. Errors never escape a target;
they are converted into ``Failed`` outcomes here.
"""

import asyncio
from typing import Sequence

from ..errors import DiscoveryUnavailable
from ..logger import logger
from .cloudflare import CloudflareClient
from .resolver import AddressResolver
from .types import (
    Failed,
    PassResult,
    ReconcileSettings,
    ReconciliationOutcome,
    ReconciliationTarget,
    RecordType,
    ResolvedAddress,
)


class ReconciliationEngine:
    def __init__(self, resolver: AddressResolver, client: CloudflareClient):
        self._resolver = resolver
        self._client = client

    async def _resolve_addresses(
        self,
        record_types: Sequence[RecordType],
        stop_event: asyncio.Event | None,
    ) -> dict[RecordType, ResolvedAddress | DiscoveryUnavailable]:
        addresses: dict[RecordType, ResolvedAddress | DiscoveryUnavailable] = {}
        for record_type in record_types:
            if stop_event is not None and stop_event.is_set():
                break
            try:
                addresses[record_type] = await self._resolver.resolve(record_type)
            except DiscoveryUnavailable as e:
                logger.error(f"Failed to get public {record_type.value} address: {e}")
                addresses[record_type] = e
        return addresses

    async def _reconcile_target(
        self,
        target: ReconciliationTarget,
        resolved: ResolvedAddress | DiscoveryUnavailable,
        settings: ReconcileSettings,
    ) -> ReconciliationOutcome:
        if isinstance(resolved, DiscoveryUnavailable):
            return Failed(domain_name=target.domain_name, error=resolved)

        try:
            return await self._client.reconcile(
                settings.zone_id,
                target.domain_name,
                target.record_type,
                resolved.address,
                settings.ttl,
                settings.proxied,
                settings.api_token,
            )
        except Exception as e:
            return Failed(domain_name=target.domain_name, error=e)

    async def run_pass(
        self,
        targets: Sequence[ReconciliationTarget],
        settings: ReconcileSettings,
        stop_event: asyncio.Event | None = None,
    ) -> PassResult:
        """
        Run one reconciliation pass over ``targets``.

        Args:
            targets: Targets in configuration order
            settings: Zone, credential, TTL and proxy flag shared by all targets
            stop_event: When set, no further target is started; the result
                then only holds the targets processed so far

        Returns:
            PassResult with one outcome per processed target
        """
        record_types = list(dict.fromkeys(RecordType(t.record_type) for t in targets))
        addresses = await self._resolve_addresses(record_types, stop_event)

        outcomes: dict[ReconciliationTarget, ReconciliationOutcome] = {}
        for index, target in enumerate(targets):
            if stop_event is not None and stop_event.is_set():
                logger.warning(
                    f"Stop requested, skipping {len(targets) - index} remaining target(s)"
                )
                break

            outcome = await self._reconcile_target(
                target, addresses[RecordType(target.record_type)], settings
            )
            if outcome.ok:
                logger.info(outcome.describe())
            else:
                logger.error(outcome.describe())
            outcomes[target] = outcome

        result = PassResult(outcomes)
        if result.successful:
            logger.info(f"Pass completed: {result.summary()}")
        else:
            logger.warning(f"Pass partially failed: {result.summary()}")
        return result
