"""
DNS Management System

Keeps Cloudflare address records pointed at the current public address.
"""

from .cloudflare import CloudflareClient
from .engine import ReconciliationEngine
from .resolver import DEFAULT_ENDPOINTS, AddressResolver, parse_address
from .types import (
    Created,
    ExistingRecord,
    Failed,
    PassResult,
    ReconcileSettings,
    ReconciliationOutcome,
    ReconciliationTarget,
    RecordType,
    ResolvedAddress,
    Unchanged,
    Updated,
)

__all__ = [
    "AddressResolver",
    "CloudflareClient",
    "ReconciliationEngine",
    "DEFAULT_ENDPOINTS",
    "parse_address",
    "RecordType",
    "ReconciliationTarget",
    "ResolvedAddress",
    "ExistingRecord",
    "ReconcileSettings",
    "ReconciliationOutcome",
    "Unchanged",
    "Updated",
    "Created",
    "Failed",
    "PassResult",
]
