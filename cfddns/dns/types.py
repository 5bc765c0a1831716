"""
DNS type definitions for the DNS module
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

# Basic types
RecordIdT = str


class RecordType(str, Enum):
    """Address record types that can be kept in sync"""

    A = "A"
    AAAA = "AAAA"


class ReconciliationTarget(NamedTuple):
    """A domain name whose record should follow the public address"""

    domain_name: str
    record_type: RecordType


class ResolvedAddress(NamedTuple):
    """Public address together with the discovery endpoint that reported it"""

    address: str
    source: str


class ExistingRecord(NamedTuple):
    """DNS record returned from DNS provider"""

    record_id: RecordIdT
    current_content: str


@dataclass(frozen=True)
class ReconcileSettings:
    """
    Settings shared by every target of a pass.

    The API token is excluded from repr so it never ends up in logs.
    """

    zone_id: str
    api_token: str
    ttl: int = 120
    proxied: bool = False

    def __repr__(self) -> str:
        return (
            f"ReconcileSettings(zone_id={self.zone_id!r}, api_token='***', "
            f"ttl={self.ttl}, proxied={self.proxied})"
        )


# Outcomes


@dataclass(frozen=True)
class Unchanged:
    domain_name: str
    content: str

    ok = True

    def describe(self) -> str:
        return f"IP not changed ({self.content}) for {self.domain_name}"


@dataclass(frozen=True)
class Updated:
    domain_name: str
    old_content: str
    new_content: str

    ok = True

    def describe(self) -> str:
        return (
            f"DNS record {self.domain_name} updated "
            f"{self.old_content} -> {self.new_content}"
        )


@dataclass(frozen=True)
class Created:
    domain_name: str
    content: str

    ok = True

    def describe(self) -> str:
        return f"DNS record {self.domain_name} added with {self.content}"


@dataclass(frozen=True)
class Failed:
    domain_name: str
    error: Exception

    ok = False

    def describe(self) -> str:
        return f"DNS record {self.domain_name} failed: {type(self.error).__name__}: {self.error}"


ReconciliationOutcome = Unchanged | Updated | Created | Failed


@dataclass
class PassResult:
    """
    Outcomes of one pass in configuration order.

    Keyed by target so that a domain configured for both A and AAAA keeps
    both outcomes. Indexing with a plain domain name works when that name
    is configured for a single record type.
    """

    outcomes: dict[ReconciliationTarget, ReconciliationOutcome]

    def __getitem__(self, key: str | ReconciliationTarget) -> ReconciliationOutcome:
        if isinstance(key, ReconciliationTarget):
            return self.outcomes[key]

        matches = [
            outcome
            for target, outcome in self.outcomes.items()
            if target.domain_name == key
        ]
        if len(matches) != 1:
            raise KeyError(key)
        return matches[0]

    def __len__(self) -> int:
        return len(self.outcomes)

    def by_domain(self) -> dict[str, list[ReconciliationOutcome]]:
        grouped: dict[str, list[ReconciliationOutcome]] = {}
        for target, outcome in self.outcomes.items():
            grouped.setdefault(target.domain_name, []).append(outcome)
        return grouped

    @property
    def successful(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes.values())

    def count(self, outcome_type: type) -> int:
        return sum(
            1 for outcome in self.outcomes.values() if isinstance(outcome, outcome_type)
        )

    def summary(self) -> str:
        return (
            f"created={self.count(Created)} updated={self.count(Updated)} "
            f"unchanged={self.count(Unchanged)} failed={self.count(Failed)}"
        )
