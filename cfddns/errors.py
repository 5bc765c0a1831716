"""
Error taxonomy for the DDNS updater.

Only configuration-time errors are fatal. Everything raised while processing
a target is converted into a ``Failed`` outcome by the reconciliation engine.
"""

from typing import Any


class DDNSError(Exception):
    """Base class for all errors raised by cfddns"""


class DiscoveryUnavailable(DDNSError):
    """Every public address discovery endpoint failed for a record type"""

    def __init__(self, record_type: str, attempts: list[tuple[str, str]]):
        self.record_type = record_type
        self.attempts = attempts
        causes = "; ".join(f"{endpoint}: {cause}" for endpoint, cause in attempts)
        super().__init__(
            f"Unable to obtain public {record_type} address from any service ({causes})"
        )


NoProviderReachable = DiscoveryUnavailable


class ProviderError(DDNSError):
    """
    DNS provider rejected a request or could not be reached.

    ``errors`` holds the provider's machine-readable error payload verbatim.
    """

    def __init__(self, message: str, errors: Any = None, status: int | None = None):
        self.errors = errors
        self.status = status
        if errors:
            message = f"{message}: {errors}"
        super().__init__(message)


class AuthenticationError(ProviderError):
    """The provider rejected the API credential"""


class ConfigurationConflict(DDNSError):
    """Scheduling configuration is missing or contradictory"""


class InvalidScheduleExpression(DDNSError):
    """A calendar expression could not be parsed"""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid schedule expression '{expression}': {reason}")
