"""Custom exception hierarchy for tariff-sync."""

from typing import Any


class TariffSyncError(Exception):
    """Base exception for all tariff-sync errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(TariffSyncError):
    """Invalid or missing configuration.

    Raised by load_config() and the provider factory during startup. Fatal
    at boot. If raised inside a scheduled run it is logged at ERROR and the
    scheduler continues.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value (redacted for secrets)
    """


class InvalidArgumentError(TariffSyncError):
    """A caller passed an argument outside the operation's contract.

    Policy: programming error. Never expected with valid configuration, so
    the scheduler treats it as fatal.

    Context keys:
        argument: str — the offending argument name
        value: Any — the rejected value
    """


class ProviderError(TariffSyncError):
    """A price data provider failed to return price segments.

    Context keys:
        provider: str — the provider that failed
    """


class UpstreamUnavailableError(ProviderError):
    """Price source unreachable, or returned a malformed/incomplete payload.

    Policy: log at WARNING and wait for the next tick. No retry within the
    cycle.

    Context keys:
        url: str — the URL being fetched
        status_code: int | None — HTTP status if a response was received
    """


class UnauthorizedError(ProviderError):
    """Price source rejected the configured credentials.

    Policy: log at ERROR (operator action needed). The scheduler continues.

    Context keys:
        url: str — the URL being fetched
        status_code: int | None — HTTP status (401/403)
    """
