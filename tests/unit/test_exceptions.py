"""Tests for tariff_sync.core.exceptions."""

import pytest

from tariff_sync.core.exceptions import (
    ConfigError,
    InvalidArgumentError,
    ProviderError,
    TariffSyncError,
    UnauthorizedError,
    UpstreamUnavailableError,
)


class TestExceptionHierarchy:
    """Verify the exception class hierarchy."""

    def test_config_is_subclass(self):
        assert issubclass(ConfigError, TariffSyncError)

    def test_invalid_argument_is_subclass(self):
        assert issubclass(InvalidArgumentError, TariffSyncError)

    def test_upstream_is_provider_error(self):
        assert issubclass(UpstreamUnavailableError, ProviderError)
        assert issubclass(UpstreamUnavailableError, TariffSyncError)

    def test_unauthorized_is_provider_error(self):
        assert issubclass(UnauthorizedError, ProviderError)

    def test_unauthorized_and_upstream_are_distinct(self):
        assert not issubclass(UnauthorizedError, UpstreamUnavailableError)
        assert not issubclass(UpstreamUnavailableError, UnauthorizedError)

    def test_config_is_not_provider_error(self):
        assert not issubclass(ConfigError, ProviderError)


class TestExceptionContext:
    """Verify context dict behavior."""

    def test_context_preserved(self):
        exc = UpstreamUnavailableError(
            "HTTP 503 from octopus",
            context={"provider": "octopus", "status_code": 503},
        )
        assert exc.context["provider"] == "octopus"
        assert exc.context["status_code"] == 503

    def test_default_context_is_empty_dict(self):
        exc = ConfigError("bad")
        assert exc.context == {}

    def test_message(self):
        exc = UnauthorizedError("token rejected")
        assert str(exc) == "token rejected"

    def test_catchable_as_base(self):
        with pytest.raises(TariffSyncError):
            raise UnauthorizedError("nope")
