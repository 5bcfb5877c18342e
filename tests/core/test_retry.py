"""Tests for retry utilities."""

from unittest.mock import AsyncMock, patch

import pytest

from core.exceptions import (
    LocationSourceError,
    MalformedInput,
    NetworkError,
    ServiceUnavailableError,
    TransientUpstreamFailure,
)
from core.retry import RetryConfig, with_retry


@pytest.mark.unit
class TestRetryConfig:
    def test_default_config(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay == 0.5
        assert config.multiplier == 2.0
        assert config.max_delay == 30.0
        assert config.retryable_exceptions == (TransientUpstreamFailure,)


@pytest.mark.unit
@pytest.mark.critical
class TestWithRetry:
    async def test_succeeds_on_first_attempt(self):
        operation = AsyncMock(return_value="success")

        result = await with_retry(operation)

        assert result == "success"
        assert operation.call_count == 1

    async def test_succeeds_after_transient_failures(self):
        call_count = 0

        async def flaky_operation():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ServiceUnavailableError("503")
            return "ok"

        result = await with_retry(flaky_operation, RetryConfig(base_delay=0.0))

        assert result == "ok"
        assert call_count == 3

    async def test_fails_after_max_attempts(self):
        operation = AsyncMock(side_effect=NetworkError("always fails"))

        with pytest.raises(NetworkError, match="always fails"):
            await with_retry(operation, RetryConfig(max_attempts=2, base_delay=0.0))

        assert operation.call_count == 2

    async def test_permanent_error_not_retried(self):
        operation = AsyncMock(side_effect=MalformedInput("bad coordinate"))

        with pytest.raises(MalformedInput):
            await with_retry(operation, RetryConfig(base_delay=0.0))

        assert operation.call_count == 1

    async def test_location_source_errors_are_retryable(self):
        operation = AsyncMock(side_effect=[LocationSourceError("lost"), "fix"])

        assert await with_retry(operation, RetryConfig(base_delay=0.0)) == "fix"

    async def test_exponential_backoff_capped(self):
        delays = []

        async def mock_sleep(delay):
            delays.append(delay)

        config = RetryConfig(max_attempts=5, base_delay=1.0, multiplier=3.0, max_delay=5.0)
        operation = AsyncMock(side_effect=NetworkError("fail"))

        with (
            patch("core.retry.asyncio.sleep", side_effect=mock_sleep),
            pytest.raises(NetworkError),
        ):
            await with_retry(operation, config)

        assert delays == [1.0, 3.0, 5.0, 5.0]

    async def test_on_retry_callback(self):
        seen = []
        operation = AsyncMock(side_effect=[NetworkError("once"), "done"])

        await with_retry(
            operation,
            RetryConfig(base_delay=0.0),
            on_retry=lambda exc, attempt: seen.append((str(exc), attempt)),
        )

        assert seen == [("once", 0)]


@pytest.mark.unit
class TestRetryConfigHelpers:
    def test_delay_for_grows_and_caps(self):
        config = RetryConfig(base_delay=0.5, multiplier=2.0, max_delay=1.5)

        assert [config.delay_for(i) for i in range(4)] == [0.5, 1.0, 1.5, 1.5]

    def test_from_osrm_settings(self):
        from settings import OSRMSettings

        config = RetryConfig.from_osrm_settings(
            OSRMSettings(max_retries=5, retry_base_delay=0.1, retry_multiplier=3.0)
        )

        assert (config.max_attempts, config.base_delay, config.multiplier) == (5, 0.1, 3.0)
