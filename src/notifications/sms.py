"""SMS notifications to parents through a Twilio-compatible REST API."""

import logging
import time
from collections.abc import Callable
from typing import Any

import httpx
from opentelemetry import trace

from core.exceptions import (
    ConfigurationError,
    NetworkError,
    PermanentError,
    ServiceUnavailableError,
    TrackingError,
)
from core.retry import RetryConfig, with_retry
from metrics import observe_latency, record_error
from metrics.tracing import bridge_correlation_id
from settings import SMSSettings
from tracking.ports import NotificationKind

from .messages import ParentContacts, render_message

logger = logging.getLogger(__name__)
_tracer = trace.get_tracer(__name__)

# Twilio error code for the trial account daily message cap
DAILY_LIMIT_ERROR_CODE = 63038


class SmsNotificationGateway:
    """Sends one SMS per parent phone number for every notification.

    Failures are logged per recipient and never raised to the caller; one
    unreachable parent does not stop the others from being told.
    """

    def __init__(
        self,
        settings: SMSSettings,
        contacts: ParentContacts,
        retry_config: RetryConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.contacts = contacts
        self.retry_config = retry_config or RetryConfig()
        self._clock = clock

        if not settings.dev_mode and not (
            settings.account_sid and settings.auth_token and settings.from_number
        ):
            raise ConfigurationError("SMS credentials are not configured")

    @property
    def messages_url(self) -> str:
        return (
            f"{self.settings.api_base_url}/2010-04-01/Accounts/"
            f"{self.settings.account_sid}/Messages.json"
        )

    async def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        if not self.contacts.phone_numbers:
            logger.info(f"No parent phone numbers for {kind.value} notification")
            return

        body = render_message(kind, payload, self.contacts, self.settings.app_base_url)
        for phone_number in self.contacts.phone_numbers:
            try:
                sid = await with_retry(
                    lambda to=phone_number: self.send_sms(to, body),
                    self.retry_config,
                    operation_name=f"sms.{kind.value}",
                )
                logger.info(f"{kind.value} SMS sent to {phone_number}: {sid}")
            except TrackingError as e:
                logger.error(f"Failed to send {kind.value} SMS to {phone_number}: {e.message}")

    async def send_sms(self, to: str, body: str) -> str:
        """Send a single message and return its message id."""
        if self.settings.dev_mode:
            logger.info(f"DEV MODE - SMS would be sent to {to}: {body}")
            return f"dev_mode_{int(self._clock() * 1000)}"

        with _tracer.start_as_current_span("sms.send") as span:
            bridge_correlation_id(span)
            start_time = time.perf_counter()
            try:
                response = await self._post(to, body)
                sid = self._parse_response(response)
            except TrackingError as e:
                span.record_exception(e)
                record_error("sms", type(e).__name__)
                raise
            observe_latency("sms", (time.perf_counter() - start_time) * 1000)
            return sid

    async def _post(self, to: str, body: str) -> httpx.Response:
        data = {"To": to, "From": self.settings.from_number, "Body": body}
        try:
            async with httpx.AsyncClient(timeout=self.settings.timeout) as client:
                return await client.post(
                    self.messages_url,
                    data=data,
                    auth=(self.settings.account_sid, self.settings.auth_token),
                )
        except httpx.TimeoutException as e:
            raise NetworkError(f"SMS request timed out after {self.settings.timeout}s") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"SMS transport error: {e}") from e
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"Invalid SMS API URL: {e}") from e

    def _parse_response(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_success:
            return str(data.get("sid", ""))

        message = data.get("message") or f"SMS API returned {response.status_code}"
        details = {"status_code": response.status_code, "code": data.get("code")}
        if data.get("code") == DAILY_LIMIT_ERROR_CODE:
            logger.warning("SMS daily limit reached, enable SMS_DEV_MODE for testing")
        if response.status_code >= 500 or response.status_code == 429:
            raise ServiceUnavailableError(message, details)
        raise PermanentError(message, details)
