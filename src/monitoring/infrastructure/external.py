"""
Monitoring External Service Integrations
=========================================

HTTP integrations used by status monitoring:
- HTTPStatusLookup: the poller's view of the remote status endpoint
- SlackStatusNotifier: a status change subscriber posting to a webhook

Both sit behind their own CircuitBreaker so a dead remote is not hammered
on every sweep.
"""

import asyncio
import time
from typing import Any, Dict, Optional

import httpx

from src.config import InstanceStatus, Settings, get_settings
from src.core import StatusLookupException
from src.monitoring.application.poller import IStatusLookup
from src.monitoring.domain import StatusChangeEvent
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    ``failure_threshold`` failures in a row open the circuit. Once
    ``recovery_timeout`` seconds have passed it turns half-open and lets
    calls through again; one more failure reopens it, a success closes it.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        name: str = "default"
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and time.monotonic() - self._opened_at >= self.recovery_timeout
        ):
            self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state != CircuitState.OPEN

    def record_success(self) -> None:
        self._consecutive_failures = 0
        self._opened_at = None
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        tripped = (
            self._state == CircuitState.HALF_OPEN
            or self._consecutive_failures >= self.failure_threshold
        )
        if not tripped:
            return

        if self._state != CircuitState.OPEN:
            logger.warning(
                "Circuit opened",
                extra={
                    "circuit": self.name,
                    "consecutive_failures": self._consecutive_failures,
                    "retry_after_seconds": self.recovery_timeout
                }
            )
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()


class _HTTPIntegration:
    """Lazily created httpx client plus the breaker guarding it."""

    def __init__(
        self,
        timeout: float,
        breaker: CircuitBreaker,
        http_client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        self._timeout = timeout
        self._headers = headers or {}
        self._http_client = http_client
        self._owns_client = http_client is None
        self._circuit_breaker = breaker

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout, headers=self._headers)
        return self._http_client

    async def close(self) -> None:
        """Release the HTTP client unless it was handed in by the caller."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
        self._http_client = None


class HTTPStatusLookup(_HTTPIntegration, IStatusLookup):
    """
    Status endpoint client.

    Posts ``{"action": "status", "instanceId": <target>}`` and reads the
    ``status`` field of the JSON answer. Timeouts belong to this client;
    the poller never enforces its own.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._settings = settings or get_settings()
        headers = {}
        if self._settings.status_api_key:
            headers["Authorization"] = f"Bearer {self._settings.status_api_key}"
        super().__init__(
            timeout=self._settings.status_timeout_seconds,
            breaker=circuit_breaker or CircuitBreaker(name="status-lookup"),
            http_client=http_client,
            headers=headers
        )

    async def fetch_status(self, target: str) -> str:
        """Current status of ``target``, lower-cased."""
        url = self._settings.status_endpoint_url
        if not url:
            raise StatusLookupException(target, "status endpoint URL not configured")
        if not self._circuit_breaker.allow_request():
            raise StatusLookupException(target, "circuit breaker open")

        try:
            response = await self._client().post(
                url,
                json={"action": "status", "instanceId": target},
                headers=self._headers
            )
        except httpx.HTTPError as e:
            self._circuit_breaker.record_failure()
            raise StatusLookupException(target, f"request failed: {e}") from e

        if response.is_error:
            self._circuit_breaker.record_failure()
            raise StatusLookupException(
                target,
                f"endpoint returned {response.status_code}",
                {"target": target, "status_code": response.status_code}
            )

        try:
            payload = response.json()
        except ValueError as e:
            self._circuit_breaker.record_failure()
            raise StatusLookupException(target, "response is not JSON") from e

        self._circuit_breaker.record_success()

        status = payload.get("status") if isinstance(payload, dict) else None
        return str(status).lower() if status else InstanceStatus.DISCONNECTED


class SlackStatusNotifier(_HTTPIntegration):
    """
    Slack webhook sink for status change events.

    Subscribe ``notify`` to a StatusChangeChannel. Delivery is best effort:
    failed posts are retried with exponential backoff, then given up on.
    """

    STATUS_EMOJI = {
        InstanceStatus.CONNECTED: ":large_green_circle:",
        InstanceStatus.OPEN: ":large_green_circle:",
        InstanceStatus.DISCONNECTED: ":red_circle:",
    }

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0
    ):
        self._settings = settings or get_settings()
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        super().__init__(
            timeout=self._settings.slack_timeout_seconds,
            breaker=CircuitBreaker(name="slack"),
            http_client=http_client
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.slack_webhook_url)

    def _build_message(self, event: StatusChangeEvent) -> Dict[str, Any]:
        """Block Kit payload for one transition."""
        emoji = self.STATUS_EMOJI.get(event.new_status, ":large_yellow_circle:")
        return {
            "channel": self._settings.slack_channel,
            "text": f"{event.target}: {event.previous_status} -> {event.new_status}",
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": f"{emoji} Instance status changed", "emoji": True}
                },
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*Instance:*\n{event.target}"},
                        {"type": "mrkdwn", "text": f"*Status:*\n{event.previous_status} → {event.new_status}"},
                    ]
                },
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": f"Observed: {event.observed_at.isoformat()}"}]
                },
            ],
        }

    async def notify(self, event: StatusChangeEvent) -> bool:
        """
        Post ``event`` to the webhook.

        Returns:
            Whether Slack accepted the message
        """
        if not self.is_configured:
            logger.debug("Slack webhook not configured, dropping status change", extra={"target": event.target})
            return False
        if not self._circuit_breaker.allow_request():
            logger.warning("Slack circuit open, dropping status change", extra={"target": event.target})
            return False

        message = self._build_message(event)

        for attempt in range(1, self._max_retries + 1):
            try:
                response = await self._client().post(self._settings.slack_webhook_url, json=message)
            except httpx.HTTPError as e:
                logger.error(
                    "Slack post raised",
                    extra={"target": event.target, "attempt": attempt, "error": str(e)}
                )
            else:
                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Status change posted to Slack",
                        extra={"target": event.target, "new_status": event.new_status}
                    )
                    return True
                logger.warning(
                    "Slack rejected status change",
                    extra={"target": event.target, "attempt": attempt, "status_code": response.status_code}
                )

            if attempt < self._max_retries:
                await asyncio.sleep(self._backoff_base * 2 ** (attempt - 1))

        self._circuit_breaker.record_failure()
        return False
