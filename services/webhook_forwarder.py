import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Union

import httpx

from core.config import settings
from core.http_client import get_async_client
from schemas.events import ChatEvent
from schemas.forwarding import BatchOutcome, ForwardOutcome, ForwardResult

logger = logging.getLogger(__name__)

NO_DESTINATIONS_ERROR = "No webhook URLs configured"

Forwardable = Union[ChatEvent, Dict[str, Any]]


def parse_destinations(value: Union[str, Iterable[str], None]) -> List[str]:
    """Split a comma separated URL list, trimming entries and dropping empties."""
    if not value:
        return []
    entries = value.split(",") if isinstance(value, str) else value
    return [entry.strip() for entry in entries if entry and entry.strip()]


class WebhookForwarder:
    def __init__(
        self,
        destinations: Union[str, Iterable[str], None] = None,
        client: Optional[httpx.AsyncClient] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if destinations is None:
            destinations = settings.webhook_urls
        self.destinations = parse_destinations(destinations)
        self.retry_attempts = retry_attempts or settings.webhook_retry_attempts
        self.retry_delay = settings.webhook_retry_delay_seconds if retry_delay is None else retry_delay
        self.timeout = timeout or settings.webhook_timeout_seconds
        self.user_agent = user_agent or settings.webhook_user_agent
        self._client = client
        self._sleep = sleep

        if not self.destinations:
            logger.warning("No webhook URLs configured, forwarding is disabled")
        else:
            logger.info("Configured webhook endpoints", extra={"destinations": self.destinations})

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "User-Agent": self.user_agent}

    def _http(self) -> httpx.AsyncClient:
        return self._client or get_async_client()

    async def forward(self, event: Forwardable) -> ForwardOutcome:
        if not self.destinations:
            logger.warning("No webhook URLs configured, skipping forward")
            return ForwardOutcome(success=False, error=NO_DESTINATIONS_ERROR)

        body = event.to_webhook_payload() if isinstance(event, ChatEvent) else event
        settled = await asyncio.gather(
            *(self._forward_to_destination(url, body) for url in self.destinations),
            return_exceptions=True,
        )
        results: List[ForwardResult] = []
        for url, item in zip(self.destinations, settled):
            if isinstance(item, BaseException):
                if not isinstance(item, Exception):
                    raise item
                logger.error("Webhook delivery raised", extra={"destination": url}, exc_info=item)
                item = ForwardResult(destination=url, success=False, error=str(item) or item.__class__.__name__)
            results.append(item)
        outcome = ForwardOutcome.from_results(results)
        logger.info(
            "Webhook forward finished",
            extra={
                "total": outcome.total,
                "successful": outcome.successful,
                "failed": outcome.failed,
            },
        )
        return outcome

    async def _forward_to_destination(self, url: str, body: Dict[str, Any]) -> ForwardResult:
        status_code = None
        error = None
        for attempt in range(self.retry_attempts):
            if attempt:
                # Backoff only between retries of this destination: 1s, 2s, ...
                await self._sleep(self.retry_delay * 2 ** (attempt - 1))
            try:
                response = await self._http().post(
                    url,
                    json=body,
                    headers=self._headers(),
                    timeout=self.timeout,
                )
            except httpx.InvalidURL as exc:
                logger.error("Invalid webhook URL", extra={"destination": url, "error": str(exc)})
                return ForwardResult(destination=url, success=False, error=str(exc), attempts=attempt + 1)
            except httpx.HTTPError as exc:
                status_code = None
                error = str(exc) or exc.__class__.__name__
            else:
                status_code = response.status_code
                if response.is_success:
                    logger.info(
                        "Webhook delivered",
                        extra={"destination": url, "status_code": status_code, "attempt": attempt + 1},
                    )
                    return ForwardResult(
                        destination=url,
                        success=True,
                        status_code=status_code,
                        attempts=attempt + 1,
                    )
                error = f"HTTP {status_code}"

            logger.warning(
                "Webhook delivery attempt failed",
                extra={"destination": url, "attempt": attempt + 1, "error": error},
            )

        logger.error(
            "Webhook delivery gave up",
            extra={"destination": url, "attempts": self.retry_attempts, "error": error},
        )
        return ForwardResult(
            destination=url,
            success=False,
            status_code=status_code,
            error=error,
            attempts=self.retry_attempts,
        )

    async def forward_batch(self, events: Sequence[Forwardable]) -> BatchOutcome:
        logger.info("Forwarding batch", extra={"batch_size": len(events)})
        settled = await asyncio.gather(
            *(self.forward(event) for event in events),
            return_exceptions=True,
        )

        outcomes: List[ForwardOutcome] = []
        for item in settled:
            if isinstance(item, BaseException):
                if not isinstance(item, Exception):
                    raise item
                logger.error("Batch forward raised", exc_info=item)
                outcomes.append(ForwardOutcome(success=False, error=str(item) or item.__class__.__name__))
            else:
                outcomes.append(item)

        successful = sum(1 for outcome in outcomes if outcome.success)
        return BatchOutcome(
            total=len(events),
            successful=successful,
            failed=len(outcomes) - successful,
            outcomes=outcomes,
        )
