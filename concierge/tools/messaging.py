"""Outbound message delivery through the messaging gateway."""

import logging
from typing import Any, Optional

import httpx

from concierge.config import settings
from concierge.schemas.claim_schema import DispatchResult

logger = logging.getLogger(__name__)


class MessagingGateway:
    """
    Sends text to a customer through the messaging gateway.

    ``send`` never raises: delivery problems come back as an unsuccessful
    :class:`DispatchResult` so timers and background pipelines can record
    them without unwinding.
    """

    def __init__(
        self,
        gateway_url: str = settings.messaging.gateway_url,
        api_key: str = settings.messaging.api_key,
        timeout: float = settings.messaging.timeout_sec,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.gateway_url = gateway_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def send(self, text: str, customer_id: Optional[str] = None) -> DispatchResult:
        body: dict[str, Any] = {"message": text}
        if customer_id:
            body["customerId"] = customer_id
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        try:
            async with httpx.AsyncClient(transport=self._transport,
                                         timeout=self.timeout) as client:
                resp = await client.post(self.gateway_url, json=body, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("Messaging gateway rejected message: HTTP %d",
                           e.response.status_code)
            return DispatchResult(success=False, error=f"HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.warning("Failed to reach messaging gateway: %s", e)
            return DispatchResult(success=False, error=str(e) or type(e).__name__)

        logger.info("Message dispatched to %s (%d chars)", customer_id or "customer", len(text))
        return DispatchResult(success=True)
