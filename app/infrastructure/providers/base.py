"""Channel provider interface.

A provider wraps exactly one transport. `send` returns the provider's message
id or raises ProviderError; it never writes to the ledger.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import httpx

from app.core.exceptions import ProviderError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


@dataclass
class OutboundMessage:
    to: str  # phone, email address, or profile id for in-app
    template: str  # provider template name
    locale: str
    params: dict[str, str] = field(default_factory=dict)
    subject: Optional[str] = None
    body: Optional[str] = None


@dataclass
class ProviderResult:
    external_message_id: Optional[str] = None


class ChannelProvider(ABC):
    channel: str = ""

    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    async def send(self, message: OutboundMessage) -> ProviderResult:
        ...


class HttpChannelProvider(ChannelProvider):
    """Provider speaking JSON/form over HTTP, with retries on transient failures.

    Retries up to max_retries times with linear backoff; 429 and 5xx wait
    longer before the next attempt. Other 4xx responses fail immediately.
    """

    max_retries = 3
    retry_delay = 2  # seconds
    timeout = 30

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _post(self, url: str, **kwargs) -> dict:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                async with self._client() as client:
                    response = await client.post(url, **kwargs)
                    response.raise_for_status()
                    return response.json()
            except httpx.HTTPStatusError as e:
                last_error = e
                code = e.response.status_code
                error_text = e.response.text[:200] if e.response.text else "No response body"
                logger.warning(
                    f"{self.channel} provider error (attempt {attempt}/{self.max_retries}): {code} - {error_text}"
                )
                if code not in RETRYABLE_STATUS_CODES:
                    raise ProviderError(
                        f"{self.channel} rejected message: HTTP {code}",
                        channel=self.channel,
                        details={"status_code": code, "response": error_text},
                    ) from e
                await asyncio.sleep(self.retry_delay * attempt * 2)
            except httpx.HTTPError as e:
                last_error = e
                logger.warning(f"{self.channel} connection error (attempt {attempt}/{self.max_retries}): {e}")

            if attempt < self.max_retries:
                await asyncio.sleep(self.retry_delay * attempt)

        raise ProviderError(
            f"{self.channel} send failed after {self.max_retries} attempts: {last_error}",
            channel=self.channel,
            retryable=True,
        )
