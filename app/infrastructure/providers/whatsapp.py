"""WhatsApp Business provider (360dialog / Cloud API compatible).

Messages are sent as pre-approved templates; template params become the body
component parameters in order. Delivery statuses come back through the
/webhooks/whatsapp endpoint keyed by the returned message id.
"""

import logging
from typing import Optional

import httpx

from app.config import get_settings
from app.core.exceptions import ProviderError
from app.core.phone import normalize_phone
from app.infrastructure.providers.base import HttpChannelProvider, OutboundMessage, ProviderResult

settings = get_settings()
logger = logging.getLogger(__name__)


class WhatsAppProvider(HttpChannelProvider):
    channel = "whatsapp"

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport)
        self.base_url = (api_url or settings.WHATSAPP_API_URL).rstrip("/")
        self.api_key = settings.WHATSAPP_API_KEY if api_key is None else api_key
        self.headers = {
            "D360-API-KEY": self.api_key,
            "Content-Type": "application/json",
        }

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def build_components(params: dict[str, str]) -> list[dict]:
        if not params:
            return []
        return [
            {
                "type": "body",
                "parameters": [{"type": "text", "text": str(v)} for v in params.values()],
            }
        ]

    async def send(self, message: OutboundMessage) -> ProviderResult:
        if not self.is_configured():
            raise ProviderError("WhatsApp API key not configured", channel=self.channel)

        phone = normalize_phone(message.to)
        if not phone:
            raise ProviderError(f"Invalid WhatsApp number: {message.to!r}", channel=self.channel)

        payload = {
            "messaging_product": "whatsapp",
            "to": phone,
            "type": "template",
            "template": {
                "name": message.template,
                "language": {"code": "ar" if message.locale == "ar" else "en"},
                "components": self.build_components(message.params),
            },
        }
        data = await self._post(f"{self.base_url}/messages", json=payload, headers=self.headers)

        messages = data.get("messages") or [{}]
        message_id = messages[0].get("id")
        logger.info(f"WhatsApp template {message.template} sent to {phone} (id={message_id})")
        return ProviderResult(external_message_id=message_id)
