"""Email provider over the Resend HTTP API."""

import html
import logging
from typing import Optional

import httpx

from app.config import get_settings
from app.core.exceptions import ProviderError
from app.infrastructure.providers.base import HttpChannelProvider, OutboundMessage, ProviderResult

settings = get_settings()
logger = logging.getLogger(__name__)


def build_html(body: str, locale: str) -> str:
    direction = "rtl" if locale == "ar" else "ltr"
    font = "'Noto Sans Arabic', 'Segoe UI', sans-serif" if locale == "ar" else "'Segoe UI', Tahoma, sans-serif"
    return (
        f'<!DOCTYPE html><html dir="{direction}" lang="{locale}"><head><meta charset="utf-8"></head>'
        f'<body style="font-family: {font}; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f'<div style="background: #f8f9fa; border-radius: 8px; padding: 24px;">'
        f'<h2 style="color: #111; margin-top: 0;">Ekklesia</h2>'
        f'<div style="white-space: pre-line;">{html.escape(body)}</div>'
        f"</div></body></html>"
    )


class EmailProvider(HttpChannelProvider):
    channel = "email"

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport)
        self.api_key = settings.RESEND_API_KEY if api_key is None else api_key
        self.from_email = from_email or settings.RESEND_FROM_EMAIL
        self.base_url = settings.RESEND_API_URL.rstrip("/")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, message: OutboundMessage) -> ProviderResult:
        if not self.is_configured():
            raise ProviderError("Resend API key not configured", channel=self.channel)
        if not message.to or "@" not in message.to:
            raise ProviderError(f"Invalid email address: {message.to!r}", channel=self.channel)

        body = message.body or "\n".join(message.params.values())
        data = await self._post(
            f"{self.base_url}/emails",
            json={
                "from": self.from_email,
                "to": [message.to],
                "subject": message.subject or message.template,
                "html": build_html(body, message.locale),
            },
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        logger.info(f"Email sent to {message.to} (id={data.get('id')})")
        return ProviderResult(external_message_id=data.get("id"))
