"""SMS provider over the Twilio Messages REST API."""

import logging
from typing import Optional

import httpx

from app.config import get_settings
from app.core.exceptions import ProviderError
from app.core.phone import normalize_phone
from app.infrastructure.providers.base import HttpChannelProvider, OutboundMessage, ProviderResult

settings = get_settings()
logger = logging.getLogger(__name__)

MAX_SMS_LENGTH = 1600  # Twilio concatenated-message limit


class SmsProvider(HttpChannelProvider):
    channel = "sms"

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport)
        self.account_sid = settings.TWILIO_ACCOUNT_SID if account_sid is None else account_sid
        self.auth_token = settings.TWILIO_AUTH_TOKEN if auth_token is None else auth_token
        self.from_number = settings.TWILIO_FROM_NUMBER if from_number is None else from_number
        self.base_url = settings.TWILIO_API_URL.rstrip("/")

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send(self, message: OutboundMessage) -> ProviderResult:
        if not self.is_configured():
            raise ProviderError("Twilio credentials not configured", channel=self.channel)

        phone = normalize_phone(message.to)
        if not phone:
            raise ProviderError(f"Invalid SMS number: {message.to!r}", channel=self.channel)

        text = message.body or " ".join(message.params.values())
        data = await self._post(
            f"{self.base_url}/Accounts/{self.account_sid}/Messages.json",
            data={"To": f"+{phone}", "From": self.from_number, "Body": text[:MAX_SMS_LENGTH]},
            auth=(self.account_sid, self.auth_token),
        )
        logger.info(f"SMS sent to {phone} (sid={data.get('sid')})")
        return ProviderResult(external_message_id=data.get("sid"))
