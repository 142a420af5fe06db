"""In-app channel: delivery is the recipient reading the ledger row from their feed."""

from app.infrastructure.providers.base import ChannelProvider, OutboundMessage, ProviderResult


class InAppProvider(ChannelProvider):
    channel = "in_app"

    def is_configured(self) -> bool:
        return True

    async def send(self, message: OutboundMessage) -> ProviderResult:
        return ProviderResult(external_message_id=None)
