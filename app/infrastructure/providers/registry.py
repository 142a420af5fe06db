"""Channel → provider lookup table used by the dispatcher."""

from typing import Dict, Iterable, Optional

from app.infrastructure.providers.base import ChannelProvider
from app.infrastructure.providers.email import EmailProvider
from app.infrastructure.providers.in_app import InAppProvider
from app.infrastructure.providers.sms import SmsProvider
from app.infrastructure.providers.whatsapp import WhatsAppProvider

# Richest first; used when a recipient's preference is "all"
EXTERNAL_CHANNEL_PRIORITY = ("whatsapp", "sms", "email")


class ProviderRegistry:
    def __init__(self, providers: Iterable[ChannelProvider]):
        self._providers: Dict[str, ChannelProvider] = {p.channel: p for p in providers}
        self._providers.setdefault("in_app", InAppProvider())

    def get(self, channel: str) -> Optional[ChannelProvider]:
        return self._providers.get(channel)

    def is_configured(self, channel: str) -> bool:
        provider = self.get(channel)
        return provider is not None and provider.is_configured()

    def status(self) -> Dict[str, bool]:
        return {channel: self.is_configured(channel) for channel in ("in_app", *EXTERNAL_CHANNEL_PRIORITY)}


_default_registry: Optional[ProviderRegistry] = None


def get_provider_registry() -> ProviderRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = ProviderRegistry([WhatsAppProvider(), SmsProvider(), EmailProvider(), InAppProvider()])
    return _default_registry
