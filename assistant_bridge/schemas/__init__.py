from assistant_bridge.schemas.webhook import (
    WhatsAppAudio,
    WhatsAppChange,
    WhatsAppChangeValue,
    WhatsAppContact,
    WhatsAppEntry,
    WhatsAppInboundMessage,
    WhatsAppText,
    WhatsAppWebhookEnvelope,
)

__all__ = [
    "WhatsAppAudio",
    "WhatsAppChange",
    "WhatsAppChangeValue",
    "WhatsAppContact",
    "WhatsAppEntry",
    "WhatsAppInboundMessage",
    "WhatsAppText",
    "WhatsAppWebhookEnvelope",
]
