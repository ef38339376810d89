from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class WhatsAppText(BaseModel):
    body: str = ""


class WhatsAppAudio(BaseModel):
    id: str
    mime_type: Optional[str] = None
    voice: Optional[bool] = None


class WhatsAppInboundMessage(BaseModel):
    from_number: str = Field(validation_alias=AliasChoices("from", "from_number"))
    id: Optional[str] = None
    timestamp: Optional[str] = None
    type: str = "text"  # text, audio, image, ...
    text: Optional[WhatsAppText] = None
    audio: Optional[WhatsAppAudio] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WhatsAppProfile(BaseModel):
    name: Optional[str] = None


class WhatsAppContact(BaseModel):
    wa_id: Optional[str] = None
    profile: Optional[WhatsAppProfile] = None


class WhatsAppValueMetadata(BaseModel):
    phone_number_id: str
    display_phone_number: Optional[str] = None


class WhatsAppChangeValue(BaseModel):
    messaging_product: Optional[str] = None
    metadata: Optional[WhatsAppValueMetadata] = None
    contacts: list[WhatsAppContact] = []
    messages: list[WhatsAppInboundMessage] = []


class WhatsAppChange(BaseModel):
    field: Optional[str] = None
    value: WhatsAppChangeValue


class WhatsAppEntry(BaseModel):
    id: Optional[str] = None
    changes: list[WhatsAppChange] = []


class WhatsAppWebhookEnvelope(BaseModel):
    object: Optional[str] = None
    entry: list[WhatsAppEntry] = []
