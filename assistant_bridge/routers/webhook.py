import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assistant_bridge.config import settings
from assistant_bridge.database import get_db
from assistant_bridge.logging_config import get_logger
from assistant_bridge.schemas.webhook import WhatsAppChangeValue, WhatsAppWebhookEnvelope
from assistant_bridge.services.conversation_service import (
    DEFAULT_DISPLAY_NAME,
    MessageKind,
    get_assistant_provider,
    get_conversation_service,
)
from assistant_bridge.services.persistence_service import (
    get_or_create_thread_record,
    save_assistant_response,
    save_audio_transcription,
    save_message,
    save_user,
)
from assistant_bridge.services.transcription_service import transcribe_voice_note
from assistant_bridge.services.whatsapp_service import get_whatsapp_service

logger = get_logger("webhook")

router = APIRouter()

SUBSCRIBE_MODE = "subscribe"
MSG_VOICE_PROCESSING = "Procesando nota de voz. Espera..."


@dataclass
class InboundEvent:
    phone_number_id: str
    user_id: str
    kind: str
    display_name: str
    text: Optional[str] = None
    media_id: Optional[str] = None
    wa_message_id: Optional[str] = None


def format_transcript_echo(transcript: str) -> str:
    return f'*Transcripción del audio:*\n\n"{transcript}"\n\n_Procesando con el asistente..._'


def _display_name_for(value: WhatsAppChangeValue, sender: str) -> str:
    for contact in value.contacts:
        if contact.wa_id == sender and contact.profile and contact.profile.name:
            return contact.profile.name
    if value.contacts and value.contacts[0].profile and value.contacts[0].profile.name:
        return value.contacts[0].profile.name
    return DEFAULT_DISPLAY_NAME


def extract_events(envelope: WhatsAppWebhookEnvelope) -> list[InboundEvent]:
    """Flatten the envelope into one event per inbound message."""
    events = []
    for entry in envelope.entry:
        for change in entry.changes:
            value = change.value
            if not value.messages or not value.metadata:
                continue
            for message in value.messages:
                events.append(
                    InboundEvent(
                        phone_number_id=value.metadata.phone_number_id,
                        user_id=message.from_number,
                        kind=message.type,
                        display_name=_display_name_for(value, message.from_number),
                        text=message.text.body if message.text else None,
                        media_id=message.audio.id if message.audio else None,
                        wa_message_id=message.id,
                    )
                )
    return events


def _persist_inbound(db: Session, event: InboundEvent, content: str) -> Optional[str]:
    """Store user, thread record and message. Returns the stored message id."""
    try:
        save_user(db, event.user_id, event.display_name)
        thread = get_or_create_thread_record(db, event.user_id)
        message = save_message(db, thread.id, event.user_id, content, event.kind)
        if event.kind == MessageKind.AUDIO.value:
            save_audio_transcription(db, message.id, content)
        db.commit()
        return message.id
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Failed to persist inbound message",
            extra={"context": {"user_id": event.user_id, "error": str(exc)}},
        )
        return None


def _persist_reply(db: Session, event: InboundEvent, message_id: Optional[str], reply: str) -> None:
    if not message_id:
        return
    try:
        save_assistant_response(db, message_id, reply)
        assistant_thread_id = get_conversation_service().registry.store.get(event.user_id)
        get_or_create_thread_record(db, event.user_id, assistant_thread_id=assistant_thread_id)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Failed to persist assistant response",
            extra={"context": {"user_id": event.user_id, "message_id": message_id, "error": str(exc)}},
        )


async def process_event(event: InboundEvent, db: Session) -> Optional[str]:
    """Handle one inbound message end to end. Returns the reply sent, if any."""
    whatsapp = get_whatsapp_service()

    if event.kind == MessageKind.TEXT.value:
        content = event.text or ""
    elif event.kind == MessageKind.AUDIO.value and event.media_id:
        await whatsapp.send_text(event.phone_number_id, event.user_id, MSG_VOICE_PROCESSING)
        content = await transcribe_voice_note(
            event.media_id,
            whatsapp=whatsapp,
            provider=get_assistant_provider(),
            model=settings.transcription_model,
        )
        await whatsapp.send_text(event.phone_number_id, event.user_id, format_transcript_echo(content))
    else:
        logger.info(f"Ignoring unsupported message type: {event.kind}", extra={"context": {"user_id": event.user_id}})
        return None

    if not content.strip():
        logger.warning("Inbound message has no content", extra={"context": {"user_id": event.user_id, "kind": event.kind}})
        return None

    message_id = _persist_inbound(db, event, content)

    reply = await get_conversation_service().handle_message(
        event.user_id,
        content,
        event.display_name,
        MessageKind(event.kind),
        message_id=message_id,
    )

    _persist_reply(db, event, message_id, reply)
    await whatsapp.send_text(event.phone_number_id, event.user_id, reply)
    return reply


@router.post("/webhook")
async def handle_webhook(request: Request, db: Session = Depends(get_db)):
    """Receive WhatsApp Cloud API deliveries."""
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Webhook payload is not valid JSON")
        return PlainTextResponse("Not Found", status_code=404)

    if not isinstance(payload, dict) or not payload.get("object"):
        return PlainTextResponse("Not Found", status_code=404)

    try:
        envelope = WhatsAppWebhookEnvelope.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Webhook payload validation failed", extra={"context": {"error": str(exc)}})
        return PlainTextResponse("OK", status_code=200)

    try:
        for event in extract_events(envelope):
            logger.info(
                "Webhook message received",
                extra={"context": {"user_id": event.user_id, "kind": event.kind, "wa_message_id": event.wa_message_id}},
            )
            await process_event(event, db)
    except Exception as exc:
        logger.error(f"Error in webhook: {exc}", exc_info=True)
        return PlainTextResponse("Internal Server Error", status_code=500)

    return PlainTextResponse("OK", status_code=200)


@router.get("/webhook")
async def verify_webhook(
    hub_mode: str = Query(alias="hub.mode", default=""),
    hub_verify_token: str = Query(alias="hub.verify_token", default=""),
    hub_challenge: str = Query(alias="hub.challenge", default=""),
):
    """Subscription handshake for the WhatsApp webhook."""
    expected = settings.verify_token
    token_ok = bool(expected) and hmac.compare_digest(hub_verify_token.encode(), expected.encode())
    if hub_mode == SUBSCRIBE_MODE and token_ok:
        logger.info("Webhook verified")
        return PlainTextResponse(hub_challenge, status_code=200)
    return PlainTextResponse("Forbidden", status_code=403)
