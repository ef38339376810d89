from typing import Optional

from assistant_bridge.config import settings
from assistant_bridge.logging_config import get_logger
from assistant_bridge.services.assistant import OpenAIAssistantsProvider
from assistant_bridge.services.whatsapp_service import WhatsAppService

logger = get_logger("transcription_service")

VOICE_NOTE_FILENAME = "voice.ogg"
VOICE_NOTE_MIME_TYPE = "audio/ogg"


async def transcribe_voice_note(
    media_id: str,
    *,
    whatsapp: WhatsAppService,
    provider: OpenAIAssistantsProvider,
    model: Optional[str] = None,
) -> str:
    """Download a WhatsApp voice note and return its transcript."""
    media_url = await whatsapp.get_media_url(media_id)
    audio_bytes = await whatsapp.download_media(media_url)
    if not audio_bytes:
        raise ValueError(f"Voice note {media_id} is empty")

    transcript = await provider.transcribe_audio(
        audio_bytes=audio_bytes,
        filename=VOICE_NOTE_FILENAME,
        mime_type=VOICE_NOTE_MIME_TYPE,
        model=model or settings.transcription_model,
    )
    logger.info(
        "Voice note transcribed",
        extra={"context": {"media_id": media_id, "audio_bytes": len(audio_bytes), "text_len": len(transcript)}},
    )
    return transcript
