import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from assistant_bridge.models import AssistantResponse, AudioTranscription, Message, Thread, User


def save_user(db: Session, phone_number: str, name: Optional[str]) -> User:
    """Insert the user or refresh its display name."""
    user = db.query(User).filter(User.phone_number == phone_number).first()

    if not user:
        user = User(phone_number=phone_number, name=name)
        db.add(user)
    elif name and user.name != name:
        user.name = name
    db.flush()

    return user


def get_or_create_thread_record(db: Session, user_phone: str, assistant_thread_id: Optional[str] = None) -> Thread:
    """Find the user's conversation record or create a new one."""
    thread = db.query(Thread).filter(Thread.user_phone == user_phone).first()

    if not thread:
        thread = Thread(
            user_phone=user_phone,
            assistant_thread_id=assistant_thread_id,
            created_at=datetime.now(timezone.utc),
        )
        db.add(thread)
        db.flush()
    elif assistant_thread_id and thread.assistant_thread_id != assistant_thread_id:
        thread.assistant_thread_id = assistant_thread_id
        db.flush()

    return thread


def save_message(db: Session, thread_id: str, user_phone: str, content: str, message_type: str) -> Message:
    """Save inbound message to database."""
    message = Message(
        id=str(uuid.uuid4()),
        thread_id=thread_id,
        user_phone=user_phone,
        content=content,
        type=message_type,
        created_at=datetime.now(timezone.utc),
    )
    db.add(message)
    db.flush()
    return message


def save_assistant_response(db: Session, message_id: str, content: str) -> AssistantResponse:
    response = AssistantResponse(message_id=message_id, content=content, created_at=datetime.now(timezone.utc))
    db.add(response)
    db.flush()
    return response


def save_audio_transcription(db: Session, message_id: str, transcription: str) -> AudioTranscription:
    record = AudioTranscription(
        message_id=message_id,
        transcription=transcription,
        created_at=datetime.now(timezone.utc),
    )
    db.add(record)
    db.flush()
    return record
