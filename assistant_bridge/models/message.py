import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from assistant_bridge.database import Base


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    thread_id = Column(String(36), ForeignKey("threads.id"), nullable=False)
    user_phone = Column(String(32), ForeignKey("users.phone_number"), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(16), nullable=False)  # text, audio
    created_at = Column(DateTime(timezone=True), nullable=False)

    thread = relationship("Thread", back_populates="messages")
    responses = relationship("AssistantResponse", back_populates="message")
    transcriptions = relationship("AudioTranscription", back_populates="message")


class AssistantResponse(Base):
    __tablename__ = "assistant_responses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    message_id = Column(String(36), ForeignKey("messages.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    message = relationship("Message", back_populates="responses")


class AudioTranscription(Base):
    __tablename__ = "audio_transcriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    message_id = Column(String(36), ForeignKey("messages.id"), nullable=False)
    transcription = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    message = relationship("Message", back_populates="transcriptions")
