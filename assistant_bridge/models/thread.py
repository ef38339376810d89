import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from assistant_bridge.database import Base


class Thread(Base):
    __tablename__ = "threads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_phone = Column(String(32), ForeignKey("users.phone_number"), nullable=False, index=True)
    assistant_thread_id = Column(Text)  # backend thread handle, informational only
    created_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="threads")
    messages = relationship("Message", back_populates="thread")
