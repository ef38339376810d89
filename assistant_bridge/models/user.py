from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship

from assistant_bridge.database import Base


class User(Base):
    __tablename__ = "users"

    phone_number = Column(String(32), primary_key=True)
    name = Column(Text)

    threads = relationship("Thread", back_populates="user")
