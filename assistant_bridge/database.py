from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from assistant_bridge.config import settings

engine = create_engine(settings.sqlalchemy_url(), pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
