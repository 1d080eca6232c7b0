from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.schema import Column, Index
from sqlalchemy.sql import func
from sqlalchemy.types import Integer, String, Uuid, DateTime, JSON, TEXT
from sqlalchemy.dialects.postgresql import JSONB
from uuid6 import uuid7
from datetime import datetime


class Base(DeclarativeBase):
    pass


class SessionDocument(Base):
    """One row per game session; the whole session lives in `document`."""

    __tablename__ = "session_document"
    session_id = Column(String, primary_key=True)
    document = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    revision = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now)

    # UPDATE ... WHERE revision = <read revision>; the ORM writes 1 on insert and +1 per update
    __mapper_args__ = {"version_id_col": revision}


class ChatMessage(Base):
    __tablename__ = "chat_message"
    message_id = Column(Uuid, primary_key=True, default=uuid7)
    session_id = Column(String, nullable=False)
    author_id = Column(String, nullable=False)
    kind = Column(String, nullable=False)
    payload = Column(TEXT, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (Index("ix_chat_message_session_created", "session_id", "created_at"),)
