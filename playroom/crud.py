from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Any, Dict, List
from datetime import datetime
import copy
import logging

from playroom.exceptions import SessionNotFound
from playroom.models.dc_models import ChatMessageModel
from playroom.models.schemas import Base, ChatMessage, SessionDocument
from playroom.services.store import FieldPath, apply_merge, check_preconditions


def to_snapshot(row: SessionDocument) -> dict:
    """Build the snapshot dict handed to the session core from a table row."""
    snapshot = copy.deepcopy(row.document)
    snapshot["session_id"] = row.session_id
    snapshot["revision"] = row.revision
    return snapshot


class CreateData:
    @staticmethod
    async def create_table(engine) -> None:
        """Create every table if not exists"""
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @staticmethod
    async def create_session_document(session_id: str, document: dict, session: AsyncSession) -> dict:
        """Insert a new session document at revision 1

        Args:
            session_id (str): To identify the session
            document (dict): Initial fields of the session
            session (AsyncSession): AsyncSession object to interact with database

        Returns:
            dict: The committed snapshot

        Raises:
            IntegrityError: A document already exists at session_id
        """
        async with session.begin():
            new_document = SessionDocument(
                session_id=session_id,
                document=document,
                created_at=datetime.now(),
                updated_at=datetime.now(),
            )
            session.add(new_document)
        snapshot = copy.deepcopy(document)
        snapshot["session_id"] = session_id
        snapshot["revision"] = 1
        return snapshot

    @staticmethod
    async def create_chat_message(
        session_id: str, author_id: str, kind: str, payload: str, session: AsyncSession
    ) -> ChatMessageModel:
        """Insert a chat message; created_at is assigned by the database server

        Args:
            session_id (str): Session the message belongs to
            author_id (str): Identity id of the author
            kind (str): "text" or "sticker"
            payload (str): The text or the sticker id
        """
        async with session.begin():
            new_message = ChatMessage(
                session_id=session_id,
                author_id=author_id,
                kind=kind,
                payload=payload,
            )
            session.add(new_message)
            await session.flush()
            await session.refresh(new_message)
            message = ChatMessageModel.model_validate(new_message)
        return message


class ReadData:
    @staticmethod
    async def read_session_document(session_id: str, session: AsyncSession) -> dict | None:
        """Read the latest snapshot of a session

        Args:
            session_id (str): To identify the session

        Returns:
            dict | None: Snapshot with session_id and revision, None if the session does not exist
        """
        async with session:
            stmt = select(SessionDocument).where(SessionDocument.session_id == session_id)
            result = await session.execute(stmt)
            result = result.scalars().first()

            if result is None:
                return None
            return to_snapshot(result)

    @staticmethod
    async def read_chat_messages(session_id: str, session: AsyncSession) -> List[ChatMessageModel]:
        """Read every chat message of a session in creation order

        Args:
            session_id (str): To identify the session

        Returns:
            List[ChatMessageModel]: Messages ordered by created_at, then by message_id
        """
        async with session:
            stmt = (
                select(ChatMessage)
                .where(ChatMessage.session_id == session_id)
                .order_by(ChatMessage.created_at, ChatMessage.message_id)
            )
            result = await session.execute(stmt)
            return [ChatMessageModel.model_validate(row) for row in result.scalars().all()]


class UpdateData:
    @staticmethod
    async def merge_session_document(
        session_id: str,
        fields: Dict[FieldPath, Any],
        preconditions: Dict[FieldPath, Any] | None,
        session: AsyncSession,
    ) -> dict:
        """Apply field-path updates to one session document in a single transaction

        The row is locked with SELECT ... FOR UPDATE where the database supports it,
        and the UPDATE only matches the revision that was read (SQLite takes no row
        lock). Fields that are not named keep their stored value.

        Args:
            session_id (str): To identify the session
            fields (Dict[FieldPath, Any]): Field paths and their new values
            preconditions (Dict[FieldPath, Any] | None): Field paths that must hold these values

        Returns:
            dict: The committed snapshot

        Raises:
            SessionNotFound: No document at session_id
            PreconditionFailed: A precondition did not hold; nothing is written
            StaleDataError: Another merge committed after the read; nothing is written
        """
        async with session.begin():
            stmt = (
                select(SessionDocument)
                .where(SessionDocument.session_id == session_id)
                .with_for_update()
            )
            result = await session.execute(stmt)
            result = result.scalars().first()

            if result is None:
                raise SessionNotFound(session_id)

            document = copy.deepcopy(result.document)
            check_preconditions(session_id, document, preconditions)
            apply_merge(document, fields)
            read_revision = result.revision
            # assigning a new object marks the JSON column dirty
            result.document = document
            result.updated_at = datetime.now()
            await session.flush()
            snapshot = copy.deepcopy(document)
            snapshot["session_id"] = session_id
            snapshot["revision"] = read_revision + 1
            logging.debug(f"Merged {len(fields)} field(s) into {session_id} at revision {read_revision + 1}")
        return snapshot
