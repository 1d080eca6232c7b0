"""Chat messages attached to a session.

Messages are stored in the `chat_message` table (timestamp assigned by the
database server) and announced on the Redis channel `chat:{session_id}`.
"""

import json
import logging
from typing import AsyncGenerator, List

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from playroom.converter import DataConverter
from playroom.crud import CreateData, ReadData
from playroom.domain.chat_rules import validate_chat_post
from playroom.exceptions import AttachConflict, InvalidChatMessage, StoreUnavailable
from playroom.load_secrets import chat_max_length
from playroom.models.dc_models import ChatMessageModel, ChatPostModel
from playroom.services.store import SessionStore

data_converter = DataConverter()


def chat_channel(session_id: str) -> str:
    return f"chat:{session_id}"


class ChatService:
    def __init__(
        self,
        Session: async_sessionmaker,
        redis: Redis,
        store: SessionStore,
        max_length: int = chat_max_length,
    ):
        self.Session: async_sessionmaker = Session
        self.redis: Redis = redis
        self.store = store
        self.max_length = max_length

    async def post(self, session_id: str, author_id: str, post: ChatPostModel) -> ChatMessageModel:
        """Validate, store and announce a chat message

        Args:
            session_id (str): Session the message belongs to
            author_id (str): Identity id of the author, must hold a role in the session
            post (ChatPostModel): Text or sticker

        Returns:
            ChatMessageModel: The stored message with its server timestamp

        Raises:
            InvalidChatMessage: The pre-send gate refused the payload
            AttachConflict: The author is not a player of the session
            StoreUnavailable: The database failed
        """
        payload, reason = validate_chat_post(post.kind, post.payload, self.max_length)
        if reason is not None:
            raise InvalidChatMessage(reason)

        document = data_converter.normalize_snapshot(await self.store.get(session_id), session_id)
        if document.role_of(author_id) is None:
            raise AttachConflict(f"{author_id} is not a player in session {session_id}")

        try:
            async with self.Session() as session:
                message = await CreateData.create_chat_message(
                    session_id, author_id, post.kind.value, payload, session
                )
        except SQLAlchemyError as e:
            logging.error(f"Failed to store chat message in {session_id}: {e}")
            raise StoreUnavailable(f"Failed to store chat message in {session_id}") from e

        try:
            await self.redis.publish(chat_channel(session_id), message.model_dump_json())
        except RedisError as e:
            # stored already; listeners see it in the history on their next read
            logging.error(f"Stored chat message in {session_id} but failed to announce it: {e}")
        return message

    async def list_messages(self, session_id: str) -> List[ChatMessageModel]:
        try:
            async with self.Session() as session:
                return await ReadData.read_chat_messages(session_id, session)
        except SQLAlchemyError as e:
            logging.error(f"Failed to read chat of {session_id}: {e}")
            raise StoreUnavailable(f"Failed to read chat of {session_id}") from e

    async def subscribe(self, session_id: str) -> AsyncGenerator[ChatMessageModel, None]:
        """Yield every message posted after the call, until the consumer stops."""
        pubsub = self.redis.pubsub()
        channel = chat_channel(session_id)
        try:
            await pubsub.subscribe(channel)
        except RedisError as e:
            raise StoreUnavailable(f"Failed to subscribe to {channel}") from e
        try:
            while True:
                msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=None)
                if msg and msg["type"] == "message":
                    yield ChatMessageModel.model_validate(json.loads(msg["data"]))
        finally:
            logging.info(f"Unsubscribing from channel {channel}")
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
