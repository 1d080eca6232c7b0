"""Session store backed by a SQL table, with Redis pub/sub as the change feed.

Each committed revision is published as JSON on the channel `session:{id}`.
A failed publish is logged only: the write is already committed, and
subscribers catch up with the next revision or a fresh `get`.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from playroom.crud import CreateData, ReadData, UpdateData
from playroom.exceptions import SessionAlreadyExists, SessionNotFound, StoreUnavailable
from playroom.services.store import FieldPath, SessionStore, SnapshotChannel


def session_channel(session_id: str) -> str:
    return f"session:{session_id}"


class RedisSnapshotChannel(SnapshotChannel):
    """Channel reading snapshots published on a Redis pub/sub channel."""

    def __init__(self, pubsub, channel: str):
        super().__init__()
        self.pubsub = pubsub
        self.channel = channel
        self._pending: list[dict] = []

    def push_initial(self, document: dict) -> None:
        self._pending.append(document)

    async def _receive(self) -> dict | None:
        if self._pending:
            return self._pending.pop(0)
        while not self._closed:
            try:
                msg = await self.pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=None
                )
            except RedisError as e:
                logging.error(f"Failed to receive from {self.channel}: {e}")
                raise StoreUnavailable(f"Subscription to {self.channel} failed") from e
            if msg and msg["type"] == "message":
                return json.loads(msg["data"])
        return None

    async def close(self) -> None:
        if self._closed:
            return
        await super().close()
        logging.info(f"Unsubscribing from channel {self.channel}")
        try:
            await self.pubsub.unsubscribe(self.channel)
            await self.pubsub.aclose()
        except RedisError as e:
            logging.warning(f"Failed to close subscription to {self.channel}: {e}")


class SqlSessionStore(SessionStore):
    def __init__(self, Session: async_sessionmaker, redis: Redis, merge_attempts: int = 5):
        """Initialize the store with a session factory and a Redis connection."""
        self.Session: async_sessionmaker = Session
        self.redis: Redis = redis
        self.merge_attempts = max(1, merge_attempts)

    async def get(self, session_id: str) -> dict:
        try:
            async with self.Session() as session:
                snapshot = await ReadData.read_session_document(session_id, session)
        except SQLAlchemyError as e:
            logging.error(f"Failed to read session {session_id}: {e}")
            raise StoreUnavailable(f"Failed to read session {session_id}") from e
        if snapshot is None:
            raise SessionNotFound(session_id)
        return snapshot

    async def create(self, session_id: str, fields: dict) -> dict:
        try:
            async with self.Session() as session:
                snapshot = await CreateData.create_session_document(session_id, fields, session)
        except IntegrityError as e:
            raise SessionAlreadyExists(session_id) from e
        except SQLAlchemyError as e:
            logging.error(f"Failed to create session {session_id}: {e}")
            raise StoreUnavailable(f"Failed to create session {session_id}") from e
        await self._publish(snapshot)
        return snapshot

    async def merge_update(
        self,
        session_id: str,
        fields: Dict[FieldPath, Any],
        preconditions: Dict[FieldPath, Any] | None = None,
    ) -> dict:
        """Merge under the revision check, re-reading when another writer committed first.

        Every retry evaluates the preconditions against the newer document, so a
        seat taken in between fails with PreconditionFailed instead of being overwritten.
        """
        for attempt in range(1, self.merge_attempts + 1):
            try:
                async with self.Session() as session:
                    snapshot = await UpdateData.merge_session_document(
                        session_id, fields, preconditions, session
                    )
            except StaleDataError:
                logging.info(f"Session {session_id} changed during merge, re-reading (attempt {attempt})")
                continue
            except SQLAlchemyError as e:
                logging.error(f"Failed to update session {session_id}: {e}")
                raise StoreUnavailable(f"Failed to update session {session_id}") from e
            await self._publish(snapshot)
            return snapshot
        logging.error(f"Session {session_id} kept changing, gave up after {self.merge_attempts} attempts")
        raise StoreUnavailable(f"Session {session_id} is under heavy write contention")

    @asynccontextmanager
    async def subscribe(self, session_id: str) -> AsyncIterator[RedisSnapshotChannel]:
        channel_name = session_channel(session_id)
        pubsub = self.redis.pubsub()
        try:
            await pubsub.subscribe(channel_name)
        except RedisError as e:
            logging.error(f"Failed to subscribe to {channel_name}: {e}")
            raise StoreUnavailable(f"Failed to subscribe to {channel_name}") from e
        channel = RedisSnapshotChannel(pubsub, channel_name)
        try:
            # subscribed first, so no revision committed after this read is missed
            try:
                channel.push_initial(await self.get(session_id))
            except SessionNotFound:
                logging.info(f"Session {session_id} does not exist yet; waiting for it")
            yield channel
        finally:
            await channel.close()

    async def _publish(self, snapshot: dict) -> None:
        channel_name = session_channel(snapshot["session_id"])
        try:
            await self.redis.publish(channel_name, json.dumps(snapshot))
        except RedisError as e:
            logging.error(f"Committed revision {snapshot['revision']} but failed to publish on {channel_name}: {e}")
