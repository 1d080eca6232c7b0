"""In-process session store for tests and single-process runs. Keyed by session ID."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from playroom.exceptions import SessionAlreadyExists, SessionNotFound
from playroom.services.store import (
    FieldPath,
    QueueSnapshotChannel,
    SessionStore,
    apply_merge,
    check_preconditions,
)


def _json_copy(document: dict) -> dict:
    # Round-trip through JSON so callers see exactly what a document store would hold.
    return json.loads(json.dumps(document))


class MemorySessionStore(SessionStore):
    def __init__(self):
        self._documents: dict[str, dict] = {}
        self._channels: dict[str, list[QueueSnapshotChannel]] = {}

    async def get(self, session_id: str) -> dict:
        if session_id not in self._documents:
            raise SessionNotFound(session_id)
        return _json_copy(self._documents[session_id])

    async def create(self, session_id: str, fields: dict) -> dict:
        if session_id in self._documents:
            raise SessionAlreadyExists(session_id)
        document = _json_copy(fields)
        document["session_id"] = session_id
        document["revision"] = 1
        self._documents[session_id] = document
        self._publish(session_id)
        return _json_copy(document)

    async def merge_update(
        self,
        session_id: str,
        fields: Dict[FieldPath, Any],
        preconditions: Dict[FieldPath, Any] | None = None,
    ) -> dict:
        if session_id not in self._documents:
            raise SessionNotFound(session_id)
        # No await between read and write: the merge is atomic on the event loop.
        document = _json_copy(self._documents[session_id])
        check_preconditions(session_id, document, preconditions)
        apply_merge(document, _json_copy_fields(fields))
        document["revision"] = self._documents[session_id]["revision"] + 1
        self._documents[session_id] = document
        self._publish(session_id)
        return _json_copy(document)

    @asynccontextmanager
    async def subscribe(self, session_id: str) -> AsyncIterator[QueueSnapshotChannel]:
        channel = QueueSnapshotChannel()
        self._channels.setdefault(session_id, []).append(channel)
        if session_id in self._documents:
            channel.push(_json_copy(self._documents[session_id]))
        try:
            yield channel
        finally:
            self._channels[session_id].remove(channel)
            if not self._channels[session_id]:
                self._channels.pop(session_id, None)
            await channel.close()

    def _publish(self, session_id: str) -> None:
        channels = self._channels.get(session_id, [])
        logging.debug(f"Publishing revision {self._documents[session_id]['revision']} of {session_id} to {len(channels)} subscriber(s)")
        for channel in channels:
            channel.push(_json_copy(self._documents[session_id]))


def _json_copy_fields(fields: Dict[FieldPath, Any]) -> Dict[FieldPath, Any]:
    return {path: json.loads(json.dumps(value)) for path, value in fields.items()}
