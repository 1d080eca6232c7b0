"""Session Store Adapter contract.

A session is one JSON-like document. Writers never replace a whole document;
they merge named field paths so two clients writing disjoint fields never
clobber each other. Every committed write bumps `revision` and is delivered to
subscribers of that session in revision order.
"""

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any, Dict, Tuple, Union

from playroom.exceptions import PreconditionFailed

FieldPath = Union[str, Tuple[str, ...]]


def split_path(path: FieldPath) -> Tuple[str, ...]:
    """Dotted strings split on ".", tuples are taken as they are.

    Use a tuple when a segment (an identity id, for example) may contain a dot.
    """
    if isinstance(path, tuple):
        return tuple(str(segment) for segment in path)
    return tuple(path.split("."))


def read_path(document: dict, path: FieldPath) -> Any:
    """Value at `path`, None when any segment is missing."""
    node: Any = document
    for segment in split_path(path):
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return node


def apply_merge(document: dict, fields: Dict[FieldPath, Any]) -> dict:
    """Write every field path into `document` in place, creating parents as needed."""
    for path, value in fields.items():
        segments = split_path(path)
        node = document
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = copy.deepcopy(value)
    return document


def check_preconditions(
    session_id: str, document: dict, preconditions: Dict[FieldPath, Any] | None
) -> None:
    """Raise PreconditionFailed unless every path holds the expected value."""
    for path, expected in (preconditions or {}).items():
        actual = read_path(document, path)
        if actual != expected:
            raise PreconditionFailed(session_id, split_path(path), expected, actual)


class SnapshotChannel:
    """Single-consumer, ordered stream of session snapshots.

    Snapshots whose revision is not newer than the last delivered one are
    dropped, so a consumer only ever moves forward. Closing the channel ends
    the iteration.
    """

    def __init__(self):
        self._last_revision = -1
        self._closed = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> dict:
        while True:
            if self._closed:
                raise StopAsyncIteration
            document = await self._receive()
            if document is None:
                raise StopAsyncIteration
            revision = document.get("revision", 0)
            if not isinstance(revision, int):
                revision = 0
            if revision <= self._last_revision:
                logging.debug(f"Dropping stale revision {revision} of {document.get('session_id')}")
                continue
            self._last_revision = revision
            return document

    async def _receive(self) -> dict | None:
        raise NotImplementedError

    async def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed


class QueueSnapshotChannel(SnapshotChannel):
    """Channel fed by a store living in the same process."""

    def __init__(self):
        super().__init__()
        self._queue: asyncio.Queue = asyncio.Queue()

    def push(self, document: dict) -> None:
        if not self._closed:
            self._queue.put_nowait(document)

    async def _receive(self) -> dict | None:
        return await self._queue.get()

    async def close(self) -> None:
        if not self._closed:
            await super().close()
            # wake up a consumer blocked in _receive
            self._queue.put_nowait(None)


class SessionStore(ABC):
    """Load-bearing contract between the session core and any backing store."""

    @abstractmethod
    async def get(self, session_id: str) -> dict:
        """Return the current document or raise SessionNotFound."""

    @abstractmethod
    async def create(self, session_id: str, fields: dict) -> dict:
        """Create the document or raise SessionAlreadyExists; never overwrites."""

    @abstractmethod
    async def merge_update(
        self,
        session_id: str,
        fields: Dict[FieldPath, Any],
        preconditions: Dict[FieldPath, Any] | None = None,
    ) -> dict:
        """Atomically apply only the named field paths and return the committed document.

        Raises SessionNotFound, or PreconditionFailed when a precondition path
        does not hold its expected value (nothing is written in that case).
        """

    @abstractmethod
    def subscribe(self, session_id: str) -> AbstractAsyncContextManager[SnapshotChannel]:
        """Open a channel that yields the current document (when it exists)
        and then every committed revision; leaving the context closes it."""
