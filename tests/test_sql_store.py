import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.orm.exc import StaleDataError

from playroom.crud import UpdateData
from playroom.exceptions import (
    PreconditionFailed,
    SessionAlreadyExists,
    SessionNotFound,
    StoreUnavailable,
)
from playroom.services.sql_store import SqlSessionStore, session_channel


@pytest.fixture()
def sql_store(Session, redis) -> SqlSessionStore:
    return SqlSessionStore(Session, redis)


@pytest.mark.asyncio
async def test_create_and_get(sql_store, redis):
    created = await sql_store.create("s1", {"slots": {"X": "alice", "O": None}, "outcome": None})
    assert created["revision"] == 1
    document = await sql_store.get("s1")
    assert document == created
    redis.publish.assert_awaited_once_with(session_channel("s1"), json.dumps(created))


@pytest.mark.asyncio
async def test_get_missing_session(sql_store):
    with pytest.raises(SessionNotFound):
        await sql_store.get("nope")


@pytest.mark.asyncio
async def test_create_twice_fails(sql_store):
    await sql_store.create("s1", {})
    with pytest.raises(SessionAlreadyExists):
        await sql_store.create("s1", {})


@pytest.mark.asyncio
async def test_merge_update_keeps_unnamed_fields(sql_store, redis):
    await sql_store.create("s1", {"slots": {"X": "alice", "O": None}, "board": [None] * 9})
    merged = await sql_store.merge_update(
        "s1", {("slots", "O"): "bob", ("win_ledger", "bob"): 0}, {("slots", "O"): None}
    )
    assert merged["revision"] == 2
    assert merged["slots"] == {"X": "alice", "O": "bob"}
    assert merged["board"] == [None] * 9
    assert merged["win_ledger"] == {"bob": 0}
    assert await sql_store.get("s1") == merged
    assert redis.publish.await_count == 2


@pytest.mark.asyncio
async def test_failed_precondition_rolls_back(sql_store, redis):
    await sql_store.create("s1", {"outcome": "X"})
    with pytest.raises(PreconditionFailed):
        await sql_store.merge_update("s1", {"outcome": "O"}, {"outcome": None})
    document = await sql_store.get("s1")
    assert document["outcome"] == "X"
    assert document["revision"] == 1
    assert redis.publish.await_count == 1


@pytest.mark.asyncio
async def test_merge_update_missing_session(sql_store):
    with pytest.raises(SessionNotFound):
        await sql_store.merge_update("nope", {"outcome": "X"})


@pytest.mark.asyncio
async def test_publish_failure_keeps_committed_write(sql_store, redis):
    redis.publish.side_effect = RedisConnectionError("down")
    created = await sql_store.create("s1", {"outcome": None})
    merged = await sql_store.merge_update("s1", {"outcome": "X"}, {"outcome": None})
    assert created["revision"] == 1
    assert merged["revision"] == 2
    assert await sql_store.get("s1") == merged


@pytest.mark.asyncio
async def test_concurrent_disjoint_merges_both_land(sql_store, redis):
    await sql_store.create("s1", {"cards": {"X": {}, "O": {}}})
    await asyncio.gather(
        sql_store.merge_update("s1", {("cards", "X", "m"): [0]}),
        sql_store.merge_update("s1", {("cards", "O", "m"): [1]}),
    )
    document = await sql_store.get("s1")
    assert document["cards"] == {"X": {"m": [0]}, "O": {"m": [1]}}
    assert document["revision"] == 3
    assert redis.publish.await_count == 3


@pytest.mark.asyncio
async def test_concurrent_seat_binds_only_one_wins(sql_store):
    await sql_store.create("s1", {"slots": {"X": "alice", "O": None}})
    results = await asyncio.gather(
        sql_store.merge_update("s1", {("slots", "O"): "bob"}, {("slots", "O"): None}),
        sql_store.merge_update("s1", {("slots", "O"): "carol"}, {("slots", "O"): None}),
        return_exceptions=True,
    )
    failures = [r for r in results if isinstance(r, PreconditionFailed)]
    winners = [r for r in results if isinstance(r, dict)]
    assert len(failures) == 1
    assert len(winners) == 1
    document = await sql_store.get("s1")
    assert document["slots"]["O"] == winners[0]["slots"]["O"]
    assert document["revision"] == 2


@pytest.mark.asyncio
async def test_stale_revision_is_reread(sql_store, monkeypatch):
    await sql_store.create("s1", {"outcome": None})
    merge = UpdateData.merge_session_document
    calls = []

    async def stale_once(*args):
        calls.append(args)
        if len(calls) == 1:
            raise StaleDataError("revision changed")
        return await merge(*args)

    monkeypatch.setattr(UpdateData, "merge_session_document", stale_once)
    merged = await sql_store.merge_update("s1", {"outcome": "X"}, {"outcome": None})
    assert len(calls) == 2
    assert merged["revision"] == 2


@pytest.mark.asyncio
async def test_stale_revision_gives_up(Session, redis, monkeypatch):
    store = SqlSessionStore(Session, redis, merge_attempts=2)
    await store.create("s1", {"outcome": None})

    async def always_stale(*args):
        raise StaleDataError("revision changed")

    monkeypatch.setattr(UpdateData, "merge_session_document", always_stale)
    with pytest.raises(StoreUnavailable):
        await store.merge_update("s1", {"outcome": "X"})

@pytest.mark.asyncio
async def test_subscribe_yields_current_document_then_published_revisions(sql_store, redis):
    created = await sql_store.create("s1", {"outcome": None})
    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()
    newer = dict(created, revision=2, outcome="X")
    pubsub.get_message = AsyncMock(
        side_effect=[
            None,
            {"type": "message", "data": json.dumps(created)},
            {"type": "message", "data": json.dumps(newer)},
        ]
    )
    redis.pubsub.return_value = pubsub

    async with sql_store.subscribe("s1") as channel:
        first = await channel.__anext__()
        second = await channel.__anext__()

    assert first == created
    assert second == newer
    pubsub.subscribe.assert_awaited_once_with("session:s1")
    pubsub.unsubscribe.assert_awaited_once_with("session:s1")
    pubsub.aclose.assert_awaited_once()
