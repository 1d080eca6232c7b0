import asyncio

import pytest

from playroom.exceptions import PreconditionFailed, SessionAlreadyExists, SessionNotFound


@pytest.mark.asyncio
async def test_get_missing_session(store):
    with pytest.raises(SessionNotFound):
        await store.get("nope")


@pytest.mark.asyncio
async def test_create_never_overwrites(store):
    created = await store.create("s1", {"slots": {"X": "alice", "O": None}})
    assert created["revision"] == 1
    assert created["session_id"] == "s1"
    with pytest.raises(SessionAlreadyExists):
        await store.create("s1", {"slots": {"X": "bob", "O": None}})
    assert (await store.get("s1"))["slots"]["X"] == "alice"


@pytest.mark.asyncio
async def test_merge_writes_only_named_paths(store):
    await store.create("s1", {"slots": {"X": "alice", "O": None}, "outcome": None})
    merged = await store.merge_update("s1", {"slots.O": "bob", ("win_ledger", "b.o.b"): 0})
    assert merged["revision"] == 2
    assert merged["slots"] == {"X": "alice", "O": "bob"}
    assert merged["win_ledger"] == {"b.o.b": 0}
    assert merged["outcome"] is None


@pytest.mark.asyncio
async def test_merge_missing_session(store):
    with pytest.raises(SessionNotFound):
        await store.merge_update("nope", {"outcome": "X"})


@pytest.mark.asyncio
async def test_failed_precondition_writes_nothing(store):
    await store.create("s1", {"slots": {"X": "alice", "O": "bob"}})
    with pytest.raises(PreconditionFailed):
        await store.merge_update("s1", {"slots.O": "carol"}, {"slots.O": None})
    document = await store.get("s1")
    assert document["slots"]["O"] == "bob"
    assert document["revision"] == 1


@pytest.mark.asyncio
async def test_returned_documents_are_copies(store):
    created = await store.create("s1", {"board": [None] * 9})
    created["board"][0] = "X"
    assert (await store.get("s1"))["board"][0] is None


@pytest.mark.asyncio
async def test_subscription_delivers_current_then_every_revision(store):
    await store.create("s1", {"outcome": None})
    async with store.subscribe("s1") as channel:
        await store.merge_update("s1", {"outcome": "X"})
        first = await asyncio.wait_for(channel.__anext__(), timeout=1)
        second = await asyncio.wait_for(channel.__anext__(), timeout=1)
    assert first["revision"] == 1
    assert second["revision"] == 2
    assert second["outcome"] == "X"
    assert channel.closed
    assert "s1" not in store._channels


@pytest.mark.asyncio
async def test_subscription_before_creation_waits_for_the_document(store):
    async with store.subscribe("s1") as channel:
        await store.create("s1", {"outcome": None})
        first = await asyncio.wait_for(channel.__anext__(), timeout=1)
    assert first["revision"] == 1


@pytest.mark.asyncio
async def test_channel_drops_stale_revisions(store):
    await store.create("s1", {})
    async with store.subscribe("s1") as channel:
        channel.push({"session_id": "s1", "revision": 1})
        channel.push({"session_id": "s1", "revision": 0})
        channel.push({"session_id": "s1", "revision": 5})
        revisions = [
            (await asyncio.wait_for(channel.__anext__(), timeout=1))["revision"] for _ in range(2)
        ]
    assert revisions == [1, 5]


@pytest.mark.asyncio
async def test_closing_the_channel_ends_iteration(store):
    await store.create("s1", {})
    received = []

    async def consume(channel):
        async for document in channel:
            received.append(document["revision"])

    async with store.subscribe("s1") as channel:
        task = asyncio.create_task(consume(channel))
        await asyncio.sleep(0)
        await channel.close()
        await asyncio.wait_for(task, timeout=1)
    assert received == [1]
    assert (await store.get("s1"))["revision"] == 1
