import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

from playroom.exceptions import AttachConflict, InvalidChatMessage
from playroom.models.dc_models import ChatKindModel, ChatPostModel
from playroom.services.chat import ChatService, chat_channel


@pytest_asyncio.fixture()
async def chat_service(Session, redis, store, bootstrap, alice, bob) -> ChatService:
    await bootstrap.attach("s1", alice)
    await bootstrap.attach("s1", bob)
    return ChatService(Session, redis, store, max_length=20)


@pytest.mark.asyncio
async def test_post_stores_and_announces(chat_service, redis):
    message = await chat_service.post("s1", "alice", ChatPostModel(payload="  gg  "))
    assert message.payload == "gg"
    assert message.kind == ChatKindModel.text
    assert message.author_id == "alice"
    assert message.created_at is not None
    redis.publish.assert_awaited_once_with(chat_channel("s1"), message.model_dump_json())


@pytest.mark.asyncio
async def test_messages_are_listed_in_posting_order(chat_service):
    await chat_service.post("s1", "alice", ChatPostModel(payload="first"))
    await chat_service.post("s1", "bob", ChatPostModel(kind=ChatKindModel.sticker, payload="clap"))
    await chat_service.post("s1", "alice", ChatPostModel(payload="third"))
    messages = await chat_service.list_messages("s1")
    assert [m.payload for m in messages] == ["first", "clap", "third"]
    assert messages[1].kind == ChatKindModel.sticker
    assert await chat_service.list_messages("other") == []


@pytest.mark.asyncio
async def test_rejected_post_is_not_stored(chat_service, redis):
    with pytest.raises(InvalidChatMessage) as excinfo:
        await chat_service.post("s1", "alice", ChatPostModel(payload="go to https://spam.example"))
    assert excinfo.value.reason == "Message is longer than 20 characters."
    with pytest.raises(InvalidChatMessage):
        await chat_service.post("s1", "alice", ChatPostModel(payload="<script>"))
    assert await chat_service.list_messages("s1") == []
    redis.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_announce_failure_keeps_stored_message(chat_service, redis):
    redis.publish.side_effect = RedisConnectionError("down")
    message = await chat_service.post("s1", "alice", ChatPostModel(payload="still here"))
    assert message.payload == "still here"
    assert [m.payload for m in await chat_service.list_messages("s1")] == ["still here"]


@pytest.mark.asyncio
async def test_spectators_cannot_post(chat_service):
    with pytest.raises(AttachConflict):
        await chat_service.post("s1", "carol", ChatPostModel(payload="hi"))


@pytest.mark.asyncio
async def test_subscribe_yields_published_messages(chat_service, redis):
    posted = await chat_service.post("s1", "bob", ChatPostModel(payload="hello"))
    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()
    pubsub.get_message = AsyncMock(
        side_effect=[None, {"type": "message", "data": posted.model_dump_json()}]
    )
    redis.pubsub.return_value = pubsub

    messages = chat_service.subscribe("s1")
    received = await messages.__anext__()
    await messages.aclose()

    assert received == posted
    pubsub.subscribe.assert_awaited_once_with("chat:s1")
    pubsub.unsubscribe.assert_awaited_once_with("chat:s1")
