import json

import pytest

from playroom.models.dc_models import TicTacToeMoveModel, VariantModel
from playroom.session.state_machine import SessionStateMachine
from playroom.sse_subscriber import SessionSubscriber


def parse_event(message: str) -> tuple[str, dict]:
    event_line, data_line = message.strip().split("\n")
    return event_line.removeprefix("event: "), json.loads(data_line.removeprefix("data: "))


@pytest.mark.asyncio
async def test_state_updates_are_streamed_as_events(store, bootstrap, alice, bob):
    await bootstrap.attach("s1", alice, VariantModel.tictactoe)
    await bootstrap.attach("s1", bob)
    player = SessionStateMachine(store, "s1", alice)
    viewer = SessionSubscriber(SessionStateMachine(store, "s1", bob))

    events = viewer.event_generator()
    event, data = parse_event(await events.__anext__())
    assert event == "state_update"
    assert data["phase"] == "in_progress"
    assert data["viewer_role"] == "O"

    await player.play(TicTacToeMoveModel(cell=0))
    event, data = parse_event(await events.__anext__())
    assert data["board"][0] == "X"
    assert data["turn"] == "O"

    await events.aclose()
    assert "s1" not in store._channels
    assert (await store.get("s1"))["board"][0] == "X"
