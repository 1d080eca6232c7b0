import logging
from typing import AsyncGenerator

from playroom.services.chat import ChatService
from playroom.session.state_machine import SessionStateMachine


class SessionSubscriber:
    """Turns a session's snapshot feed into Server-Sent Events."""

    def __init__(self, machine: SessionStateMachine):
        """Initialize the subscriber with the state machine of one viewer."""
        self.machine: SessionStateMachine = machine

    async def event_generator(self) -> AsyncGenerator[str, None]:
        """Event generator to handle SSE events.

        Every snapshot is sent as a `state_update` event carrying the viewer's
        SessionStateModel; disconnecting only closes the subscription.
        """
        try:
            async for state in self.machine.listen():
                payload = state.model_dump_json()
                logging.debug(f"Payload: {payload}")
                yield f"event: state_update\ndata: {payload}\n\n"
        finally:
            logging.info(f"Stopped streaming {self.machine.session_id} to {self.machine.identity_id}")

    @staticmethod
    async def chat_event_generator(chat_service: ChatService, session_id: str) -> AsyncGenerator[str, None]:
        async for message in chat_service.subscribe(session_id):
            yield f"event: chat_message\ndata: {message.model_dump_json()}\n\n"
