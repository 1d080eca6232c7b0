import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from uuid6 import uuid7

from playroom.dependencies import (
    basic_auth,
    get_chat_service,
    get_session_store,
    to_http_exception,
)
from playroom.exceptions import InvalidMove, PlayroomError
from playroom.load_secrets import default_variant
from playroom.models.basic_authentication_models import IdentityModel
from playroom.models.dc_models import (
    AttachModel,
    BingoMoveModel,
    ChatMessageModel,
    ChatPostModel,
    SessionStateModel,
    StarterModel,
    StartSessionModel,
    TicTacToeMoveModel,
    VariantModel,
    VariantSelectionModel,
)
from playroom.services.chat import ChatService
from playroom.services.store import SessionStore
from playroom.session.state_machine import SessionStateMachine
from playroom.sse_subscriber import SessionSubscriber

session_router = APIRouter()


def fixed_variant(requested: VariantModel | None) -> VariantModel | None:
    if requested is not None:
        return requested
    return VariantModel(default_variant) if default_variant else None


class BaseServer:
    @staticmethod
    @session_router.post("/start-session", response_model=SessionStateModel)
    async def start_session(
        start_data: Optional[StartSessionModel] = None,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        store: SessionStore = Depends(get_session_store),
    ) -> SessionStateModel:
        """Create a new session and bind the caller to its first seat

        Args:
            start_data (StartSessionModel, optional):
                    variant: fixes the game at creation, else players choose later
                    starting_role: who moves first in tic-tac-toe

        Returns:
            SessionStateModel: The caller's view; session_id is the key to share
        """
        start_data = start_data or StartSessionModel()
        session_id = str(uuid7())
        machine = SessionStateMachine(store, session_id, identity)
        try:
            await machine.attach(fixed_variant(start_data.variant), start_data.starting_role)
        except PlayroomError as e:
            raise to_http_exception(e) from e
        logging.info(f"{identity.identity_id} started session {session_id}")
        return machine.view()

    @staticmethod
    @session_router.post("/sessions/{session_id}/attach", response_model=SessionStateModel)
    async def attach_session(
        session_id: str,
        attach_data: Optional[AttachModel] = None,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        store: SessionStore = Depends(get_session_store),
    ) -> SessionStateModel:
        """Join a session by its id; a full session is joined as a spectator"""
        attach_data = attach_data or AttachModel()
        machine = SessionStateMachine(store, session_id, identity)
        try:
            result = await machine.attach(fixed_variant(attach_data.variant), attach_data.starting_role)
        except PlayroomError as e:
            raise to_http_exception(e) from e
        if result.spectator:
            logging.info(f"{identity.identity_id} is watching {session_id}")
        return machine.view()

    @staticmethod
    @session_router.post("/sessions/{session_id}/variant", response_model=SessionStateModel)
    async def select_variant(
        session_id: str,
        variant_data: VariantSelectionModel,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        store: SessionStore = Depends(get_session_store),
    ) -> SessionStateModel:
        machine = SessionStateMachine(store, session_id, identity)
        try:
            return await machine.select_variant(variant_data.variant)
        except PlayroomError as e:
            raise to_http_exception(e) from e

    @staticmethod
    @session_router.get("/stream/{session_id}")
    async def stream_state_info(
        session_id: str,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        store: SessionStore = Depends(get_session_store),
    ):
        try:
            await store.get(session_id)
        except PlayroomError as e:
            raise to_http_exception(e) from e
        session_subscriber = SessionSubscriber(SessionStateMachine(store, session_id, identity))

        return StreamingResponse(
            session_subscriber.event_generator(),
            media_type="text/event-stream; charset=utf-8",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )


class GameServer:
    @staticmethod
    async def play(
        store: SessionStore,
        session_id: str,
        identity: IdentityModel,
        move: TicTacToeMoveModel | BingoMoveModel,
    ) -> SessionStateModel:
        machine = SessionStateMachine(store, session_id, identity)
        try:
            validation = await machine.play(move)
        except PlayroomError as e:
            raise to_http_exception(e) from e
        if not validation.accepted:
            raise to_http_exception(InvalidMove(validation.reason))
        return machine.view()

    @staticmethod
    @session_router.post("/sessions/{session_id}/moves/tictactoe", response_model=SessionStateModel)
    async def tictactoe_move(
        session_id: str,
        move: TicTacToeMoveModel,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        store: SessionStore = Depends(get_session_store),
    ) -> SessionStateModel:
        """Place the caller's mark on a cell (0-8, row-major)

        Raises:
            HTTPException: 409 with the rejection reason when the move is not allowed
        """
        return await GameServer.play(store, session_id, identity, move)

    @staticmethod
    @session_router.post("/sessions/{session_id}/moves/bingo", response_model=SessionStateModel)
    async def bingo_move(
        session_id: str,
        move: BingoMoveModel,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        store: SessionStore = Depends(get_session_store),
    ) -> SessionStateModel:
        """Toggle a cell on the caller's own bingo card"""
        return await GameServer.play(store, session_id, identity, move)

    @staticmethod
    @session_router.post("/sessions/{session_id}/rematch", response_model=SessionStateModel)
    async def rematch(
        session_id: str,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        store: SessionStore = Depends(get_session_store),
    ) -> SessionStateModel:
        machine = SessionStateMachine(store, session_id, identity)
        try:
            return await machine.reset_standard()
        except PlayroomError as e:
            raise to_http_exception(e) from e

    @staticmethod
    @session_router.post("/sessions/{session_id}/starter", response_model=SessionStateModel)
    async def reassign_starter(
        session_id: str,
        starter_data: StarterModel,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        store: SessionStore = Depends(get_session_store),
    ) -> SessionStateModel:
        """Start a new tic-tac-toe round with a chosen first mover

        Args:
            starter_data (StarterModel):
                    starting_role: role that moves first in the new round
                    swap_roles: also exchange which player holds X and O
        """
        machine = SessionStateMachine(store, session_id, identity)
        try:
            return await machine.reassign_starter(starter_data.starting_role, starter_data.swap_roles)
        except PlayroomError as e:
            raise to_http_exception(e) from e


class ChatServer:
    @staticmethod
    @session_router.post("/sessions/{session_id}/chat", response_model=ChatMessageModel)
    async def post_chat(
        session_id: str,
        post: ChatPostModel,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        chat_service: ChatService = Depends(get_chat_service),
    ) -> ChatMessageModel:
        try:
            return await chat_service.post(session_id, identity.identity_id, post)
        except PlayroomError as e:
            raise to_http_exception(e) from e

    @staticmethod
    @session_router.get("/sessions/{session_id}/chat/stream")
    async def stream_chat(
        session_id: str,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        store: SessionStore = Depends(get_session_store),
        chat_service: ChatService = Depends(get_chat_service),
    ):
        try:
            await store.get(session_id)
        except PlayroomError as e:
            raise to_http_exception(e) from e

        return StreamingResponse(
            SessionSubscriber.chat_event_generator(chat_service, session_id),
            media_type="text/event-stream; charset=utf-8",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )
