from typing import List

from fastapi import APIRouter, Depends

from playroom.dependencies import (
    basic_auth,
    get_chat_service,
    get_session_store,
    to_http_exception,
)
from playroom.exceptions import PlayroomError
from playroom.models.basic_authentication_models import IdentityModel
from playroom.models.dc_models import ChatMessageModel, DisplayNameModel, SessionStateModel
from playroom.services.chat import ChatService
from playroom.services.store import SessionStore
from playroom.session.state_machine import SessionStateMachine

rest_router = APIRouter()


class SessionAPI:
    @staticmethod
    @rest_router.get("/sessions/{session_id}", response_model=SessionStateModel)
    async def get_session(
        session_id: str,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        store: SessionStore = Depends(get_session_store),
    ) -> SessionStateModel:
        machine = SessionStateMachine(store, session_id, identity)
        try:
            return await machine.refresh()
        except PlayroomError as e:
            raise to_http_exception(e) from e


class ChatAPI:
    @staticmethod
    @rest_router.get("/sessions/{session_id}/chat", response_model=List[ChatMessageModel])
    async def get_chat(
        session_id: str,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
        chat_service: ChatService = Depends(get_chat_service),
    ) -> List[ChatMessageModel]:
        """Chat history in posting order"""
        try:
            return await chat_service.list_messages(session_id)
        except PlayroomError as e:
            raise to_http_exception(e) from e


class UserAPI:
    @staticmethod
    @rest_router.put("/users/me/display-name", response_model=IdentityModel)
    async def update_display_name(
        display_name_data: DisplayNameModel,
        identity: IdentityModel = Depends(basic_auth.check_user_data),
    ) -> IdentityModel:
        """Rename the caller; sessions show the new name after the next attach"""
        return await basic_auth.update_display_name(identity, display_name_data.display_name)
