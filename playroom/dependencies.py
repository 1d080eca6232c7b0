import logging

from fastapi import HTTPException, status
from redis.asyncio import Redis

from playroom.authentication.basic_authentication import BasicAuthentication
from playroom.db import Session
from playroom.exceptions import (
    AttachConflict,
    InvalidChatMessage,
    InvalidMove,
    PlayroomError,
    PreconditionFailed,
    SessionAlreadyExists,
    SessionNotFound,
    StoreUnavailable,
    VariantAlreadySet,
    VariantRequired,
)
from playroom.load_secrets import redis_host, redis_port, session_store_backend
from playroom.services.chat import ChatService
from playroom.services.memory_store import MemorySessionStore
from playroom.services.sql_store import SqlSessionStore
from playroom.services.store import SessionStore

redis = Redis(host=redis_host, port=redis_port, decode_responses=True, health_check_interval=30)
basic_auth = BasicAuthentication()

ERROR_STATUS = {
    SessionNotFound: status.HTTP_404_NOT_FOUND,
    SessionAlreadyExists: status.HTTP_409_CONFLICT,
    PreconditionFailed: status.HTTP_409_CONFLICT,
    InvalidMove: status.HTTP_409_CONFLICT,
    VariantAlreadySet: status.HTTP_409_CONFLICT,
    VariantRequired: status.HTTP_409_CONFLICT,
    AttachConflict: status.HTTP_403_FORBIDDEN,
    InvalidChatMessage: status.HTTP_422_UNPROCESSABLE_ENTITY,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def build_session_store() -> SessionStore:
    if session_store_backend == "memory":
        logging.info("Keeping sessions in process memory")
        return MemorySessionStore()
    return SqlSessionStore(Session, redis)


session_store = build_session_store()
chat_service = ChatService(Session, redis, session_store)


def get_session_store() -> SessionStore:
    return session_store


def get_chat_service() -> ChatService:
    return chat_service


def to_http_exception(e: PlayroomError) -> HTTPException:
    """Map a session error onto the HTTP status the API answers with."""
    status_code = ERROR_STATUS.get(type(e), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail=str(e))
