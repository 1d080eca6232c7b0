"""Errors raised by the session core.

None of these are fatal: routers translate them into HTTP status codes and the
state machine never lets a malformed snapshot escape as an exception.
"""


class PlayroomError(Exception):
    """Base class for every error raised by playroom."""


class SessionNotFound(PlayroomError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class SessionAlreadyExists(PlayroomError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} already exists")
        self.session_id = session_id


class PreconditionFailed(PlayroomError):
    """A conditional merge found a field holding an unexpected value."""

    def __init__(self, session_id: str, field_path: tuple, expected, actual):
        super().__init__(
            f"Precondition failed on {'.'.join(field_path)} of session {session_id}: "
            f"expected {expected!r}, found {actual!r}"
        )
        self.session_id = session_id
        self.field_path = field_path
        self.expected = expected
        self.actual = actual


class StoreUnavailable(PlayroomError):
    """Reading, writing or subscribing against the backing store failed."""


class InvalidMove(PlayroomError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class AttachConflict(PlayroomError):
    """The identity holds no role in the session (spectator)."""


class VariantAlreadySet(PlayroomError):
    pass


class VariantRequired(PlayroomError):
    pass


class InvalidChatMessage(PlayroomError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
