from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional, Dict, List
from datetime import datetime
from uuid import UUID


class RoleModel(str, Enum):
    X = "X"  # role A, the seat bound by whoever attaches first
    O = "O"  # role B


class VariantModel(str, Enum):
    tictactoe = "tictactoe"
    bingo = "bingo"


class SessionPhaseModel(str, Enum):
    unbound = "unbound"  # fewer than two roles bound
    in_progress = "in_progress"
    concluded = "concluded"


class ChatKindModel(str, Enum):
    text = "text"
    sticker = "sticker"


class StartSessionModel(BaseModel):
    variant: Optional[VariantModel] = None
    starting_role: RoleModel = RoleModel.X


class AttachModel(BaseModel):
    variant: Optional[VariantModel] = None
    starting_role: RoleModel = RoleModel.X


class VariantSelectionModel(BaseModel):
    variant: VariantModel


class TicTacToeMoveModel(BaseModel):
    cell: int


class BingoMoveModel(BaseModel):
    row: int
    col: int


class StarterModel(BaseModel):
    starting_role: RoleModel
    swap_roles: bool = False


class DisplayNameModel(BaseModel):
    display_name: str = Field(min_length=1, max_length=64)


class ChatPostModel(BaseModel):
    kind: ChatKindModel = ChatKindModel.text
    payload: str


class ChatMessageModel(BaseModel):
    message_id: UUID
    session_id: str
    author_id: str
    kind: ChatKindModel
    payload: str
    created_at: datetime

    class Config:
        from_attributes = True


class BingoCardModel(BaseModel):
    grid: List[List[int]]
    marked: List[List[bool]]
    last_marked: Optional[List[int]] = None


class SessionStateModel(BaseModel):
    """Per-viewer view of a session, derived from the latest snapshot."""

    session_id: str
    revision: int
    phase: SessionPhaseModel
    variant: VariantModel | None
    viewer_role: RoleModel | None
    spectator: bool
    slots: Dict[RoleModel, str | None]
    display_names: Dict[RoleModel, str | None]
    wins: Dict[RoleModel, int]
    outcome: str | None
    turn: RoleModel | None = None
    starting_role: RoleModel = RoleModel.X
    board: List[RoleModel | None] = Field(default_factory=list)
    # opponent cards stay hidden (None) until the round is concluded
    cards: Dict[RoleModel, Optional[BingoCardModel]] = Field(default_factory=dict)
    winning_lines: List[str] = Field(default_factory=list)
