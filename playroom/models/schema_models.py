from pydantic import BaseModel, Field
from typing import Optional, Dict, List

from playroom.models.dc_models import RoleModel, VariantModel


class BingoCardSchema(BaseModel):
    grid: List[List[int]]
    marked: List[List[bool]]
    last_marked: Optional[List[int]] = None

    class Config:
        from_attributes = True


class SessionDocumentSchema(BaseModel):
    """Fully populated session record produced by the snapshot normalizer."""

    session_id: str
    revision: int = 0
    slots: Dict[RoleModel, str | None] = Field(
        default_factory=lambda: {RoleModel.X: None, RoleModel.O: None}
    )
    display_names: Dict[RoleModel, str | None] = Field(
        default_factory=lambda: {RoleModel.X: None, RoleModel.O: None}
    )
    variant: VariantModel | None = None
    turn: RoleModel | None = RoleModel.X
    starting_role: RoleModel = RoleModel.X
    board: List[RoleModel | None] = Field(default_factory=lambda: [None] * 9)
    cards: Dict[RoleModel, Optional[BingoCardSchema]] = Field(
        default_factory=lambda: {RoleModel.X: None, RoleModel.O: None}
    )
    outcome: str | None = None
    win_ledger: Dict[str, int] = Field(default_factory=dict)
    created_at: str | None = None

    def role_of(self, identity_id: str | None) -> RoleModel | None:
        if identity_id is None:
            return None
        for role, bound in self.slots.items():
            if bound == identity_id:
                return role
        return None

    def both_bound(self) -> bool:
        return all(self.slots.get(role) for role in RoleModel)
