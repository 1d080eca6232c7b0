"""Rules shared by every game variant.

Moves are validated against a normalized `SessionDocumentSchema` and turned into
field-path updates; nothing here talks to a store.
"""

from dataclasses import dataclass

from playroom.models.dc_models import RoleModel
from playroom.models.schema_models import SessionDocumentSchema

DRAW = "draw"


@dataclass(frozen=True)
class MoveValidation:
    """Result of validating a move against the current snapshot."""

    accepted: bool
    reason: str | None = None


ACCEPT = MoveValidation(accepted=True)


def reject(reason: str) -> MoveValidation:
    return MoveValidation(accepted=False, reason=reason)


def other_role(role: RoleModel) -> RoleModel:
    return RoleModel.O if role == RoleModel.X else RoleModel.X


def check_participant(
    document: SessionDocumentSchema, acting_identity: str | None
) -> tuple[RoleModel | None, MoveValidation]:
    """Checks shared by both variants: who is acting and may the round accept moves.

    Returns:
        tuple[RoleModel | None, MoveValidation]: The acting role and ACCEPT, or None and the rejection
    """
    if not acting_identity:
        return None, reject("No authenticated player.")
    role = document.role_of(acting_identity)
    if role is None:
        return None, reject("You are not a player in this game.")
    if not document.both_bound():
        return None, reject("Waiting for the second player.")
    if document.outcome is not None:
        return None, reject("The game is already over.")
    return role, ACCEPT


def ledger_update(document: SessionDocumentSchema, role: RoleModel) -> dict:
    """Field update crediting one win to the identity bound to `role`.

    The ledger is keyed by identity so wins follow the person across seat swaps.
    """
    identity_id = document.slots[role]
    current = document.win_ledger.get(identity_id, 0)
    return {("win_ledger", identity_id): current + 1}
