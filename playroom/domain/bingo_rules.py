"""Bingo rules: every role owns a 5x5 card holding a permutation of 1..25.

A role marks (and unmarks) cells on its own card only. The first toggle that
completes a row, a column or a diagonal wins the round for that role.
"""

import random

from playroom.domain.common import (
    ACCEPT,
    MoveValidation,
    check_participant,
    ledger_update,
    reject,
)
from playroom.models.dc_models import BingoMoveModel, RoleModel
from playroom.models.schema_models import SessionDocumentSchema

CARD_SIZE = 5


def generate_card(rng: random.Random | None = None) -> dict:
    """Generate a card dict compatible with BingoCardSchema.

    Numbers are drawn uniformly without replacement and placed row-major.

    Args:
        rng: Random source; a fresh `random.Random()` when omitted.
    """
    rng = rng or random.Random()
    remaining = list(range(1, CARD_SIZE * CARD_SIZE + 1))
    grid = [[0] * CARD_SIZE for _ in range(CARD_SIZE)]
    for i in range(CARD_SIZE * CARD_SIZE):
        number = remaining.pop(rng.randrange(len(remaining)))
        grid[i // CARD_SIZE][i % CARD_SIZE] = number
    return {
        "grid": grid,
        "marked": [[False] * CARD_SIZE for _ in range(CARD_SIZE)],
        "last_marked": None,
    }


def winning_lines(marked: list) -> list[str]:
    """Names of every fully marked line of a marked-flags matrix."""
    lines = []
    for i in range(CARD_SIZE):
        if all(marked[i][j] for j in range(CARD_SIZE)):
            lines.append(f"row {i}")
    for j in range(CARD_SIZE):
        if all(marked[i][j] for i in range(CARD_SIZE)):
            lines.append(f"col {j}")
    if all(marked[i][i] for i in range(CARD_SIZE)):
        lines.append("diagonal")
    if all(marked[i][CARD_SIZE - 1 - i] for i in range(CARD_SIZE)):
        lines.append("anti-diagonal")
    return lines


class BingoRules:
    @staticmethod
    def validate_move(
        document: SessionDocumentSchema,
        acting_identity: str | None,
        move: BingoMoveModel,
    ) -> MoveValidation:
        """Check a toggle on the caller's own card. Does not modify anything."""
        role, validation = check_participant(document, acting_identity)
        if role is None:
            return validation
        if document.cards.get(role) is None:
            return reject("Your card has not been dealt yet.")
        if not (0 <= move.row < CARD_SIZE and 0 <= move.col < CARD_SIZE):
            return reject(
                f"Position [{move.row}, {move.col}] out of bounds. "
                f"Row and col must be 0-{CARD_SIZE - 1}."
            )
        return ACCEPT

    @staticmethod
    def apply_move(card: dict, row: int, col: int) -> dict:
        """Flip one cell and remember it as the last toggled cell."""
        marked = [list(line) for line in card["marked"]]
        marked[row][col] = not marked[row][col]
        return {
            "grid": card["grid"],
            "marked": marked,
            "last_marked": [row, col],
        }

    @staticmethod
    def detect_outcome(marked: list, role: RoleModel) -> str | None:
        if winning_lines(marked):
            return role.value
        return None

    @staticmethod
    def build_move_update(
        document: SessionDocumentSchema, role: RoleModel, move: BingoMoveModel
    ) -> dict:
        """Smallest field update for an accepted toggle.

        Only the acting role's card is touched so a concurrent toggle by the
        opponent on their own card is never overwritten.
        """
        card = BingoRules.apply_move(document.cards[role].model_dump(), move.row, move.col)
        fields = {
            ("cards", role.value, "marked"): card["marked"],
            ("cards", role.value, "last_marked"): card["last_marked"],
        }
        outcome = BingoRules.detect_outcome(card["marked"], role)
        if outcome is not None:
            fields["outcome"] = outcome
            fields.update(ledger_update(document, role))
        return fields

    @staticmethod
    def move_preconditions(document: SessionDocumentSchema, role: RoleModel) -> dict:
        return {"outcome": None}

    @staticmethod
    def round_fields(document: SessionDocumentSchema, rng: random.Random | None = None) -> dict:
        """Fresh cards for every bound role and a cleared outcome."""
        fields = {"outcome": None}
        for role in RoleModel:
            if document.slots.get(role):
                fields[("cards", role.value)] = generate_card(rng)
        return fields
