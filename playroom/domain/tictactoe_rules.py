"""Tic-tac-toe rules: a 3x3 board stored as 9 cells in row-major order."""

from playroom.domain.common import (
    ACCEPT,
    DRAW,
    MoveValidation,
    check_participant,
    ledger_update,
    other_role,
    reject,
)
from playroom.models.dc_models import RoleModel, TicTacToeMoveModel
from playroom.models.schema_models import SessionDocumentSchema

BOARD_SIZE = 9

# Eight lines to check for a win: 3 rows, 3 cols, 2 diagonals
WIN_LINES = (
    # Rows
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    # Columns
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    # Diagonals
    (0, 4, 8),
    (2, 4, 6),
)


def empty_board() -> list:
    return [None] * BOARD_SIZE


class TicTacToeRules:
    @staticmethod
    def validate_move(
        document: SessionDocumentSchema,
        acting_identity: str | None,
        move: TicTacToeMoveModel,
    ) -> MoveValidation:
        """Check a move against the snapshot. Does not modify anything.

        Args:
            document (SessionDocumentSchema): The latest normalized snapshot
            acting_identity (str | None): Identity id of the caller
            move (TicTacToeMoveModel): Cell index 0..8

        Returns:
            MoveValidation: ACCEPT or the reason for rejection
        """
        role, validation = check_participant(document, acting_identity)
        if role is None:
            return validation
        if document.turn != role:
            return reject("Not your turn.")
        if not 0 <= move.cell < BOARD_SIZE:
            return reject(f"Cell {move.cell} out of bounds. Cell must be 0-8.")
        if document.board[move.cell] is not None:
            return reject(f"Cell {move.cell} is already occupied.")
        return ACCEPT

    @staticmethod
    def apply_move(board: list, role: RoleModel, cell: int) -> list:
        new_board = list(board)
        new_board[cell] = role
        return new_board

    @staticmethod
    def detect_outcome(board: list) -> str | None:
        """Return the winning role's value, "draw" for a full board, or None."""
        for a, b, c in WIN_LINES:
            if board[a] is not None and board[a] == board[b] == board[c]:
                return RoleModel(board[a]).value
        if all(cell is not None for cell in board):
            return DRAW
        return None

    @staticmethod
    def build_move_update(
        document: SessionDocumentSchema, role: RoleModel, move: TicTacToeMoveModel
    ) -> dict:
        """Smallest field update for an accepted move.

        Board, turn and outcome always change together; the ledger only when the
        move wins the round.
        """
        new_board = TicTacToeRules.apply_move(document.board, role, move.cell)
        outcome = TicTacToeRules.detect_outcome(new_board)
        fields = {
            "board": [cell.value if cell is not None else None for cell in new_board],
            "outcome": outcome,
            # turn is locked as soon as the round has an outcome
            "turn": None if outcome is not None else other_role(role).value,
        }
        if outcome is not None and outcome != DRAW:
            fields.update(ledger_update(document, role))
        return fields

    @staticmethod
    def move_preconditions(document: SessionDocumentSchema, role: RoleModel) -> dict:
        return {"outcome": None, "turn": role.value}

    @staticmethod
    def round_fields(starting_role: RoleModel) -> dict:
        """Fields of a fresh round starting with `starting_role`."""
        return {
            "board": empty_board(),
            "turn": starting_role.value,
            "outcome": None,
        }
