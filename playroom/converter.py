import logging
from typing import Any

from pydantic import ValidationError

from playroom.domain.bingo_rules import CARD_SIZE, winning_lines
from playroom.domain.common import DRAW
from playroom.domain.tictactoe_rules import BOARD_SIZE
from playroom.ledger_utils import LedgerUtils
from playroom.models.dc_models import (
    BingoCardModel,
    RoleModel,
    SessionPhaseModel,
    SessionStateModel,
    VariantModel,
)
from playroom.models.schema_models import BingoCardSchema, SessionDocumentSchema

ledger_utils = LedgerUtils()


def _role_or_none(value: Any) -> RoleModel | None:
    try:
        return RoleModel(value)
    except ValueError:
        return None


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


class DataConverter:
    """This class is used to convert data between different formats."""

    def normalize_snapshot(self, raw: Any, session_id: str | None = None) -> SessionDocumentSchema:
        """Convert a raw snapshot into a fully populated SessionDocumentSchema

        Missing or malformed fields (older schema, partial writes) fall back to
        defaults: empty board, zero ledger, unset names, no cards. Never raises.

        Args:
            raw (Any): Document as delivered by get() or a subscription
            session_id (str | None): Used when the snapshot does not carry its own id

        Returns:
            SessionDocumentSchema: Normalized session record
        """
        if not isinstance(raw, dict):
            logging.warning(f"Snapshot of {session_id} is not a document: {type(raw).__name__}")
            raw = {}
        problems: list[str] = []

        slots = self._role_mapping(raw.get("slots"), problems, "slots")
        display_names = self._role_mapping(raw.get("display_names"), problems, "display_names")

        variant = None
        if raw.get("variant") is not None:
            try:
                variant = VariantModel(raw["variant"])
            except ValueError:
                problems.append(f"variant={raw['variant']!r}")

        board = raw.get("board")
        if isinstance(board, list) and len(board) == BOARD_SIZE:
            board = [_role_or_none(cell) if cell is not None else None for cell in board]
        else:
            if board is not None:
                problems.append("board")
            board = [None] * BOARD_SIZE

        raw_cards = raw.get("cards") if isinstance(raw.get("cards"), dict) else {}
        cards = {role: self._card_or_none(raw_cards.get(role.value), problems, role) for role in RoleModel}

        outcome = raw.get("outcome")
        if outcome is not None and outcome != DRAW and _role_or_none(outcome) is None:
            problems.append(f"outcome={outcome!r}")
            outcome = None

        win_ledger = {}
        raw_ledger = raw.get("win_ledger")
        if isinstance(raw_ledger, dict):
            for identity_id, wins in raw_ledger.items():
                if isinstance(wins, int) and not isinstance(wins, bool) and wins >= 0:
                    win_ledger[str(identity_id)] = wins
                else:
                    problems.append(f"win_ledger[{identity_id}]")
        elif raw_ledger is not None:
            problems.append("win_ledger")

        starting_role = _role_or_none(raw.get("starting_role")) or RoleModel.X
        turn = _role_or_none(raw.get("turn")) if raw.get("turn") is not None else None
        if "turn" not in raw:
            turn = starting_role if outcome is None else None

        revision = raw.get("revision")
        if not isinstance(revision, int) or isinstance(revision, bool):
            revision = 0

        if problems:
            logging.warning(f"Malformed snapshot of {raw.get('session_id', session_id)}, using defaults for: {', '.join(problems)}")

        return SessionDocumentSchema(
            session_id=_str_or_none(raw.get("session_id")) or session_id or "",
            revision=revision,
            slots=slots,
            display_names=display_names,
            variant=variant,
            turn=turn,
            starting_role=starting_role,
            board=board,
            cards=cards,
            outcome=outcome,
            win_ledger=win_ledger,
            created_at=_str_or_none(raw.get("created_at")),
        )

    def convert_document_to_state_model(
        self, document: SessionDocumentSchema, viewer_identity: str | None
    ) -> SessionStateModel:
        """Convert a normalized session into the view sent to one client

        Args:
            document (SessionDocumentSchema): The latest normalized snapshot
            viewer_identity (str | None): Identity the view is built for

        Returns:
            SessionStateModel: Derived view; wins are looked up by identity, the
                opponent's bingo card is hidden until the round is concluded
        """
        viewer_role = document.role_of(viewer_identity)
        cards = {}
        lines: list[str] = []
        for role, card in document.cards.items():
            visible = card is not None and (role == viewer_role or document.outcome is not None)
            cards[role] = BingoCardModel(**card.model_dump()) if visible else None
            if card is not None and document.outcome == role.value:
                lines = winning_lines(card.marked)

        return SessionStateModel(
            session_id=document.session_id,
            revision=document.revision,
            phase=self.phase_of(document),
            variant=document.variant,
            viewer_role=viewer_role,
            spectator=viewer_role is None,
            slots=dict(document.slots),
            display_names=dict(document.display_names),
            wins=ledger_utils.wins_by_role(document),
            outcome=document.outcome,
            turn=document.turn if document.variant != VariantModel.bingo else None,
            starting_role=document.starting_role,
            board=list(document.board),
            cards=cards,
            winning_lines=lines,
        )

    @staticmethod
    def phase_of(document: SessionDocumentSchema) -> SessionPhaseModel:
        if not document.both_bound():
            return SessionPhaseModel.unbound
        if document.outcome is not None:
            return SessionPhaseModel.concluded
        return SessionPhaseModel.in_progress

    @staticmethod
    def _role_mapping(value: Any, problems: list[str], name: str) -> dict:
        mapping = {RoleModel.X: None, RoleModel.O: None}
        if value is None:
            return mapping
        if not isinstance(value, dict):
            problems.append(name)
            return mapping
        for role in RoleModel:
            mapping[role] = _str_or_none(value.get(role.value))
        return mapping

    @staticmethod
    def _card_or_none(value: Any, problems: list[str], role: RoleModel) -> BingoCardSchema | None:
        if value is None:
            return None
        try:
            card = BingoCardSchema.model_validate(value)
        except ValidationError:
            problems.append(f"cards.{role.value}")
            return None
        square = len(card.grid) == CARD_SIZE and all(len(row) == CARD_SIZE for row in card.grid)
        square = square and len(card.marked) == CARD_SIZE and all(len(row) == CARD_SIZE for row in card.marked)
        if not square:
            problems.append(f"cards.{role.value}")
            return None
        return card
