"""Session State Machine.

unbound -> in_progress -> concluded -> (rematch) -> in_progress

Local state is whatever snapshot arrived last: it is replaced wholesale on
every delivery and never merged with writes that have not round-tripped yet.
"""

import logging
from typing import AsyncIterator

from playroom.converter import DataConverter
from playroom.domain.bingo_rules import BingoRules
from playroom.domain.common import MoveValidation, reject
from playroom.domain.tictactoe_rules import TicTacToeRules
from playroom.exceptions import PreconditionFailed
from playroom.models.basic_authentication_models import IdentityModel
from playroom.models.dc_models import (
    BingoMoveModel,
    RoleModel,
    SessionPhaseModel,
    SessionStateModel,
    TicTacToeMoveModel,
    VariantModel,
)
from playroom.models.schema_models import SessionDocumentSchema
from playroom.services.store import SessionStore
from playroom.session.bootstrap import AttachResult, SessionBootstrap
from playroom.session.rematch import RematchController

data_converter = DataConverter()

RULES = {
    VariantModel.tictactoe: TicTacToeRules,
    VariantModel.bingo: BingoRules,
}
MOVE_TYPES = {
    VariantModel.tictactoe: TicTacToeMoveModel,
    VariantModel.bingo: BingoMoveModel,
}


class SessionStateMachine:
    def __init__(
        self,
        store: SessionStore,
        session_id: str,
        identity: IdentityModel | None,
        bootstrap: SessionBootstrap | None = None,
        rematch: RematchController | None = None,
    ):
        self.store = store
        self.session_id = session_id
        self.identity = identity
        self.bootstrap = bootstrap or SessionBootstrap(store)
        self.rematch_controller = rematch or RematchController(store)
        self.document: SessionDocumentSchema | None = None

    @property
    def identity_id(self) -> str | None:
        return self.identity.identity_id if self.identity is not None else None

    @property
    def role(self) -> RoleModel | None:
        if self.document is None:
            return None
        return self.document.role_of(self.identity_id)

    @property
    def phase(self) -> SessionPhaseModel:
        if self.document is None:
            return SessionPhaseModel.unbound
        return data_converter.phase_of(self.document)

    async def attach(
        self, variant: VariantModel | None = None, starting_role: RoleModel = RoleModel.X
    ) -> AttachResult:
        result = await self.bootstrap.attach(self.session_id, self.identity, variant, starting_role)
        self.document = result.document
        return result

    async def refresh(self) -> SessionStateModel:
        """Replace local state with the store's current document."""
        self.apply_snapshot(await self.store.get(self.session_id))
        return self.view()

    def apply_snapshot(self, raw: dict) -> SessionDocumentSchema:
        self.document = data_converter.normalize_snapshot(raw, self.session_id)
        return self.document

    def view(self) -> SessionStateModel:
        if self.document is None:
            self.document = data_converter.normalize_snapshot({}, self.session_id)
        return data_converter.convert_document_to_state_model(self.document, self.identity_id)

    async def listen(self) -> AsyncIterator[SessionStateModel]:
        """Yield a fresh view for every snapshot of the session.

        The first snapshot is the current document; leaving the loop closes the
        subscription without touching the stored session.
        """
        async with self.store.subscribe(self.session_id) as channel:
            async for raw in channel:
                self.apply_snapshot(raw)
                yield self.view()

    async def select_variant(self, variant: VariantModel) -> SessionStateModel:
        self.document = await self.bootstrap.select_variant(self.session_id, self.identity_id, variant)
        return self.view()

    def validate(self, move: TicTacToeMoveModel | BingoMoveModel) -> MoveValidation:
        document = self.document
        if document is None or document.variant is None:
            return reject("No game has been chosen yet.")
        if not isinstance(move, MOVE_TYPES[document.variant]):
            return reject(f"This session plays {document.variant.value}.")
        return RULES[document.variant].validate_move(document, self.identity_id, move)

    async def play(self, move: TicTacToeMoveModel | BingoMoveModel) -> MoveValidation:
        """Validate a move locally and write it as the smallest set of fields

        Rejected moves never reach the store. The write is conditional on the
        round still being open (and, for tic-tac-toe, on it still being our turn),
        so two racing writers cannot both conclude a round.

        Args:
            move (TicTacToeMoveModel | BingoMoveModel): Move matching the session's variant

        Returns:
            MoveValidation: ACCEPT or the reason the move was rejected
        """
        if self.document is None:
            await self.refresh()
        validation = self.validate(move)
        if not validation.accepted:
            logging.info(f"Rejected move by {self.identity_id} in {self.session_id}: {validation.reason}")
            return validation

        role = self.role
        rules = RULES[self.document.variant]
        fields = rules.build_move_update(self.document, role, move)
        preconditions = rules.move_preconditions(self.document, role)
        try:
            raw = await self.store.merge_update(self.session_id, fields, preconditions)
        except PreconditionFailed as e:
            logging.warning(f"Move by {self.identity_id} in {self.session_id} raced another write: {e}")
            await self.refresh()
            return reject("The game changed before your move was recorded.")

        self.apply_snapshot(raw)
        if self.document.outcome is not None:
            logging.info(f"Session {self.session_id} concluded: {self.document.outcome}")
        return validation

    async def reset_standard(self) -> SessionStateModel:
        self.document = await self.rematch_controller.reset_standard(self.session_id, self.identity_id)
        return self.view()

    async def reassign_starter(self, new_starting_role: RoleModel, swap_roles: bool = False) -> SessionStateModel:
        self.document = await self.rematch_controller.reassign_starter(
            self.session_id, self.identity_id, new_starting_role, swap_roles
        )
        return self.view()
