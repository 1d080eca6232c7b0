"""Rematch Controller: the only way out of a concluded round.

Resets clear the playing surface and the outcome. Role bindings change only
through an explicit swap, and the win ledger is never touched because it is
keyed by identity.
"""

import logging
import random

from playroom.converter import DataConverter
from playroom.domain.bingo_rules import BingoRules
from playroom.domain.tictactoe_rules import TicTacToeRules
from playroom.exceptions import AttachConflict, PreconditionFailed, VariantRequired
from playroom.models.dc_models import RoleModel, VariantModel
from playroom.models.schema_models import SessionDocumentSchema
from playroom.services.store import SessionStore

data_converter = DataConverter()


class RematchController:
    def __init__(self, store: SessionStore, rng: random.Random | None = None):
        self.store = store
        self.rng = rng

    async def _load_for_participant(self, session_id: str, identity_id: str) -> SessionDocumentSchema:
        document = data_converter.normalize_snapshot(await self.store.get(session_id), session_id)
        if document.role_of(identity_id) is None:
            raise AttachConflict(f"{identity_id} is not a player in session {session_id}")
        if document.variant is None:
            raise VariantRequired("Choose a game before starting a rematch.")
        return document

    async def reset_standard(self, session_id: str, identity_id: str) -> SessionDocumentSchema:
        """Start a new round with the same seats

        Tic-tac-toe clears the board and hands the first move to `starting_role`;
        bingo deals a fresh card to every bound role.

        Args:
            session_id (str): ID to identify this session
            identity_id (str): Caller, must hold a role

        Returns:
            SessionDocumentSchema: The committed session
        """
        document = await self._load_for_participant(session_id, identity_id)
        if document.variant == VariantModel.bingo:
            fields = BingoRules.round_fields(document, self.rng)
        else:
            fields = TicTacToeRules.round_fields(document.starting_role)
        raw = await self.store.merge_update(session_id, fields)
        logging.info(f"Session {session_id} reset by {identity_id}")
        return data_converter.normalize_snapshot(raw, session_id)

    async def reassign_starter(
        self,
        session_id: str,
        identity_id: str,
        new_starting_role: RoleModel,
        swap_roles: bool = False,
    ) -> SessionDocumentSchema:
        """Start a new tic-tac-toe round with a chosen first mover, optionally swapping seats

        Swapping exchanges identities and display names between X and O. It is
        guarded by preconditions on both seats so two clients asking for a swap
        at the same time do not swap twice.

        Raises:
            AttachConflict: The caller holds no role in the session
            VariantRequired: The session does not play tic-tac-toe
        """
        document = await self._load_for_participant(session_id, identity_id)
        if document.variant != VariantModel.tictactoe:
            raise VariantRequired("Only tic-tac-toe has a starting player.")

        fields = TicTacToeRules.round_fields(new_starting_role)
        fields["starting_role"] = new_starting_role.value
        preconditions = {}
        if swap_roles:
            x, o = RoleModel.X, RoleModel.O
            fields[("slots", x.value)] = document.slots[o]
            fields[("slots", o.value)] = document.slots[x]
            fields[("display_names", x.value)] = document.display_names[o]
            fields[("display_names", o.value)] = document.display_names[x]
            preconditions[("slots", x.value)] = document.slots[x]
            preconditions[("slots", o.value)] = document.slots[o]

        try:
            raw = await self.store.merge_update(session_id, fields, preconditions)
        except PreconditionFailed as e:
            logging.warning(f"Seats of {session_id} changed before the swap was applied: {e}")
            return data_converter.normalize_snapshot(await self.store.get(session_id), session_id)
        logging.info(
            f"Session {session_id} restarted by {identity_id}: {new_starting_role.value} starts"
            f"{', seats swapped' if swap_roles else ''}"
        )
        return data_converter.normalize_snapshot(raw, session_id)
