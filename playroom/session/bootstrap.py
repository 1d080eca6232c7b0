"""Session Bootstrap: first contact creates the session, later contacts reconcile it.

Every write here is a partial field-path merge. Binding a seat carries a
precondition that the seat is still empty, so when two identities race for the
same seat the loser re-reads and reconciles again instead of overwriting.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone

from playroom.converter import DataConverter
from playroom.domain.bingo_rules import generate_card
from playroom.domain.tictactoe_rules import TicTacToeRules, empty_board
from playroom.exceptions import (
    AttachConflict,
    PreconditionFailed,
    SessionAlreadyExists,
    SessionNotFound,
    VariantAlreadySet,
)
from playroom.load_secrets import attach_max_attempts
from playroom.models.basic_authentication_models import IdentityModel
from playroom.models.dc_models import RoleModel, VariantModel
from playroom.models.schema_models import SessionDocumentSchema
from playroom.services.store import SessionStore

data_converter = DataConverter()


def default_display_name(role: RoleModel) -> str:
    return f"Player {role.value}"


@dataclass
class AttachResult:
    role: RoleModel | None
    spectator: bool
    document: SessionDocumentSchema


class SessionBootstrap:
    def __init__(
        self,
        store: SessionStore,
        max_attempts: int = attach_max_attempts,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.max_attempts = max(1, max_attempts)
        self.rng = rng

    async def attach(
        self,
        session_id: str,
        identity: IdentityModel,
        variant: VariantModel | None = None,
        starting_role: RoleModel = RoleModel.X,
    ) -> AttachResult:
        """Create the session or bind the identity to a free seat

        Args:
            session_id (str): ID to identify this session
            identity (IdentityModel): The authenticated caller
            variant (VariantModel | None): Variant fixed at creation; ignored for an existing session
            starting_role (RoleModel): First mover of the first round; only used at creation

        Returns:
            AttachResult: The caller's role (None for a spectator) and the normalized session
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                raw = await self.store.get(session_id)
            except SessionNotFound:
                try:
                    raw = await self.store.create(
                        session_id, self.initial_fields(identity, variant, starting_role)
                    )
                except SessionAlreadyExists:
                    logging.info(f"Session {session_id} was created concurrently, reconciling (attempt {attempt})")
                    continue
                logging.info(f"Session {session_id} created by {identity.identity_id}")
                return AttachResult(
                    role=RoleModel.X,
                    spectator=False,
                    document=data_converter.normalize_snapshot(raw, session_id),
                )

            document = data_converter.normalize_snapshot(raw, session_id)
            role, fields, preconditions = self.reconcile(document, identity)
            if not fields:
                return AttachResult(role=role, spectator=role is None, document=document)

            try:
                raw = await self.store.merge_update(session_id, fields, preconditions)
            except PreconditionFailed as e:
                logging.warning(f"Attach of {identity.identity_id} to {session_id} lost a race: {e}")
                continue

            if role is not None and document.slots[role] is None:
                logging.info(f"{identity.identity_id} bound to role {role.value} of session {session_id}")
            return AttachResult(
                role=role,
                spectator=role is None,
                document=data_converter.normalize_snapshot(raw, session_id),
            )

        document = data_converter.normalize_snapshot(await self.store.get(session_id), session_id)
        role = document.role_of(identity.identity_id)
        logging.warning(f"Attach of {identity.identity_id} to {session_id} gave up after {self.max_attempts} attempts")
        return AttachResult(role=role, spectator=role is None, document=document)

    def initial_fields(
        self,
        identity: IdentityModel,
        variant: VariantModel | None,
        starting_role: RoleModel,
    ) -> dict:
        """Fields of a brand new session with the creator on role X."""
        return {
            "slots": {RoleModel.X.value: identity.identity_id, RoleModel.O.value: None},
            "display_names": {RoleModel.X.value: identity.display_name, RoleModel.O.value: None},
            "variant": variant.value if variant is not None else None,
            "starting_role": starting_role.value,
            "turn": starting_role.value,
            "board": empty_board(),
            "cards": {
                RoleModel.X.value: generate_card(self.rng) if variant == VariantModel.bingo else None,
                RoleModel.O.value: None,
            },
            "outcome": None,
            "win_ledger": {identity.identity_id: 0},
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

    def reconcile(
        self, document: SessionDocumentSchema, identity: IdentityModel
    ) -> tuple[RoleModel | None, dict, dict]:
        """Compute the merge that brings an existing session up to date for this caller

        Returns:
            tuple[RoleModel | None, dict, dict]: The caller's role, the fields to write and
                their preconditions. Empty fields mean nothing needs to change.
        """
        identity_id = identity.identity_id
        fields: dict = {}
        preconditions: dict = {}

        role = document.role_of(identity_id)
        if role is None:
            for candidate in RoleModel:
                if document.slots[candidate] is None:
                    role = candidate
                    fields[("slots", role.value)] = identity_id
                    preconditions[("slots", role.value)] = None
                    break

        for seat in RoleModel:
            bound = identity_id if seat == role else document.slots[seat]
            if bound is None:
                continue
            if seat == role:
                # names drift between sessions; always show the latest one
                if document.display_names[seat] != identity.display_name:
                    fields[("display_names", seat.value)] = identity.display_name
            elif not document.display_names[seat]:
                fields[("display_names", seat.value)] = default_display_name(seat)
            if document.variant == VariantModel.bingo and document.cards[seat] is None:
                fields[("cards", seat.value)] = generate_card(self.rng)
                preconditions[("cards", seat.value)] = None

        if role is not None and identity_id not in document.win_ledger:
            fields[("win_ledger", identity_id)] = 0
        return role, fields, preconditions

    async def select_variant(
        self, session_id: str, identity_id: str, variant: VariantModel
    ) -> SessionDocumentSchema:
        """Choose the game once; an unset variant is a one-way transition

        Raises:
            AttachConflict: The caller holds no role in the session
            VariantAlreadySet: A different variant was already chosen
        """
        document = data_converter.normalize_snapshot(await self.store.get(session_id), session_id)
        if document.role_of(identity_id) is None:
            raise AttachConflict(f"{identity_id} is not a player in session {session_id}")
        if document.variant == variant:
            return document
        if document.variant is not None:
            raise VariantAlreadySet(f"Session {session_id} already plays {document.variant.value}")

        fields: dict = {"variant": variant.value}
        if variant == VariantModel.bingo:
            fields["outcome"] = None
            for seat in RoleModel:
                if document.slots[seat] and document.cards[seat] is None:
                    fields[("cards", seat.value)] = generate_card(self.rng)
        else:
            fields.update(TicTacToeRules.round_fields(document.starting_role))

        try:
            raw = await self.store.merge_update(session_id, fields, {"variant": None})
        except PreconditionFailed:
            document = data_converter.normalize_snapshot(await self.store.get(session_id), session_id)
            if document.variant == variant:
                return document
            raise VariantAlreadySet(f"Session {session_id} already plays {document.variant.value}")
        logging.info(f"Session {session_id} plays {variant.value}")
        return data_converter.normalize_snapshot(raw, session_id)
