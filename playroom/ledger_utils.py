from typing import Dict

from playroom.models.dc_models import RoleModel
from playroom.models.schema_models import SessionDocumentSchema


class LedgerUtils:
    def wins_of(self, document: SessionDocumentSchema, role: RoleModel) -> int:
        """Wins of the identity currently bound to `role`

        Args:
            document (SessionDocumentSchema): Normalized session
            role (RoleModel): Seat to look up

        Returns:
            int: Ledger entry of the bound identity, 0 for an empty seat or a missing entry
        """
        identity_id = document.slots.get(role)
        if identity_id is None:
            return 0
        return document.win_ledger.get(identity_id, 0)

    def wins_by_role(self, document: SessionDocumentSchema) -> Dict[RoleModel, int]:
        return {role: self.wins_of(document, role) for role in RoleModel}

    def total_wins(self, document: SessionDocumentSchema) -> int:
        """Sum of the ledger; equals the number of rounds concluded with a winner."""
        total = 0
        for wins in document.win_ledger.values():
            total += wins
        return total
