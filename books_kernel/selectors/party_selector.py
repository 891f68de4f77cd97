"""
Party query selector.

Statements and the activity feed read customers and vendors through here.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from books_kernel.domain.dtos import PartySnapshot
from books_kernel.domain.money import round2
from books_kernel.models.party import Party
from books_kernel.selectors.base import BaseSelector


def party_snapshot(party: Party) -> PartySnapshot:
    return PartySnapshot(
        id=party.id,
        party_code=party.party_code,
        party_type=party.party_type,
        name=party.name,
        currency_code=party.currency_code,
        opening_balance=round2(party.opening_balance),
        gstin=party.gstin,
    )


class PartySelector(BaseSelector[Party]):
    """Read-only queries over customers and vendors."""

    def get(self, party_id: UUID) -> PartySnapshot | None:
        party = self.session.get(Party, party_id)
        return party_snapshot(party) if party is not None else None

    def names(self, party_ids: Iterable[UUID]) -> dict[UUID, str]:
        ids = set(party_ids)
        if not ids:
            return {}
        rows = self.session.execute(select(Party.id, Party.name).where(Party.id.in_(ids)))
        return {row.id: row.name for row in rows}
