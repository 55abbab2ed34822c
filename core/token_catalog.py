"""Read-only lookup of token cards, built once at startup."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Iterable, Iterator

from db.database import CardRecord, CardRepository


class TokenCatalog(Mapping[str, CardRecord]):
    """Immutable mapping of card id -> token card.

    Build it once with `from_repository` and hand it to whatever needs to
    resolve tokens; it never refreshes itself.
    """

    def __init__(self, cards: Iterable[CardRecord]):
        self._cards = MappingProxyType({card.id: card for card in cards})

    @classmethod
    def from_repository(cls, cards: CardRepository) -> TokenCatalog:
        return cls(cards.list_tokens())

    def __getitem__(self, card_id: str) -> CardRecord:
        return self._cards[card_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._cards)

    def __len__(self) -> int:
        return len(self._cards)

    def to_list(self) -> list[dict]:
        return [card.to_dict() for card in self._cards.values()]
