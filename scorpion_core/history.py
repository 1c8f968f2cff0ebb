from __future__ import annotations

from typing import List, Optional, Sequence

from .cards import CARD_COUNT, Card
from .db import CardDatabase
from .debug import trace
from .errors import ProgrammerError
from .state import GameState


class GenerationStore:
    """Append-only card history keyed by (value, generation).

    A commit at generation g stores only the cards that differ from g-1. The
    layout at any generation is rebuilt by taking, for each card, its row with
    the greatest generation <= g.
    """

    def __init__(self, db: CardDatabase) -> None:
        self.db = db

    def all_cards_at(self, generation: int) -> Optional[List[Card]]:
        """The 52 cards current at generation ordered by value, or None when some card has no row."""
        cards = self.db.select_current_generation(generation)
        if len(cards) != CARD_COUNT:
            trace('history', f"generation {generation} resolves {len(cards)} cards")
            return None
        for i, card in enumerate(cards):
            if card.value != i:
                trace('history', f"generation {generation} is missing card {i}")
                return None
        return cards

    def commit(self, cards: Sequence[Card], generation: int, state: Optional[GameState] = None) -> None:
        """Writes one generation: drops rows >= generation, then inserts cards and the state row.

        All of it happens in one SQLite transaction, so a failure leaves the
        history exactly as it was.
        """
        for card in cards:
            if card.generation != generation:
                raise ProgrammerError(
                    f"inconsistent generation: {card.short_name} has {card.generation}, commit is {generation}")
        with self.db.transaction():
            self.db.delete_cards_where_generation_at_least(generation)
            self.db.insert_cards(cards)
            if state is not None:
                self.db.write_game_state(state)
        trace('history', f"committed {len(cards)} cards at generation {generation}")

    def reset(self, cards: Sequence[Card], state: Optional[GameState] = None) -> None:
        """Starts a fresh history from a generation 0 deal."""
        self.commit(cards, 0, state)

    def undo_delta(self, generation: int) -> List[Card]:
        return self.db.select_undo_delta(generation)

    def redo_delta(self, generation: int) -> List[Card]:
        return self.db.select_redo_delta(generation)

    def min_generation(self) -> Optional[int]:
        return self.db.select_min_generation()

    def max_generation(self) -> Optional[int]:
        if self.min_generation() is None:
            return None
        return self.db.select_max_generation()

    def clear_redo(self, generation: int) -> int:
        with self.db.transaction():
            return self.db.delete_cards_where_generation_at_least(generation)

    def clear_undo(self, generation: int) -> int:
        """Drops rows that can no longer be reached once nothing below generation is undoable."""
        with self.db.transaction():
            deleted = self.db.delete_cards_superseded_at_or_below(generation)
        trace('history', f"compacted {deleted} rows at or below generation {generation}")
        return deleted
