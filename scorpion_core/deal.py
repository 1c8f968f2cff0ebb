from __future__ import annotations

import random
from typing import List, Optional, Sequence

from .cards import CARD_COUNT, Card
from .errors import ProgrammerError


def shuffle_deck(seed: Optional[int] = None) -> List[int]:
    """Returns the 52 card values in a random order."""
    rng = random.Random(seed)
    deck = list(range(CARD_COUNT))
    rng.shuffle(deck)
    return deck


def check_deal(cards: Sequence[Card]) -> List[Card]:
    """Orders a freshly dealt layout by value, requiring every identity exactly once."""
    ordered = sorted(cards, key=lambda c: c.value)
    if [c.value for c in ordered] != list(range(CARD_COUNT)):
        raise ProgrammerError('Invalid deal: expected each of the 52 cards exactly once')
    slots = {(c.group, c.position) for c in ordered}
    if len(slots) != CARD_COUNT:
        raise ProgrammerError('Invalid deal: two cards share a slot')
    for c in ordered:
        if c.generation != 0:
            raise ProgrammerError(f'Invalid deal: {c.short_name} has generation {c.generation}')
    return ordered
