from __future__ import annotations

from typing import Optional

# Facade module that re-exports the solitaire core.
# Single-responsibility modules live under scorpion_core/*.

from scorpion_core.cards import (
    CARD_COUNT,
    CARDS_PER_SUIT,
    FACE_DOWN,
    HIGHLIGHT_MASK,
    HIGHLIGHT_NONE,
    SPREAD,
    Card,
    calc_flags,
    card_name,
    parse_card_name,
)
from scorpion_core.db import CardDatabase
from scorpion_core.deal import shuffle_deck
from scorpion_core.dealer import Dealer
from scorpion_core.errors import InconsistentHistory, ProgrammerError
from scorpion_core.history import GenerationStore
from scorpion_core.layout import dealer_to_json, pretty
from scorpion_core.pyramid import PyramidRules
from scorpion_core.rules import GameOutcome, GameVariant, RuleEngine, make_engine
from scorpion_core.scorpion import ScorpionRules
from scorpion_core.state import GameState


def open_session(db_path: str, variant: Optional[GameVariant] = None, resume: bool = True) -> Dealer:
    """Opens a database and returns a dealer holding a resumed or freshly dealt game."""
    dealer = Dealer(CardDatabase(db_path), variant)
    if resume:
        dealer.load()
    else:
        dealer.deal()
    return dealer


if __name__ == '__main__':
    from scorpion_core.cli import main
    main()
