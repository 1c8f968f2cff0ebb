from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .cards import Card

if TYPE_CHECKING:
    from .dealer import Dealer


class GameOutcome(Enum):
    CONTINUE = 'continue'
    WON = 'won'
    LOST = 'lost'


class GameVariant(Enum):
    SCORPION = 'scorpion'
    PYRAMID = 'pyramid'

    @classmethod
    def parse(cls, text: str) -> 'GameVariant':
        try:
            return cls(text.strip().lower())
        except ValueError:
            raise ValueError(f"unknown game variant: {text!r}") from None


class RuleEngine(Protocol):
    """What the dealer needs from a game variant.

    on_click and on_double_click open their own dealer.with_undo transaction
    and return whatever the action returned (True when cards moved).
    check_game_over runs inside that transaction and may stage more cards.
    """
    name: str
    group_count: int
    group_names: Tuple[str, ...]
    cheats: Tuple[str, ...]
    # Inclusive (low, high) bounds of the numeric options
    option_limits: Dict[str, Tuple[int, int]]
    cheated: bool

    def default_options(self) -> Dict[str, Any]: ...

    def reset_deal_state(self, options: Dict[str, Any]) -> None: ...

    def deal(self, shuffled: Sequence[int]) -> List[Card]: ...

    def is_clickable(self, card: Card) -> bool: ...

    def on_click(self, card: Card) -> bool: ...

    def on_double_click(self, card: Card) -> bool: ...

    def check_game_over(self, generation: int) -> GameOutcome: ...

    def is_valid(self) -> Optional[str]: ...

    def set_cheat(self, name: str, on: bool = True) -> None: ...

    def clear_cheats(self) -> None: ...


def make_engine(variant: GameVariant, dealer: 'Dealer') -> RuleEngine:
    from .pyramid import PyramidRules
    from .scorpion import ScorpionRules

    factories = {
        GameVariant.SCORPION: ScorpionRules,
        GameVariant.PYRAMID: PyramidRules,
    }
    return factories[variant](dealer)
