from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from .errors import ProgrammerError

CARDS_PER_SUIT = 13
SUIT_COUNT = 4
CARD_COUNT = CARDS_PER_SUIT * SUIT_COUNT

# Flag bits stored with every card row
HIGHLIGHT_MASK = 0x07
HIGHLIGHT_NONE = 0
FACE_DOWN = 0x08
SPREAD = 0x10

SUIT_NAMES = ('Spades', 'Hearts', 'Clubs', 'Diamonds')
SUIT_LETTERS = 'SHCD'
RANK_NAMES = ('Ace', '2', '3', '4', '5', '6', '7', '8', '9', '10', 'Jack', 'Queen', 'King')
RANK_LETTERS = ('A', '2', '3', '4', '5', '6', '7', '8', '9', '10', 'J', 'Q', 'K')

ACE = 0
QUEEN = CARDS_PER_SUIT - 2
KING = CARDS_PER_SUIT - 1


def calc_flags(highlight: int = HIGHLIGHT_NONE, face_down: bool = False, spread: bool = False) -> int:
    """Packs a highlight code and the face-down/spread switches into card flags."""
    flags = highlight & HIGHLIGHT_MASK
    if face_down:
        flags |= FACE_DOWN
    if spread:
        flags |= SPREAD
    return flags


def card_name(value: int) -> str:
    """Short name such as 'AS', '10H' or 'KD'."""
    return RANK_LETTERS[value % CARDS_PER_SUIT] + SUIT_LETTERS[value // CARDS_PER_SUIT]


def parse_card_name(text: str) -> int:
    """Parses a short card name ('QH', '10c') or a plain card value ('37')."""
    text = text.strip().upper()
    if text.isdigit():
        value = int(text)
        if not 0 <= value < CARD_COUNT:
            raise ValueError(f'card value out of range: {text}')
        return value
    if len(text) < 2 or text[-1] not in SUIT_LETTERS:
        raise ValueError(f'bad card name: {text!r}')
    rank_text, suit_text = text[:-1], text[-1]
    if rank_text == 'T':
        rank_text = '10'
    if rank_text not in RANK_LETTERS:
        raise ValueError(f'bad card rank: {text!r}')
    return SUIT_LETTERS.index(suit_text) * CARDS_PER_SUIT + RANK_LETTERS.index(rank_text)


@dataclass(frozen=True)
class Card:
    """One card identity at one generation: where it lies and how it is shown."""
    generation: int
    value: int  # suit * 13 + rank
    group: int
    position: int
    flags: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.value < CARD_COUNT:
            raise ProgrammerError(f'card value out of range: {self.value}')
        if self.generation < 0:
            raise ProgrammerError(f'negative generation {self.generation} for {card_name(self.value)}')
        if self.group < 0 or self.position < 0:
            raise ProgrammerError(
                f'negative slot ({self.group},{self.position}) for {card_name(self.value)}')

    @property
    def suit(self) -> int:
        return self.value // CARDS_PER_SUIT

    @property
    def rank(self) -> int:
        return self.value % CARDS_PER_SUIT

    @property
    def highlight(self) -> int:
        return self.flags & HIGHLIGHT_MASK

    @property
    def face_down(self) -> bool:
        return bool(self.flags & FACE_DOWN)

    @property
    def face_up(self) -> bool:
        return not self.face_down

    @property
    def spread(self) -> bool:
        return bool(self.flags & SPREAD)

    @property
    def is_king(self) -> bool:
        return self.rank == KING

    @property
    def short_name(self) -> str:
        return card_name(self.value)

    def same_layout(self, other: 'Card') -> bool:
        """True when both cards lie in the same slot and show the same way, ignoring highlights."""
        return (
            self.group == other.group
            and self.position == other.position
            and (self.flags & ~HIGHLIGHT_MASK) == (other.flags & ~HIGHLIGHT_MASK)
        )

    def with_changes(
        self,
        generation: Optional[int] = None,
        group: Optional[int] = None,
        position: Optional[int] = None,
        highlight: Optional[int] = None,
        face_down: Optional[bool] = None,
        spread: Optional[bool] = None,
    ) -> 'Card':
        """Returns a copy with the given fields replaced."""
        flags = calc_flags(
            self.highlight if highlight is None else highlight,
            self.face_down if face_down is None else face_down,
            self.spread if spread is None else spread,
        )
        return replace(
            self,
            generation=self.generation if generation is None else generation,
            group=self.group if group is None else group,
            position=self.position if position is None else position,
            flags=flags,
        )

    def __str__(self) -> str:
        side = 'down' if self.face_down else 'up'
        return (f"{RANK_NAMES[self.rank]} of {SUIT_NAMES[self.suit]}, gen={self.generation}, "
                f"pos=({self.group},{self.position}), face {side}")
