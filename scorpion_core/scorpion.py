from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Set

from .cards import CARD_COUNT, CARDS_PER_SUIT, KING, Card, calc_flags
from .errors import ProgrammerError
from .rules import GameOutcome

if TYPE_CHECKING:
    from .dealer import Dealer

COLUMN_COUNT = 7
KITTY_GROUP = COLUMN_COUNT
GROUP_COUNT = KITTY_GROUP + 1
CARDS_PER_COLUMN = 7
CARDS_FACE_DOWN = 3
KITTY_COUNT = 3

HIGHLIGHT_SELECTED = 1
HIGHLIGHT_ONE_LOWER = 2
HIGHLIGHT_ONE_HIGHER = 3

CHEAT_CARD_FLIP = 'cheat_card_flip'
CHEAT_MOVE_CARD = 'cheat_move_card'


class ScorpionRules:
    """Scorpion: seven columns of seven plus a three card kitty.

    Runs are built down in suit onto the foot of another column. Any face up
    card can be moved, taking every card below it along. Kings go to empty
    columns. The game is won with four King to Ace runs.
    """
    name = 'scorpion'
    group_count = GROUP_COUNT
    group_names = tuple(f'column {i + 1}' for i in range(COLUMN_COUNT)) + ('kitty',)
    cheats = (CHEAT_CARD_FLIP, CHEAT_MOVE_CARD)
    option_limits = {'hidden_card_column_count': (3, 4)}

    def __init__(self, dealer: 'Dealer') -> None:
        self.dealer = dealer
        self.cheated = False
        self._cheats: Set[str] = set()

    def default_options(self) -> Dict[str, Any]:
        return {
            'show_highlights': True,
            'move_kitty_when_flipped': False,
            'hidden_card_column_count': 3,
            'king_moves_alone': True,
        }

    def reset_deal_state(self, options: Dict[str, Any]) -> None:
        pass

    def _option(self, name: str) -> Any:
        return self.dealer.options.get(name, self.default_options()[name])

    # Cheats

    def set_cheat(self, name: str, on: bool = True) -> None:
        if on:
            self._cheats.add(name)
        else:
            self._cheats.discard(name)

    def clear_cheats(self) -> None:
        self._cheats.clear()
        self.cheated = False

    def _cheat(self, name: str) -> bool:
        return name in self._cheats

    # Dealing

    def deal(self, shuffled: Sequence[int]) -> List[Card]:
        hidden = int(self._option('hidden_card_column_count'))
        cards: List[Card] = []
        columns = COLUMN_COUNT * CARDS_PER_COLUMN
        for i, value in enumerate(shuffled[:columns]):
            group, position = divmod(i, CARDS_PER_COLUMN)
            face_down = group < hidden and position < CARDS_FACE_DOWN
            cards.append(Card(0, value, group, position, calc_flags(face_down=face_down, spread=True)))
        for position, value in enumerate(shuffled[columns:]):
            cards.append(Card(0, value, KITTY_GROUP, position, calc_flags(face_down=True)))
        return cards

    # Lookups over the live layout

    def _column(self, group: int) -> List[Card]:
        return [c for c in self.dealer.group(group) if c is not None]

    def _one_lower(self, card: Card) -> Optional[Card]:
        return None if card.rank == 0 else self.dealer.find_card(card.value - 1)

    def _one_higher(self, card: Card) -> Optional[Card]:
        return None if card.rank == KING else self.dealer.find_card(card.value + 1)

    def _is_last(self, card: Card) -> bool:
        return card.position == len(self._column(card.group)) - 1

    # Interaction

    def is_clickable(self, card: Card) -> bool:
        return True

    def on_click(self, card: Card) -> bool:
        return self.dealer.with_undo(lambda generation: self._click(card, generation))

    def on_double_click(self, card: Card) -> bool:
        return self.dealer.with_undo(lambda generation: self._check_and_move(card, None, generation))

    def _click(self, card: Card, generation: int) -> bool:
        if card.face_down:
            return self._flip(card, generation)
        highlight = card.highlight
        target: Optional[Card] = None
        if highlight == HIGHLIGHT_ONE_LOWER:
            target = self._one_higher(card)
        elif highlight == HIGHLIGHT_ONE_HIGHER:
            target = self._one_lower(card)
        if target is not None and self._check_and_move(card, target, generation):
            return True
        # Clicking the selected card again leaves nothing highlighted
        if highlight != HIGHLIGHT_SELECTED:
            self._highlight(card, HIGHLIGHT_SELECTED)
            lower = self._one_lower(card)
            if lower is not None and (lower.group != card.group or lower.position != card.position + 1):
                self._highlight(lower, HIGHLIGHT_ONE_LOWER)
            higher = self._one_higher(card)
            if higher is not None and (higher.group != card.group or higher.position != card.position - 1):
                self._highlight(higher, HIGHLIGHT_ONE_HIGHER)
        return False

    def _highlight(self, card: Card, code: int) -> None:
        if card.face_up:
            self.dealer.card_changed(card.with_changes(highlight=code))

    def _flip(self, card: Card, generation: int) -> bool:
        if card.group == KITTY_GROUP:
            kitty = self._column(KITTY_GROUP)
            kitty_spread = bool(kitty) and kitty[0].spread
            if self._option('move_kitty_when_flipped'):
                if kitty_spread:
                    for c in kitty:
                        self._move_kitty_card(c, generation)
                    return True
                if self._cheat(CHEAT_CARD_FLIP):
                    self._move_kitty_card(card, generation)
                    self._close_kitty_gap(card, generation)
                    self.cheated = True
                    return True
                return False
            if kitty_spread:
                self.dealer.card_changed(card.with_changes(generation=generation, face_down=False, spread=True))
                return True
            if self._cheat(CHEAT_CARD_FLIP):
                self.dealer.card_changed(card.with_changes(generation=generation, face_down=False, spread=True))
                self.cheated = True
                return True
            return False
        column = self._column(card.group)
        if card.position == len(column) - 1:
            self.dealer.card_changed(card.with_changes(generation=generation, face_down=False, spread=True))
            return True
        if self._cheat(CHEAT_CARD_FLIP) and column[card.position + 1].face_up:
            self.dealer.card_changed(card.with_changes(generation=generation, face_down=False, spread=True))
            self.cheated = True
            return True
        return False

    def _move_kitty_card(self, card: Card, generation: int) -> None:
        # Kitty positions 0, 1, 2 land on groups 2, 1, 0
        group = KITTY_COUNT - 1 - card.position
        self.dealer.card_changed(card.with_changes(
            generation=generation, group=group, position=len(self._column(group)),
            face_down=False, spread=True))

    def _close_kitty_gap(self, card: Card, generation: int) -> None:
        for c in self._column(KITTY_GROUP)[card.position + 1:]:
            self.dealer.card_changed(c.with_changes(generation=generation, position=c.position - 1))

    def _check_and_move(self, card: Card, target: Optional[Card], generation: int) -> bool:
        """Moves card if any legal (or cheated) destination exists. Returns whether it moved."""
        if card.face_down:
            return False
        cheat_move = self._cheat(CHEAT_MOVE_CARD)
        if card.rank == KING:
            column = self._column(card.group)
            move_alone = card.group == KITTY_GROUP or (
                bool(self._option('king_moves_alone'))
                and card.position < len(column) - 1
                and column[card.position + 1].value != card.value - 1
            )
            if card.position != 0 or move_alone:
                for empty in range(COLUMN_COUNT):
                    if not self._column(empty):
                        self._move_cards(card, empty, None, generation, move_alone)
                        return True
            queen = self._one_lower(card)
            if (cheat_move and queen is not None and queen.face_up and queen.group != KITTY_GROUP
                    and (queen.group != card.group or queen.position != card.position + 1)):
                self._move_cards(card, queen.group, queen.position, generation, True)
                self.cheated = True
                return True
            return False

        higher = self._one_higher(card)
        lower = self._one_lower(card)
        if higher is not None and (not cheat_move or target != lower):
            if (higher.group != card.group and higher.group != KITTY_GROUP
                    and self._is_last(higher) and higher.face_up):
                self._move_cards(card, higher.group, None, generation, card.group == KITTY_GROUP)
                return True
            if (cheat_move and higher.face_up
                    and (higher.group != card.group or higher.position + 1 != card.position)):
                self._move_cards(card, higher.group, higher.position + 1, generation, True)
                self.cheated = True
                return True
        if (cheat_move and lower is not None and target == lower and lower.face_up
                and (lower.group != card.group or lower.position != card.position + 1)):
            self._move_cards(card, lower.group, lower.position, generation, True)
            self.cheated = True
            return True
        return False

    def _move_cards(self, card: Card, to_group: int, to_pos: Optional[int], generation: int, single: bool) -> None:
        """Moves card (alone, or with the cards below it) to to_pos of to_group; None means the end."""
        source = self._column(card.group)
        dest = self._column(to_group)
        pos = len(dest) if to_pos is None else to_pos
        changed = self.dealer.card_changed

        if card.group == to_group:
            if not single:
                raise ProgrammerError(f"run from {card.short_name} moved onto its own column")
            if pos > card.position:
                pos -= 1
            if pos == card.position:
                raise ProgrammerError(f"{card.short_name} moved onto its own slot")
            if pos < card.position:
                for c in source[pos:card.position]:
                    changed(c.with_changes(generation=generation, position=c.position + 1))
            else:
                for c in source[card.position + 1:pos + 1]:
                    changed(c.with_changes(generation=generation, position=c.position - 1))
            changed(card.with_changes(generation=generation, position=pos))
            return

        move_end = card.position + 1 if single else len(source)
        count = move_end - card.position
        for c in dest[pos:]:
            changed(c.with_changes(generation=generation, position=c.position + count))
        for c in source[card.position:]:
            if c.position < move_end:
                changed(c.with_changes(generation=generation, group=to_group, position=pos))
                pos += 1
            else:
                changed(c.with_changes(generation=generation, position=c.position - count))

    # Game over

    def check_game_over(self, generation: int) -> GameOutcome:
        groups = [[c for c in g if c is not None] for g in self.dealer.groups()]
        for column in groups[:COLUMN_COUNT]:
            if not column:
                continue
            last = column[-1]
            if last.face_down:
                return GameOutcome.CONTINUE
            lower = self._one_lower(last)
            if lower is not None and lower.group != last.group and lower.face_up:
                return GameOutcome.CONTINUE

        if any(not column for column in groups[:COLUMN_COUNT]):
            king_moves_alone = bool(self._option('king_moves_alone'))
            for king_value in range(KING, CARD_COUNT, CARDS_PER_SUIT):
                king = self.dealer.find_card(king_value)
                queen = self.dealer.find_card(king_value - 1)
                if king.face_up and (
                    king.group == KITTY_GROUP
                    or king.position > 0
                    or (king_moves_alone and len(groups[king.group]) > 1
                        and (king.group != queen.group or king.position + 1 != queen.position))
                ):
                    return GameOutcome.CONTINUE

        kitty = groups[KITTY_GROUP]
        if kitty and kitty[0].spread and any(c.face_down for c in kitty):
            return GameOutcome.CONTINUE

        if kitty and not all(c.spread for c in kitty):
            # No moves left on the table: spread the kitty and play on
            for c in kitty:
                if not c.spread:
                    self.dealer.card_changed(c.with_changes(generation=generation, spread=True))
            return GameOutcome.CONTINUE

        return GameOutcome.WON if self._all_runs_complete(groups) else GameOutcome.LOST

    @staticmethod
    def _all_runs_complete(groups: List[List[Card]]) -> bool:
        for column in groups:
            if not column:
                continue
            suit = column[0].suit
            for c in column:
                if c.suit != suit or c.position != CARDS_PER_SUIT - 1 - c.rank:
                    return False
        return True

    def is_valid(self) -> Optional[str]:
        for index, group in enumerate(self.dealer.groups()):
            if any(c is None for c in group):
                return f"gap in {self.group_names[index]}"
        return None
