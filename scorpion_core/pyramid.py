from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .cards import CARD_COUNT, CARDS_PER_SUIT, KING, QUEEN, Card, calc_flags
from .rules import GameOutcome

if TYPE_CHECKING:
    from .dealer import Dealer

ROW_COUNT = 7
STOCK_GROUP = ROW_COUNT
WASTE_GROUP = STOCK_GROUP + 1
DISCARD_GROUP = WASTE_GROUP + 1
GROUP_COUNT = DISCARD_GROUP + 1
PYRAMID_CARDS = ROW_COUNT * (ROW_COUNT + 1) // 2

HIGHLIGHT_SELECTED = 1
HIGHLIGHT_MATCH = 2

CHEAT_PLAY_ON_COVERED = 'cheat_play_on_covered'

# Zero based ranks of a pair add up to the rank of a queen (Ace + Queen, 2 + Jack, ...)
PAIR_SUM = QUEEN

Groups = List[List[Optional[Card]]]


def _cards(slots: Iterable[Optional[Card]]) -> List[Card]:
    return [c for c in slots if c is not None]


def _at(groups: Groups, group: int, position: int) -> Optional[Card]:
    if group < 0 or position < 0 or group >= len(groups):
        return None
    slots = groups[group]
    return slots[position] if position < len(slots) else None


def _pairs(a: Card, b: Card) -> bool:
    return a.rank + b.rank == PAIR_SUM


class PyramidRules:
    """Pyramid: remove exposed cards in pairs whose ranks add to 13. Kings go alone.

    Rows 0-6 hold the pyramid and keep fixed positions, so a row can have
    holes. The stock, waste and discard piles are packed from position 0.
    """
    name = 'pyramid'
    group_count = GROUP_COUNT
    group_names = tuple(f'row {i + 1}' for i in range(ROW_COUNT)) + ('stock', 'waste', 'discard')
    cheats = (CHEAT_PLAY_ON_COVERED,)
    option_limits = {'stock_pass_count': (0, 10)}

    def __init__(self, dealer: 'Dealer') -> None:
        self.dealer = dealer
        self.cheated = False
        self._cheat_play_on_covered = False
        self._recycled_at: Optional[int] = None

    def default_options(self) -> Dict[str, Any]:
        return {
            'stock_pass_count': 2,
            'clear_pyramid_only': True,
            'play_partial_cover': True,
            'play_from_stock': True,
            'show_highlights': True,
        }

    def reset_deal_state(self, options: Dict[str, Any]) -> None:
        # Generations at which the waste went back to the stock
        options['recycles'] = []
        self._recycled_at = None

    def _option(self, name: str) -> Any:
        return self.dealer.options.get(name, self.default_options()[name])

    def set_cheat(self, name: str, on: bool = True) -> None:
        self._cheat_play_on_covered = on

    def clear_cheats(self) -> None:
        self._cheat_play_on_covered = False
        self.cheated = False

    def deal(self, shuffled: Sequence[int]) -> List[Card]:
        from_stock = bool(self._option('play_from_stock'))
        cards: List[Card] = []
        i = 0
        for row in range(ROW_COUNT):
            for position in range(row + 1):
                cards.append(Card(0, shuffled[i], row, position, calc_flags(spread=True)))
                i += 1
        stock = shuffled[PYRAMID_CARDS:-1]
        for position, value in enumerate(stock):
            top = position == len(stock) - 1
            cards.append(Card(0, value, STOCK_GROUP, position,
                              calc_flags(face_down=not (from_stock and top), spread=top)))
        cards.append(Card(0, shuffled[-1], WASTE_GROUP, 0, calc_flags(spread=True)))
        return cards

    # Exposure and matching

    def _is_top(self, card: Card, groups: Groups) -> bool:
        return card.position == len(_cards(groups[card.group])) - 1

    def _exposed(self, card: Card, groups: Groups) -> bool:
        """A card can be played: nothing covers it, or it tops the stock or waste face up."""
        if card.group == ROW_COUNT - 1:
            return True
        if card.group in (STOCK_GROUP, WASTE_GROUP):
            return card.face_up and self._is_top(card, groups)
        if card.group >= ROW_COUNT:
            return False
        return (_at(groups, card.group + 1, card.position) is None
                and _at(groups, card.group + 1, card.position + 1) is None)

    def _matches(self, card: Card) -> List[Card]:
        if card.rank == KING:
            return []
        rank = PAIR_SUM - card.rank
        return [self.dealer.find_card(v) for v in range(rank, CARD_COUNT, CARDS_PER_SUIT)]

    def _partial_cover(self, play: Card, covered: Card, groups: Groups) -> bool:
        """True when play is the last card still covering covered."""
        if play.group == WASTE_GROUP and covered.group == WASTE_GROUP:
            return covered.position + 1 == play.position
        if play.group >= ROW_COUNT or covered.group >= ROW_COUNT:
            return False
        if covered.group + 1 != play.group:
            return False
        if covered.position == play.position:
            return _at(groups, play.group, play.position + 1) is None
        if covered.position + 1 == play.position:
            return _at(groups, play.group, play.position - 1) is None
        return False

    def _pair_playable(self, a: Card, b: Card, groups: Groups) -> Tuple[bool, bool]:
        """Whether a and b can go to the discard together, and whether that needs the cheat."""
        a_ok = self._exposed(a, groups)
        b_ok = self._exposed(b, groups)
        if a_ok and b_ok:
            return True, False
        if not a_ok and not b_ok:
            return False, False
        play, covered = (a, b) if a_ok else (b, a)
        if self._option('play_partial_cover') and self._partial_cover(play, covered, groups):
            return True, False
        if self._cheat_play_on_covered:
            return True, True
        return False, False

    def _find_playable(self, card: Card, groups: Groups) -> Optional[Card]:
        """The card that goes to the discard with card: itself for a king, else the selected match."""
        if card.rank == KING:
            return card if self._exposed(card, groups) else None
        for match in self._matches(card):
            if match.highlight != HIGHLIGHT_SELECTED:
                continue
            ok, cheated = self._pair_playable(card, match, groups)
            if not ok:
                return None
            if cheated:
                self.cheated = True
            return match
        return None

    # Interaction

    def is_clickable(self, card: Card) -> bool:
        if card.group == DISCARD_GROUP:
            return False
        if card.group == STOCK_GROUP:
            return self._is_top(card, self.dealer.groups())
        return True

    def on_click(self, card: Card) -> bool:
        return self.dealer.with_undo(lambda generation: self._click(card, generation))

    def on_double_click(self, card: Card) -> bool:
        return self.dealer.with_undo(lambda generation: self._double_click(card, generation))

    def _click(self, card: Card, generation: int) -> bool:
        self._recycled_at = None
        groups = self.dealer.groups()
        if card.face_down:
            if card.group != STOCK_GROUP or not self._is_top(card, groups):
                return False
            if self._option('play_from_stock'):
                self.dealer.card_changed(card.with_changes(generation=generation, face_down=False, spread=True))
            else:
                self._to_waste(card, generation, groups)
            return True

        partner = self._find_playable(card, groups)
        if partner is not None:
            # The selected card goes to the discard first
            played = [card] if partner.value == card.value else [partner, card]
            self._play_cards(played, DISCARD_GROUP, generation, groups)
            return True

        if card.highlight != HIGHLIGHT_SELECTED:
            self.dealer.card_changed(card.with_changes(highlight=HIGHLIGHT_SELECTED))
            for match in self._matches(card):
                if match.face_up and match.group != DISCARD_GROUP:
                    self.dealer.card_changed(match.with_changes(highlight=HIGHLIGHT_MATCH))
        return False

    def _double_click(self, card: Card, generation: int) -> bool:
        self._recycled_at = None
        groups = self.dealer.groups()
        if card.group == STOCK_GROUP:
            if card.face_up and self._is_top(card, groups):
                self._to_waste(card, generation, groups)
                return True
            return False
        if card.group == WASTE_GROUP:
            return self._recycle(generation, groups)
        return False

    def _to_waste(self, card: Card, generation: int, groups: Groups) -> None:
        waste = _cards(groups[WASTE_GROUP])
        if waste:
            self.dealer.card_changed(waste[-1].with_changes(generation=generation, spread=False))
        self._play_cards([card], WASTE_GROUP, generation, groups)

    def _play_cards(self, cards: List[Card], group: int, generation: int, groups: Groups) -> None:
        """Moves cards in order onto the end of group, then repacks the piles they left."""
        position = len(_cards(groups[group]))
        played = {c.value for c in cards}
        for c in cards:
            self.dealer.card_changed(c.with_changes(
                generation=generation, group=group, position=position,
                face_down=False, spread=group == WASTE_GROUP))
            position += 1
        for pile in (STOCK_GROUP, WASTE_GROUP):
            if pile == group or not any(c.group == pile for c in cards):
                continue
            remaining = [c for c in _cards(groups[pile]) if c.value not in played]
            for index, c in enumerate(remaining):
                top = index == len(remaining) - 1
                spread = c.spread or (top and pile == WASTE_GROUP)
                if c.position != index or c.spread != spread:
                    self.dealer.card_changed(c.with_changes(generation=generation, position=index, spread=spread))

    def _recycles_below(self, generation: int) -> List[int]:
        return [g for g in self.dealer.options.get('recycles', []) if g < generation]

    def _recycle(self, generation: int, groups: Groups) -> bool:
        waste = _cards(groups[WASTE_GROUP])
        if not waste or _cards(groups[STOCK_GROUP]):
            return False
        if len(self._recycles_below(generation)) >= int(self._option('stock_pass_count')):
            return False
        last = len(waste) - 1
        for c in waste:
            self.dealer.card_changed(c.with_changes(
                generation=generation, group=STOCK_GROUP, position=last - c.position,
                face_down=True, spread=False))
        self._recycled_at = generation
        return True

    # Game over

    def check_game_over(self, generation: int) -> GameOutcome:
        recycles = self._recycles_below(generation)
        if self._recycled_at == generation:
            # Counted once; this check never stages cards, so it runs once per transaction
            recycles.append(generation)
            self._recycled_at = None
        self.dealer.options['recycles'] = recycles

        groups = self.dealer.groups()
        rows_clear = not any(_cards(groups[row]) for row in range(ROW_COUNT))
        if rows_clear and self._option('clear_pyramid_only'):
            return GameOutcome.WON
        if len(_cards(groups[DISCARD_GROUP])) == CARD_COUNT:
            return GameOutcome.WON
        stock = _cards(groups[STOCK_GROUP])
        if stock:
            return GameOutcome.CONTINUE

        waste = _cards(groups[WASTE_GROUP])
        playable = [c for row in range(ROW_COUNT) for c in _cards(groups[row]) if self._exposed(c, groups)]
        if waste:
            playable.append(waste[-1])
        if any(c.rank == KING for c in playable):
            return GameOutcome.CONTINUE
        ranks = {c.rank for c in playable}
        if any(PAIR_SUM - r in ranks for r in ranks):
            return GameOutcome.CONTINUE

        if self._option('play_partial_cover'):
            for play in playable:
                if play.group == WASTE_GROUP:
                    covered_slots = [(WASTE_GROUP, play.position - 1)]
                else:
                    covered_slots = [(play.group - 1, play.position), (play.group - 1, play.position - 1)]
                for group, position in covered_slots:
                    covered = _at(groups, group, position)
                    if covered is not None and _pairs(play, covered) and self._partial_cover(play, covered, groups):
                        return GameOutcome.CONTINUE

        if len(waste) > 1 and len(recycles) < int(self._option('stock_pass_count')):
            return GameOutcome.CONTINUE
        return GameOutcome.LOST

    def is_valid(self) -> Optional[str]:
        groups = self.dealer.groups()
        for pile in (STOCK_GROUP, WASTE_GROUP, DISCARD_GROUP):
            if any(c is None for c in groups[pile]):
                return f"{self.group_names[pile]} has a gap"
        for row in range(ROW_COUNT):
            if len(groups[row]) > row + 1:
                return f"{self.group_names[row]} has too many cards"
        return None
