from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .cards import HIGHLIGHT_NONE, Card

if TYPE_CHECKING:
    from .dealer import Dealer

# Marker printed after a card for each highlight code
HIGHLIGHT_MARKS = {1: '*', 2: '<', 3: '>'}


def card_label(card: Optional[Card], show_highlights: bool = True) -> str:
    """Right aligned label: the card name, '##' when face down, '..' for an empty slot."""
    if card is None:
        return '  ..'
    text = '##' if card.face_down else card.short_name
    mark = ''
    if card.highlight != HIGHLIGHT_NONE and (show_highlights or card.highlight == 1):
        mark = HIGHLIGHT_MARKS.get(card.highlight, '+')
    return (text + mark).rjust(4)


def pretty(dealer: 'Dealer') -> str:
    """Generates a human-readable listing of every group."""
    show = bool(dealer.options.get('show_highlights', True))
    names = dealer.engine.group_names
    width = max(len(n) for n in names)
    lines: List[str] = []
    for index, slots in enumerate(dealer.groups()):
        labels = ''.join(card_label(c, show) for c in slots)
        lines.append(f"{names[index].rjust(width)}:{labels}")
    lines.append(
        f"generation {dealer.generation} [{dealer.min_generation}..{dealer.max_generation}]"
        f"  {dealer.outcome.value}"
    )
    return "\n".join(lines)


def card_to_json(card: Card) -> Dict[str, Any]:
    return {
        "value": card.value,
        "name": card.short_name,
        "group": card.group,
        "position": card.position,
        "faceDown": card.face_down,
        "spread": card.spread,
        "highlight": card.highlight,
        "generation": card.generation,
    }


def dealer_to_json(dealer: 'Dealer') -> Dict[str, Any]:
    """Everything a front end needs to draw the table."""
    show = bool(dealer.options.get('show_highlights', True))
    highlights = {
        str(v): code for v, code in dealer.highlights.items() if show or code == 1
    }
    return {
        "game": dealer.engine.name,
        "groups": [
            {
                "name": dealer.engine.group_names[i],
                "cards": [card_to_json(c) if c is not None else None for c in slots],
            }
            for i, slots in enumerate(dealer.groups())
        ],
        "highlights": highlights,
        "generation": dealer.generation,
        "minGeneration": dealer.min_generation,
        "maxGeneration": dealer.max_generation,
        "canUndo": dealer.can_undo(),
        "canRedo": dealer.can_redo(),
        "outcome": dealer.outcome.value,
        "cheatCount": dealer.cheat_count,
        "options": {k: v for k, v in dealer.options.items() if k in dealer.engine.default_options()},
        "undoCardFlips": dealer.undo_card_flips,
    }
