from __future__ import annotations

import argparse
from typing import Optional

from .cards import parse_card_name
from .db import DEFAULT_DB_PATH, CardDatabase
from .dealer import Dealer
from .layout import pretty
from .rules import GameOutcome, GameVariant

HELP = """Commands:
  c CARD        click a card (name like 7H or 10D, or group,position such as 3,5)
  d CARD        double click a card
  u / r         undo / redo
  n [SEED]      deal a new game
  cheat NAME    arm a one-shot cheat
  opt NAME=VAL  change a variant option (true/false or a number)
  flips on|off  allow or forbid undoing card flips
  q             quit"""


def _find_value(dealer: Dealer, text: str) -> int:
    if ',' in text:
        g_s, p_s = text.split(',', 1)
        group, position = int(g_s), int(p_s)
        if not 0 <= group < dealer.engine.group_count:
            raise ValueError(f'no group {group}')
        slots = dealer.group(group)
        card = slots[position] if 0 <= position < len(slots) else None
        if card is None:
            raise ValueError(f'no card at {group},{position}')
        return card.value
    return parse_card_name(text)


def _parse_option(text: str):
    name, _, raw = text.partition('=')
    raw = raw.strip().lower()
    if raw in ('true', 'on', 'yes'):
        value = True
    elif raw in ('false', 'off', 'no'):
        value = False
    else:
        value = int(raw)
    return name.strip(), value


def run_command(dealer: Dealer, line: str) -> Optional[str]:
    """Runs one command line against the dealer. Returns a message to print, if any."""
    parts = line.split()
    if not parts:
        return None
    cmd, args = parts[0].lower(), parts[1:]
    if cmd in ('c', 'click', 'd', 'double'):
        if not args:
            return 'Which card?'
        value = _find_value(dealer, args[0])
        moved = dealer.click(value) if cmd in ('c', 'click') else dealer.double_click(value)
        return None if moved else 'Nothing moved.'
    if cmd in ('u', 'undo'):
        return None if dealer.undo() is not None else 'Nothing to undo.'
    if cmd in ('r', 'redo'):
        return None if dealer.redo() is not None else 'Nothing to redo.'
    if cmd in ('n', 'new'):
        dealer.deal(int(args[0]) if args else None)
        return None
    if cmd == 'cheat':
        if not args:
            return 'Cheats: ' + ', '.join(dealer.engine.cheats)
        dealer.set_cheat(args[0])
        return f'{args[0]} armed.'
    if cmd == 'opt':
        if not args:
            return ', '.join(f'{k}={v}' for k, v in dealer.options.items())
        name, value = _parse_option(args[0])
        dealer.set_options(**{name: value})
        return f'{name} = {value}'
    if cmd == 'flips':
        dealer.set_undo_card_flips(bool(args) and args[0].lower() in ('on', 'true', 'yes'))
        return 'Card flips can be undone.' if dealer.undo_card_flips else 'Card flips are final.'
    if cmd in ('h', 'help', '?'):
        return HELP
    return f'Unknown command: {cmd}'


def main() -> None:
    parser = argparse.ArgumentParser(description='Scorpion and Pyramid solitaire in the terminal')
    parser.add_argument('--game', choices=[v.value for v in GameVariant], default=None,
                        help='Game variant; defaults to the last one played')
    parser.add_argument('--db', default=DEFAULT_DB_PATH, help='SQLite DB file path')
    parser.add_argument('--seed', type=int, default=None, help='RNG seed for deal')
    parser.add_argument('--new', action='store_true', help='Deal a new game instead of resuming')
    args = parser.parse_args()

    db = CardDatabase(args.db)
    variant = GameVariant(args.game) if args.game else None
    dealer = Dealer(db, variant)
    try:
        if args.new or args.seed is not None:
            dealer.deal(args.seed)
        elif dealer.load():
            print('Resumed saved game.')
        print(pretty(dealer))
        print("Type 'h' for help.")
        while True:
            try:
                line = input('> ').strip()
            except EOFError:
                break
            if line.lower() in ('q', 'quit', 'exit'):
                break
            try:
                message = run_command(dealer, line)
            except ValueError as e:
                print(f'error: {e}')
                continue
            if message:
                print(message)
            print(pretty(dealer))
            if dealer.outcome is GameOutcome.WON:
                cheats = dealer.cheat_count
                print('You won!' if not cheats else f'You won, with {cheats} cheat(s).')
            elif dealer.outcome is GameOutcome.LOST:
                print('No more moves. Game over.')
    finally:
        dealer.close()


if __name__ == '__main__':
    main()
