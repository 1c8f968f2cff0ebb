#!/usr/bin/env python3
"""
Print the stored card history of a scorpion.db file.

- Shows the game state rows (pointer, undone marker, options).
- Lists every generation with the cards written at it.
- With --check, rebuilds each generation and reports the ones that do not resolve all 52 cards.

Usage:
  python tools/dump_history.py data/scorpion.db
  python tools/dump_history.py data/scorpion.db --check
"""
from __future__ import annotations

import argparse
import json
import os
import sys

HERE = os.path.dirname(os.path.abspath(__file__))
ROOT = os.path.dirname(HERE)
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from scorpion_core.db import CardDatabase  # noqa: E402
from scorpion_core.history import GenerationStore  # noqa: E402
from scorpion_core.state import SESSION_ROW  # noqa: E402


def dump(db_path: str, check: bool) -> int:
    db = CardDatabase(db_path)
    try:
        history = GenerationStore(db)
        for game in (SESSION_ROW, 'scorpion', 'pyramid'):
            state = db.read_game_state(game)
            if state is None:
                continue
            print(f"{game}: generation={state.generation} undone={state.undone} "
                  f"options={json.dumps(state.options, sort_keys=True)}")
        low = history.min_generation()
        high = db.select_max_generation()
        print(f"history window: [{low}, {high}]")
        if high is None:
            return 0
        bad = 0
        for generation in range(high + 1):
            rows = history.redo_delta(generation)
            if rows:
                names = ' '.join(f"{c.short_name}@{c.group},{c.position}{'v' if c.face_down else ''}"
                                 for c in rows)
                print(f"  gen {generation:4d} ({len(rows):2d}): {names}")
            if check and low is not None and generation >= low and history.all_cards_at(generation) is None:
                print(f"  gen {generation:4d}: does not resolve all cards")
                bad += 1
        return 1 if bad else 0
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description='Dump the card history stored in a Scorpion database')
    parser.add_argument('db', help='SQLite DB file path')
    parser.add_argument('--check', action='store_true', help='Verify every generation in the window resolves')
    args = parser.parse_args()
    if not os.path.isfile(args.db):
        print(f"error: no such file: {args.db}")
        sys.exit(2)
    sys.exit(dump(args.db, args.check))


if __name__ == '__main__':
    main()
