from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .cards import CARD_COUNT, HIGHLIGHT_MASK, Card
from .debug import trace
from .state import GameState

DEFAULT_DB_PATH = os.getenv('SCORPION_DB', 'data/scorpion.db')
MEMORY_DB = ':memory:'

_CARD_COLUMNS = "card_generation, card_value, card_group, card_position, card_flags"


def _ensure_db_dir(db_path: str) -> None:
    """Ensures the directory for the SQLite DB exists before connecting."""
    directory = os.path.dirname(db_path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)


def _resolve_db_path(db_path: str) -> str:
    """Resolves a potentially unwritable DB path to a writable one, creating the directory if needed."""
    if db_path == MEMORY_DB:
        return db_path
    try:
        _ensure_db_dir(db_path)
        return db_path
    except PermissionError:
        pass
    candidates = [
        os.getenv('SCORPION_DB_DIR'),
        os.path.join(os.getcwd(), 'data'),
        '/tmp',
    ]
    base = os.path.basename(db_path) or 'scorpion.db'
    for d in candidates:
        if not d:
            continue
        try:
            os.makedirs(d, exist_ok=True)
            return os.path.join(d, base)
        except OSError:
            continue
    return base


def _ensure_db(conn: sqlite3.Connection) -> None:
    """Ensures the card, state and highlight tables exist."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS card_table (
            card_generation INTEGER NOT NULL,
            card_value INTEGER NOT NULL,
            card_group INTEGER NOT NULL,
            card_position INTEGER NOT NULL,
            card_flags INTEGER NOT NULL,
            PRIMARY KEY (card_generation, card_value)
        )
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS card_value_generation ON card_table (card_value, card_generation)"
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS state_table (
            state_game TEXT PRIMARY KEY,
            state_generation INTEGER NOT NULL,
            state_undone INTEGER NOT NULL DEFAULT 0,
            state_options TEXT NOT NULL DEFAULT '{}'
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS highlight_table (
            highlight_value INTEGER PRIMARY KEY,
            highlight_code INTEGER NOT NULL
        )
        """
    )
    conn.commit()


def _row_to_card(row: Tuple[int, int, int, int, int]) -> Card:
    generation, value, group, position, flags = row
    return Card(int(generation), int(value), int(group), int(position), int(flags))


class CardDatabase:
    """SQLite tables behind the card history, the game state rows and the highlight overlay.

    Every statement runs on one connection owned by this object. Writes made
    inside ``transaction()`` are committed or rolled back together; outside of
    it each statement commits on its own.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        resolved = _resolve_db_path(db_path)
        self.path = resolved
        # isolation_level=None leaves BEGIN/COMMIT to transaction()
        self._conn = sqlite3.connect(resolved, isolation_level=None, check_same_thread=False)
        self._depth = 0
        _ensure_db(self._conn)
        trace('db', f"opened {resolved}")

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator['CardDatabase']:
        """Groups writes into one SQLite transaction. Nested calls join the outer one."""
        outer = self._depth == 0
        if outer:
            self._conn.execute("BEGIN IMMEDIATE")
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if outer:
                self._conn.execute("ROLLBACK")
                trace('db', "rolled back")
            raise
        self._depth -= 1
        if outer:
            self._conn.execute("COMMIT")

    # Card history

    def insert_cards(self, cards: Iterable[Card]) -> None:
        """Inserts card rows. Highlight bits are never stored in the history."""
        rows = [
            (c.generation, c.value, c.group, c.position, c.flags & ~HIGHLIGHT_MASK)
            for c in cards
        ]
        self._conn.executemany(
            f"INSERT INTO card_table ({_CARD_COLUMNS}) VALUES (?, ?, ?, ?, ?)", rows
        )

    def delete_all_cards(self) -> None:
        self._conn.execute("DELETE FROM card_table")

    def delete_cards_where_generation_at_least(self, generation: int) -> int:
        cur = self._conn.execute("DELETE FROM card_table WHERE card_generation >= ?", (generation,))
        return cur.rowcount

    def delete_cards_superseded_at_or_below(self, generation: int) -> int:
        """Deletes rows older than the latest row at or below generation for the same card."""
        cur = self._conn.execute(
            """
            DELETE FROM card_table
            WHERE card_generation < (
                SELECT MAX(c.card_generation) FROM card_table c
                WHERE c.card_value = card_table.card_value AND c.card_generation <= ?
            )
            """,
            (generation,),
        )
        return cur.rowcount

    def select_current_generation(self, generation: int) -> List[Card]:
        """For each card, the row with the greatest generation <= generation, ordered by value."""
        cur = self._conn.execute(
            """
            SELECT c.card_generation, c.card_value, c.card_group, c.card_position, c.card_flags
            FROM card_table c
            JOIN (
                SELECT card_value, MAX(card_generation) AS gen
                FROM card_table
                WHERE card_generation <= ?
                GROUP BY card_value
            ) latest ON c.card_value = latest.card_value AND c.card_generation = latest.gen
            ORDER BY c.card_value
            """,
            (generation,),
        )
        return [_row_to_card(r) for r in cur.fetchall()]

    def select_undo_delta(self, generation: int) -> List[Card]:
        """For each card with a row at generation, its newest row below generation."""
        cur = self._conn.execute(
            """
            SELECT c.card_generation, c.card_value, c.card_group, c.card_position, c.card_flags
            FROM card_table c
            JOIN (
                SELECT p.card_value, MAX(p.card_generation) AS gen
                FROM card_table p
                WHERE p.card_generation < ?
                  AND p.card_value IN (SELECT card_value FROM card_table WHERE card_generation = ?)
                GROUP BY p.card_value
            ) prior ON c.card_value = prior.card_value AND c.card_generation = prior.gen
            ORDER BY c.card_value
            """,
            (generation, generation),
        )
        return [_row_to_card(r) for r in cur.fetchall()]

    def select_redo_delta(self, generation: int) -> List[Card]:
        cur = self._conn.execute(
            f"SELECT {_CARD_COLUMNS} FROM card_table WHERE card_generation = ? ORDER BY card_value",
            (generation,),
        )
        return [_row_to_card(r) for r in cur.fetchall()]

    def select_min_generation(self) -> Optional[int]:
        """Lowest generation at which every card has a row, or None if some card has none."""
        cur = self._conn.execute(
            """
            SELECT COUNT(*), MAX(first_gen) FROM (
                SELECT card_value, MIN(card_generation) AS first_gen
                FROM card_table GROUP BY card_value
            )
            """
        )
        count, first = cur.fetchone()
        if count != CARD_COUNT or first is None:
            return None
        return int(first)

    def select_max_generation(self) -> Optional[int]:
        cur = self._conn.execute("SELECT MAX(card_generation) FROM card_table")
        row = cur.fetchone()
        return None if row is None or row[0] is None else int(row[0])

    # Game state

    def read_game_state(self, game: str) -> Optional[GameState]:
        cur = self._conn.execute(
            "SELECT state_generation, state_undone, state_options FROM state_table WHERE state_game = ?",
            (game,),
        )
        row = cur.fetchone()
        if not row:
            return None
        generation, undone, options = row
        return GameState(
            game=game,
            generation=int(generation),
            undone=bool(undone),
            options=GameState.options_from_json(options),
        )

    def write_game_state(self, state: GameState) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO state_table (state_game, state_generation, state_undone, state_options)
            VALUES (?, ?, ?, ?)
            """,
            (state.game, state.generation, int(state.undone), state.options_json()),
        )

    def update_game_state_pointer(self, game: str, generation: int, undone: bool) -> None:
        self._conn.execute(
            "UPDATE state_table SET state_generation = ?, state_undone = ? WHERE state_game = ?",
            (generation, int(undone), game),
        )

    # Highlights

    def upsert_highlights(self, highlights: Dict[int, int]) -> None:
        self._conn.executemany(
            "INSERT OR REPLACE INTO highlight_table (highlight_value, highlight_code) VALUES (?, ?)",
            [(value, code) for value, code in highlights.items()],
        )

    def delete_highlights(self, values: Iterable[int]) -> None:
        self._conn.executemany(
            "DELETE FROM highlight_table WHERE highlight_value = ?", [(v,) for v in values]
        )

    def clear_highlights(self) -> None:
        self._conn.execute("DELETE FROM highlight_table")

    def read_all_highlights(self) -> Dict[int, int]:
        cur = self._conn.execute("SELECT highlight_value, highlight_code FROM highlight_table")
        return {int(v): int(code) for v, code in cur.fetchall()}

    def replace_highlights(self, highlights: Dict[int, int]) -> None:
        with self.transaction():
            self.clear_highlights()
            self.upsert_highlights(highlights)
