from __future__ import annotations

import copy
import threading
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .cards import CARD_COUNT, HIGHLIGHT_NONE, Card
from .db import CardDatabase
from .deal import check_deal, shuffle_deck
from .debug import trace
from .errors import InconsistentHistory, ProgrammerError
from .history import GenerationStore
from .rules import GameOutcome, GameVariant, RuleEngine, make_engine
from .state import SESSION_ROW, GameState

T = TypeVar('T')
Listener = Callable[['Dealer'], None]


class Dealer:
    """Owns the live 52-card layout and funnels every change through the card history.

    Rule engines read the live cards and stage changes with card_changed()
    inside with_undo(). The transaction applies the staged cards, lets the
    engine settle the position, and commits exactly one new generation when
    anything other than highlights changed.
    """

    def __init__(self, db: CardDatabase, variant: Optional[GameVariant] = None) -> None:
        self.db = db
        self.history = GenerationStore(db)
        session = db.read_game_state(SESSION_ROW)
        session_options = dict(session.options) if session else {}
        if variant is None:
            variant = GameVariant(session_options.get('variant', GameVariant.SCORPION.value))
        self.variant = variant
        self.undo_card_flips: bool = bool(session_options.get('undo_card_flips', True))
        self.engine: RuleEngine = make_engine(variant, self)
        self.options: Dict[str, Any] = self.engine.default_options()
        stored = db.read_game_state(self.engine.name)
        if stored is not None:
            self.options.update(stored.options)
        self.generation = 0
        self.min_generation = 0
        self.max_generation = 0
        self.outcome = GameOutcome.CONTINUE
        self._cards: List[Optional[Card]] = [None] * CARD_COUNT
        self._highlights: Dict[int, int] = {}
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        # Set only while a transaction is open
        self._staged: Optional[Dict[int, Card]] = None
        self._pending_highlights: Dict[int, int] = {}

    # Reading the layout

    @property
    def cards(self) -> List[Card]:
        return list(self._cards)  # type: ignore[arg-type]

    @property
    def highlights(self) -> Dict[int, int]:
        return dict(self._highlights)

    @property
    def cheat_count(self) -> int:
        return int(self.options.get('cheat_count', 0))

    @property
    def in_transaction(self) -> bool:
        return self._staged is not None

    def find_card(self, value: int) -> Card:
        card = self._cards[value]
        if card is None:
            raise ProgrammerError('no game has been dealt')
        return card

    def groups(self) -> List[List[Optional[Card]]]:
        """Cards of every group ordered by position. Empty slots inside a group are None."""
        out: List[List[Optional[Card]]] = [[] for _ in range(self.engine.group_count)]
        for card in self._cards:
            if card is None:
                continue
            slots = out[card.group]
            while len(slots) <= card.position:
                slots.append(None)
            slots[card.position] = card
        return out

    def group(self, index: int) -> List[Optional[Card]]:
        return self.groups()[index]

    def can_undo(self) -> bool:
        return self.generation > self.min_generation

    def can_redo(self) -> bool:
        return self.generation < self.max_generation

    # Listeners

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # Session and game setup

    def _session_state(self) -> GameState:
        return GameState(
            game=SESSION_ROW,
            options={'variant': self.variant.value, 'undo_card_flips': self.undo_card_flips},
        )

    def _game_state(self) -> GameState:
        return GameState(
            game=self.engine.name,
            generation=self.generation,
            undone=self.generation < self.max_generation,
            options=self.options,
        )

    def _acquire(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise ProgrammerError('a transaction is already open on this dealer')

    def deal(self, seed: Optional[int] = None) -> int:
        """Shuffles and deals a new game, discarding all history. Returns generation 0."""
        self._acquire()
        try:
            self._deal(seed)
        finally:
            self._lock.release()
        self._notify()
        return 0

    def _deal(self, seed: Optional[int]) -> None:
        options = dict(self.options)
        options['cheat_count'] = 0
        self.engine.reset_deal_state(options)
        self.options = options
        self.engine.clear_cheats()
        self._cards = list(check_deal(self.engine.deal(shuffle_deck(seed))))
        self._highlights = {}
        self.generation = self.min_generation = self.max_generation = 0
        # Let the engine settle the opening position into generation 0
        self._staged = {}
        self._pending_highlights = {}
        try:
            self._settle(0)
        finally:
            self._staged = None
        with self.db.transaction():
            self.history.reset(self._cards, self._game_state())  # type: ignore[arg-type]
            self.db.write_game_state(self._session_state())
            self.db.clear_highlights()
        trace('dealer', f"dealt {self.engine.name} seed={seed} outcome={self.outcome.value}")

    def load(self) -> bool:
        """Resumes the stored game of the selected variant. Deals a new one when none is usable."""
        self._acquire()
        try:
            resumed = self._load()
            if not resumed:
                self._deal(None)
        finally:
            self._lock.release()
        self._notify()
        return resumed

    def _load(self) -> bool:
        session = self.db.read_game_state(SESSION_ROW)
        if session is None or session.options.get('variant') != self.variant.value:
            return False
        state = self.db.read_game_state(self.engine.name)
        if state is None:
            return False
        low = self.history.min_generation()
        high = self.history.max_generation()
        if low is None or high is None or not low <= state.generation <= high:
            trace('dealer', f"stored pointer {state.generation} outside [{low}, {high}]")
            return False
        cards = self.history.all_cards_at(state.generation)
        if cards is None:
            return False
        options = self.engine.default_options()
        options.update(state.options)
        self.options = options
        self._cards = list(cards)
        self.generation, self.min_generation, self.max_generation = state.generation, low, high
        try:
            self._validate()
        except InconsistentHistory as e:
            trace('dealer', f"stored game rejected: {e}")
            return False
        self._set_highlights({v: code for v, code in self.db.read_all_highlights().items() if code})
        self._check_outcome()
        return True

    def select_variant(self, variant: GameVariant, seed: Optional[int] = None) -> None:
        """Switches to another game variant, starting a new game of it."""
        self.engine = make_engine(variant, self)
        self.variant = variant
        stored = self.db.read_game_state(self.engine.name)
        self.options = self.engine.default_options()
        if stored is not None:
            self.options.update(stored.options)
        self.deal(seed)

    def set_options(self, **options: Any) -> None:
        """Updates variant options. Unknown names and out of range values raise ValueError."""
        known = self.engine.default_options()
        for name, value in options.items():
            if name not in known:
                raise ValueError(f"unknown option for {self.engine.name}: {name}")
            if isinstance(known[name], bool) != isinstance(value, bool) or not isinstance(value, (bool, int)):
                raise ValueError(f"bad value for {name}: {value!r}")
            limits = self.engine.option_limits.get(name)
            if limits is not None and not limits[0] <= value <= limits[1]:
                raise ValueError(f"{name} must be between {limits[0]} and {limits[1]}, got {value}")
        self.options.update(options)
        self.db.write_game_state(self._game_state())

    def set_undo_card_flips(self, allowed: bool) -> None:
        self.undo_card_flips = bool(allowed)
        self.db.write_game_state(self._session_state())

    # Interaction

    def click(self, value: int) -> bool:
        card = self.find_card(value)
        if not self.engine.is_clickable(card):
            return False
        return bool(self.engine.on_click(card))

    def double_click(self, value: int) -> bool:
        card = self.find_card(value)
        if not self.engine.is_clickable(card):
            return False
        return bool(self.engine.on_double_click(card))

    def card_changed(self, card: Card) -> int:
        """Stages a card inside the open transaction. Returns the number of staged cards."""
        if self._staged is None:
            raise ProgrammerError(f"{card.short_name} changed outside of a transaction")
        live = self.find_card(card.value)
        if live.same_layout(card):
            self._staged.pop(card.value, None)
            if card.highlight != HIGHLIGHT_NONE:
                self._pending_highlights[card.value] = card.highlight
        else:
            # Cards that move or turn over lose their highlight
            self._staged[card.value] = card.with_changes(highlight=HIGHLIGHT_NONE)
        return len(self._staged)

    def with_undo(self, action: Callable[[int], T]) -> T:
        """Runs action(generation) as one undoable step.

        The action stages changes with card_changed(). Afterwards the staged
        cards are applied and the engine settles the position; one generation
        is committed when any card changed. On failure nothing is committed,
        the live layout is rebuilt from the history and the error propagates.
        """
        self._acquire()
        try:
            result = self._transact(action)
        finally:
            self._lock.release()
        self._notify()
        return result

    def _transact(self, action: Callable[[int], T]) -> T:
        target = self.generation + 1
        before = list(self._cards)
        options_before = copy.deepcopy(self.options)
        highlights_before = dict(self._highlights)
        self._staged = {}
        self._pending_highlights = {}
        try:
            result = action(target)
            changed: Dict[int, Card] = {}
            for value, card in self._settle(target).items():
                if card.same_layout(before[value]):  # type: ignore[arg-type]
                    self._cards[value] = before[value]
                else:
                    changed[value] = card
            if changed:
                self._commit(target, changed, before)
            else:
                self.options = options_before
            self._set_highlights(self._pending_highlights)
            self.db.replace_highlights(self._highlights)
        except BaseException:
            self._recover(options_before, highlights_before)
            raise
        finally:
            self._staged = None
            self._pending_highlights = {}
        return result

    def _settle(self, target: int) -> Dict[int, Card]:
        """Applies staged cards and re-runs the game over check until it stops staging."""
        changed: Dict[int, Card] = {}
        while True:
            staged, self._staged = self._staged, {}
            for value, card in (staged or {}).items():
                self._cards[value] = card
                changed[value] = card
            self._validate()
            self.outcome = self.engine.check_game_over(target)
            if not self._staged:
                return changed

    def _commit(self, target: int, changed: Dict[int, Card], before: List[Optional[Card]]) -> None:
        if self.engine.cheated:
            self.options['cheat_count'] = self.cheat_count + 1
        self.generation = self.max_generation = target
        self.history.commit(list(changed.values()), target, self._game_state())
        flipped = any(before[v].face_down and c.face_up for v, c in changed.items())  # type: ignore[union-attr]
        if flipped and not self.undo_card_flips:
            self.history.clear_undo(target)
            self.min_generation = target
        self.engine.clear_cheats()
        trace('dealer', f"generation {target}: {', '.join(c.short_name for c in changed.values())}")

    def _recover(self, options: Dict[str, Any], highlights: Dict[int, int]) -> None:
        self.engine.cheated = False
        self.options = options
        state = self.db.read_game_state(self.engine.name)
        if state is not None:
            self.generation = state.generation
        low = self.history.min_generation()
        high = self.history.max_generation()
        cards = self.history.all_cards_at(self.generation)
        if cards is None or low is None or high is None:
            trace('dealer', f"generation {self.generation} unusable after failure, dealing again")
            self._staged = None
            self._deal(None)
            return
        self.min_generation, self.max_generation = low, high
        self._cards = list(cards)
        self._set_highlights(highlights)

    def _validate(self) -> None:
        seen = set()
        for card in self._cards:
            if card is None:
                raise InconsistentHistory('layout is missing cards')
            if card.group >= self.engine.group_count:
                raise InconsistentHistory(f"{card.short_name} is in unknown group {card.group}")
            slot = (card.group, card.position)
            if slot in seen:
                raise InconsistentHistory(f"two cards at {slot}")
            seen.add(slot)
        problem = self.engine.is_valid()
        if problem:
            raise InconsistentHistory(problem)

    def _set_highlights(self, highlights: Dict[int, int]) -> None:
        self._highlights = dict(highlights)
        cards = []
        for card in self._cards:
            code = self._highlights.get(card.value, HIGHLIGHT_NONE)  # type: ignore[union-attr]
            cards.append(card if card.highlight == code else card.with_changes(highlight=code))  # type: ignore[union-attr]
        self._cards = cards

    def _check_outcome(self) -> None:
        """Re-runs the game over check on the current layout without writing anything.

        Cards the check stages and option changes it makes are thrown away, so
        moving through the history never commits a generation.
        """
        options = copy.deepcopy(self.options)
        self._staged = {}
        try:
            self.outcome = self.engine.check_game_over(self.generation + 1)
        finally:
            self._staged = None
            self.options = options

    # Undo and redo

    def undo(self) -> Optional[List[Card]]:
        """Steps back one generation. Returns the applied cards, or None at the oldest generation."""
        self._acquire()
        try:
            if not self.can_undo():
                return None
            delta = self.history.undo_delta(self.generation)
            self._step(delta, self.generation - 1)
        finally:
            self._lock.release()
        self._notify()
        return delta

    def redo(self) -> Optional[List[Card]]:
        """Steps forward one generation. Returns the applied cards, or None when nothing was undone."""
        self._acquire()
        try:
            if not self.can_redo():
                return None
            delta = self.history.redo_delta(self.generation + 1)
            if not delta:
                return None
            self._step(delta, self.generation + 1)
        finally:
            self._lock.release()
        self._notify()
        return delta

    def _step(self, delta: List[Card], generation: int) -> None:
        for card in delta:
            self._cards[card.value] = card
        self.generation = generation
        self._highlights = {}
        try:
            self._validate()
        except InconsistentHistory:
            self._recover(self.options, {})
            raise
        self.db.update_game_state_pointer(self.engine.name, generation, generation < self.max_generation)
        self._set_highlights({})
        self.db.clear_highlights()
        self._check_outcome()
        trace('dealer', f"moved to generation {generation} of [{self.min_generation}, {self.max_generation}]")

    # Cheats

    def set_cheat(self, name: str, on: bool = True) -> None:
        if name not in self.engine.cheats:
            raise ValueError(f"unknown cheat for {self.engine.name}: {name}")
        self.engine.set_cheat(name, on)

    def close(self) -> None:
        self.db.close()
