from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict

SESSION_ROW = 'session'


@dataclass(frozen=True)
class GameState:
    """Persisted pointer into the card history plus the options of one game variant."""
    game: str
    generation: int = 0
    undone: bool = False  # True while generation is below the newest commit
    options: Dict[str, Any] = field(default_factory=dict)

    def options_json(self) -> str:
        return json.dumps(self.options, sort_keys=True)

    @staticmethod
    def options_from_json(text: str) -> Dict[str, Any]:
        if not text:
            return {}
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError('options must be a JSON object')
        return data

    def with_pointer(self, generation: int, undone: bool) -> 'GameState':
        return replace(self, generation=generation, undone=undone)

    def with_options(self, options: Dict[str, Any]) -> 'GameState':
        return replace(self, options=dict(options))
