from __future__ import annotations


class ProgrammerError(Exception):
    """Raised when the engine is driven in a way that can only be a caller bug.

    Examples: committing a card tagged with the wrong generation, opening a
    transaction inside another one, staging a card outside a transaction or
    moving a run onto itself.
    """


class InconsistentHistory(Exception):
    """Raised when the live layout no longer forms a valid deal."""
