from __future__ import annotations

import os


def debug_enabled() -> bool:
    return os.getenv('SCORPION_DEBUG', '0').lower() in ('1', 'true', 'yes', 'on')


def trace(tag: str, message: str) -> None:
    """Prints a tagged debug line when SCORPION_DEBUG is switched on."""
    if debug_enabled():
        print(f"[{tag}] {message}")
