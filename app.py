from __future__ import annotations

import os
import threading
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request

from scorpion_core.cards import CARD_COUNT, parse_card_name
from scorpion_core.db import CardDatabase
from scorpion_core.dealer import Dealer
from scorpion_core.debug import trace
from scorpion_core.errors import ProgrammerError
from scorpion_core.layout import dealer_to_json
from scorpion_core.rules import GameVariant

DEFAULT_DB = os.getenv("SCORPION_DB", "data/scorpion.db")

app = Flask(__name__)

# One dealer per app; requests on it are serialized
_session_lock = threading.Lock()


def _session() -> Dealer:
    dealer = app.extensions.get("scorpion_dealer")
    if dealer is None:
        dealer = Dealer(CardDatabase(app.config.get("SCORPION_DB", DEFAULT_DB)))
        dealer.load()
        app.extensions["scorpion_dealer"] = dealer
    return dealer


def reset_session() -> None:
    """Closes the current dealer so the next request opens the database again."""
    with _session_lock:
        dealer = app.extensions.pop("scorpion_dealer", None)
        if dealer is not None:
            dealer.close()


def _state_response(dealer: Dealer, **extra: Any) -> Any:
    body: Dict[str, Any] = {"ok": True, "state": dealer_to_json(dealer)}
    body.update(extra)
    return jsonify(body)


def _error(message: str, status: int = 400) -> Tuple[Any, int]:
    return jsonify({"ok": False, "error": message}), status


def _json_body() -> Dict[str, Any]:
    body = request.get_json(force=True, silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValueError("request body must be a JSON object")
    return body


def _card_from_body(body: Dict[str, Any]) -> int:
    card = body.get("card")
    if isinstance(card, bool) or card is None:
        raise ValueError("card required")
    if isinstance(card, int):
        if not 0 <= card < CARD_COUNT:
            raise ValueError(f"card value out of range: {card}")
        return card
    return parse_card_name(str(card))


def _seed_from_body(body: Dict[str, Any]) -> Optional[int]:
    seed = body.get("seed")
    if seed is None:
        return None
    return int(seed)


@app.get("/api/state")
def api_state() -> Any:
    with _session_lock:
        return _state_response(_session())


@app.post("/api/new")
def api_new() -> Any:
    try:
        body = _json_body()
        seed = _seed_from_body(body)
        variant = GameVariant.parse(str(body["variant"])) if body.get("variant") else None
        options = body.get("options") or {}
        if not isinstance(options, dict):
            raise ValueError("options must be an object")
    except (TypeError, ValueError) as e:
        return _error(str(e))
    with _session_lock:
        dealer = _session()
        try:
            if variant is not None and variant is not dealer.variant:
                dealer.select_variant(variant)
            if options:
                dealer.set_options(**options)
        except ValueError as e:
            return _error(str(e))
        dealer.deal(seed)
        return _state_response(dealer)


@app.post("/api/click")
def api_click() -> Any:
    return _interact(double=False)


@app.post("/api/double_click")
def api_double_click() -> Any:
    return _interact(double=True)


def _interact(double: bool) -> Any:
    try:
        body = _json_body()
        value = _card_from_body(body)
    except ValueError as e:
        return _error(str(e))
    with _session_lock:
        dealer = _session()
        try:
            moved = dealer.double_click(value) if double else dealer.click(value)
        except ProgrammerError as e:
            trace('app', f"rejected interaction on card {value}: {e}")
            return _error(str(e), 500)
        return _state_response(dealer, moved=moved)


@app.post("/api/undo")
def api_undo() -> Any:
    with _session_lock:
        dealer = _session()
        delta = dealer.undo()
        return _state_response(dealer, changed=delta is not None)


@app.post("/api/redo")
def api_redo() -> Any:
    with _session_lock:
        dealer = _session()
        delta = dealer.redo()
        return _state_response(dealer, changed=delta is not None)


@app.post("/api/options")
def api_options() -> Any:
    try:
        body = _json_body()
    except ValueError as e:
        return _error(str(e))
    options = body.get("options") or {}
    if not isinstance(options, dict):
        return _error("options must be an object")
    with _session_lock:
        dealer = _session()
        try:
            if "undoCardFlips" in body:
                dealer.set_undo_card_flips(bool(body["undoCardFlips"]))
            if options:
                dealer.set_options(**options)
        except ValueError as e:
            return _error(str(e))
        return _state_response(dealer)


@app.post("/api/cheat")
def api_cheat() -> Any:
    try:
        body = _json_body()
    except ValueError as e:
        return _error(str(e))
    name = body.get("name")
    if not isinstance(name, str):
        return _error("name required")
    with _session_lock:
        dealer = _session()
        try:
            dealer.set_cheat(name, bool(body.get("on", True)))
        except ValueError as e:
            return _error(str(e))
        return _state_response(dealer)


if __name__ == "__main__":
    debug = os.getenv("FLASK_DEBUG", "0").lower() in ("1", "true", "yes", "on")
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=debug)
