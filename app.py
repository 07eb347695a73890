# app.py: local host for one puzzle session; solver runs in a worker thread
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request

from config import CFG
from progress import as_json as progress_json, reset as progress_reset
from puzzle_code import PuzzleCodeError
from session import InfeasibleGivensError, PuzzleSession, SolverBusyError, TileLockedError
from solver.search import TIMEBOX

log = logging.getLogger(__name__)

SESSION = PuzzleSession()
_WORKER: Optional[threading.Thread] = None

LAST_RESULT: Dict[str, Any] = {
    "mode": "",
    "ok": None,
    "message": "",
    "result": None,
}

app = Flask(__name__)


@app.after_request
def _no_cache_progress(resp):
    if request.path in ("/progress3", "/api/state"):
        resp.headers["Cache-Control"] = "no-store, max-age=0"
        resp.headers["Pragma"] = "no-cache"
        resp.headers["Expires"] = "0"
    return resp


def _error(message: str, status: int):
    return jsonify({"ok": False, "error": message}), status


@app.errorhandler(PuzzleCodeError)
def _bad_code(e):
    return _error(f"Puzzle error: {e}", 400)


@app.errorhandler(InfeasibleGivensError)
def _bad_givens(e):
    return _error(f"Puzzle error: {e}", 400)


@app.errorhandler(TileLockedError)
def _locked(e):
    return _error(str(e), 400)


@app.errorhandler(SolverBusyError)
def _busy(e):
    return _error(str(e), 409)


@app.errorhandler(KeyError)
def _unknown(e):
    return _error(str(e.args[0]) if e.args else "unknown key", 404)


def _payload() -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        merged.update(data)
    for k, v in request.form.items():
        merged.setdefault(k, v)
    for k, v in request.args.items():
        merged.setdefault(k, v)
    return merged


def _int_field(p: Dict[str, Any], key: str) -> int:
    try:
        return int(p[key])
    except (KeyError, TypeError, ValueError):
        raise ValueError(f"missing or invalid '{key}'")


def _xy(p: Dict[str, Any]) -> Tuple[int, int, int]:
    return _int_field(p, "tileId"), _int_field(p, "x"), _int_field(p, "y")


@app.errorhandler(ValueError)
def _bad_value(e):
    return _error(str(e), 400)


def _state_response(**extra):
    body = {"ok": True, "state": SESSION.status()}
    body.update(extra)
    return jsonify(body)


# ---------- board state ----------

@app.route("/api/state")
def state():
    return _state_response(last=LAST_RESULT)


@app.route("/api/givens", methods=["POST"])
def givens():
    p = _payload()
    code = p.get("code")
    if code is None:
        for key in CFG.PUZZLE_QUERY_KEYS:
            if p.get(key):
                code = p[key]
                break
    if code is not None and not isinstance(code, str):
        raise ValueError("'code' must be a puzzle string")
    count = SESSION.apply_givens(code or "")
    return _state_response(message=f"Puzzle mode: {count} givens", givens=count)


@app.route("/api/move", methods=["POST"])
def move():
    tile_id, x, y = _xy(_payload())
    moved = SESSION.move(tile_id, x, y)
    return _state_response(moved=moved)


@app.route("/api/take-back", methods=["POST"])
def take_back():
    removed = SESSION.take_back(_int_field(_payload(), "tileId"))
    return _state_response(removed=removed)


@app.route("/api/auto-place", methods=["POST"])
def auto_place():
    tile = SESSION.auto_place_random_fit(_int_field(_payload(), "size"))
    return _state_response(tileId=tile.id if tile else None)


@app.route("/api/undo", methods=["POST"])
def undo():
    return _state_response(changed=SESSION.undo())


@app.route("/api/redo", methods=["POST"])
def redo():
    return _state_response(changed=SESSION.redo())


@app.route("/api/clear", methods=["POST"])
def clear():
    batch = SESSION.clear_placed()
    return _state_response(cleared=len(batch) if batch else 0)


@app.route("/api/reset", methods=["POST"])
def reset():
    SESSION.reset()
    return _state_response()


@app.route("/api/new", methods=["POST"])
def new_puzzle():
    SESSION.hard_reset()
    progress_reset()
    return _state_response()


@app.route("/api/creator", methods=["POST"])
def creator():
    SESSION.creator_mode = True
    return _state_response(message="Creator Mode enabled")


@app.route("/api/unfix", methods=["POST"])
def unfix():
    changed = SESSION.unfix_givens()
    msg = "Givens converted to normal pieces" if changed else ""
    return _state_response(changed=changed, message=msg)


@app.route("/api/share")
def share():
    return jsonify({"ok": True, "code": SESSION.share_code(), "givens": SESSION.givens_code()})


# ---------- solver runs ----------

def _run_autofill(token, engine: Optional[str]) -> None:
    try:
        out = SESSION.auto_fill(engine=engine, token=token, track_progress=True)
    except Exception as e:
        log.exception("auto-fill crashed")
        LAST_RESULT.update({"ok": False, "message": f"Auto-Fill error: {type(e).__name__}: {e}"})
        return
    if out.ok:
        msg = "Auto-Fill completed."
    elif out.result.cancelled:
        msg = "Auto-Fill cancelled."
    elif out.reason == TIMEBOX:
        msg = "Auto-Fill timed out."
    else:
        msg = "No solution found."
    LAST_RESULT.update({"ok": out.ok, "message": msg, "result": out.as_dict()})


def _run_check(token, limit: int, engine: Optional[str]) -> None:
    try:
        res = SESSION.check(limit, engine=engine, token=token, track_progress=True)
    except Exception as e:
        log.exception("check crashed")
        LAST_RESULT.update({"ok": False, "message": f"Check: error: {type(e).__name__}: {e}"})
        return
    LAST_RESULT.update({"ok": not res.cancelled, "message": f"Check: {res.verdict}", "result": res.as_dict()})


def _start_worker(mode: str, target, *args) -> None:
    global _WORKER
    # Reserving here makes the run cancellable (and exclusive) before the thread exists.
    token = SESSION.reserve()
    LAST_RESULT.update({"mode": mode, "ok": None, "message": "", "result": None})
    worker = threading.Thread(target=target, args=(token, *args), daemon=True)
    try:
        worker.start()
    except RuntimeError:
        SESSION.release()
        raise
    _WORKER = worker


@app.route("/api/autofill", methods=["POST"])
def autofill():
    _start_worker("autofill", _run_autofill, _payload().get("engine"))
    return jsonify({"ok": True, "started": True}), 202


@app.route("/api/check", methods=["POST"])
def check():
    p = _payload()
    limit = int(p.get("limit") or CFG.SOLUTION_LIMIT)
    _start_worker("check", _run_check, limit, p.get("engine"))
    return jsonify({"ok": True, "started": True}), 202


@app.route("/api/cancel", methods=["POST"])
def cancel():
    requested = SESSION.cancel()
    return jsonify({"ok": True, "cancelling": requested})


@app.route("/progress3")
def progress3():
    return jsonify(progress_json())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    app.run(debug=False)
