"""Live status of the current auto-fill / check run, shared with the host.

The state lives in one dict guarded by ``LOCK`` and is mirrored to a JSON
file so a host in another process can poll it. Each finished run also gets a
line in ``logs/solver_runs.log``.
"""
from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

LOCK = threading.Lock()

_HERE = Path(__file__).resolve().parent
_MODE_STATUS = {"autofill": "Solving", "check": "Checking"}


class _StateFile:
    """Atomic JSON mirror of the progress dict; remembers the mtime it last saw."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.tmp = path.with_name(path.name + ".tmp")
        self.seen_mtime = 0.0

    def write(self, state: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.tmp.write_text(json.dumps(state, separators=(",", ":")), encoding="utf-8")
            os.replace(self.tmp, self.path)
            self.seen_mtime = self.path.stat().st_mtime
        except (OSError, TypeError, ValueError):
            # a broken mirror must not stop the search
            pass

    def read_newer(self, force: bool = False) -> Optional[Dict[str, Any]]:
        try:
            mtime = self.path.stat().st_mtime
        except OSError:
            return None
        if mtime <= self.seen_mtime and not force:
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        self.seen_mtime = mtime
        return data if isinstance(data, dict) else None


def _state_path() -> Path:
    configured = os.environ.get("PROGRESS_STATE_FILE")
    return Path(configured) if configured else _HERE / "logs" / "progress_state.json"


STATE = _StateFile(_state_path())


def _open_run_log() -> logging.Logger:
    logger = logging.getLogger("solver.run_log")
    if logger.handlers:
        return logger
    path = _HERE / "logs" / "solver_runs.log"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError:
        return logger
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


RUN_LOG = _open_run_log()


def _log_event(event: str, **fields: Any) -> None:
    if not RUN_LOG.handlers:
        return
    parts = " ".join(f"{k}={v}" for k, v in fields.items() if v not in (None, ""))
    RUN_LOG.info("%s | %s" if parts else "%s%s", event, parts)


def _fresh(run_id: int) -> Dict[str, Any]:
    return {
        "status": "Idle",       # Idle | Solving | Checking | Solved | No solution | Checked | Cancelled | Error
        "mode": "",             # autofill | check
        "transform": "",        # orientation for autofill, engine for check
        "nodes": 0,
        "max_depth": 0,
        "placed": 0,            # tiles in the live preview
        "preview": [],          # [[x, y, size], ...] in board coordinates
        "started": None,        # time.time() at run start
        "elapsed": 0.0,
        "message": "",
        "done": False,
        "ok": None,
        "run_id": run_id,
    }


PROGRESS: Dict[str, Any] = _fresh(0)


def _tick_elapsed() -> None:
    started = PROGRESS.get("started")
    if started is not None:
        PROGRESS["elapsed"] = time.time() - float(started)


def _human(seconds: float) -> str:
    total = int(max(0.0, float(seconds)))
    if total < 60:
        return f"{total}s"
    if total < 3600:
        return f"{total // 60}m {total % 60}s"
    return f"{total // 3600}h {total % 3600 // 60}m"


def reset() -> int:
    """Back to Idle under a new run id; returns that id."""
    with LOCK:
        run_id = int(PROGRESS.get("run_id") or 0) + 1
        PROGRESS.clear()
        PROGRESS.update(_fresh(run_id))
        STATE.write(PROGRESS)
    _log_event("Progress reset", run_id=run_id)
    return run_id


def start_run(mode: str, *, transform: str = "") -> int:
    run_id = reset()
    with LOCK:
        PROGRESS.update(
            mode=mode,
            status=_MODE_STATUS.get(mode, "Solving"),
            transform=transform,
            started=time.time(),
        )
        STATE.write(PROGRESS)
    _log_event("Run started", run_id=run_id, mode=mode, transform=transform)
    return run_id


def set_stats(nodes: int, max_depth: int = 0, preview: Optional[Iterable] = None) -> None:
    """Record a live tick; ``preview`` (x, y, size) triples replace the previous ones when given."""
    with LOCK:
        PROGRESS["nodes"] = max(0, int(nodes))
        PROGRESS["max_depth"] = max(0, int(max_depth))
        if preview is not None:
            PROGRESS["preview"] = [[int(x), int(y), int(s)] for x, y, s in preview]
            PROGRESS["placed"] = len(PROGRESS["preview"])
        _tick_elapsed()
        STATE.write(PROGRESS)


def set_done(ok: Optional[bool] = None, *, status: Optional[str] = None, message: Any = None) -> None:
    """Close the run. Without ``status`` it becomes Solved or Error according to ``ok``."""
    with LOCK:
        _tick_elapsed()
        if status is None and ok is not None:
            status = "Solved" if ok else "Error"
        if status is not None:
            PROGRESS["status"] = status
        if ok is not None:
            PROGRESS["ok"] = bool(ok)
        if message is not None:
            PROGRESS["message"] = str(message)
        PROGRESS["done"] = True
        PROGRESS["preview"] = []
        summary = dict(PROGRESS)
        STATE.write(PROGRESS)
    _log_event(
        "Run finished",
        run_id=summary["run_id"],
        mode=summary["mode"],
        status=summary["status"],
        ok=summary["ok"],
        nodes=summary["nodes"],
        depth=summary["max_depth"],
        duration=f"{summary['elapsed']:.2f}s",
        message=summary["message"],
    )


def snapshot() -> Dict[str, Any]:
    """Copy of the current state, refreshed from the state file if another process wrote it."""
    with LOCK:
        _merge(STATE.read_newer())
        if not PROGRESS["done"]:
            _tick_elapsed()
        out = {k: v for k, v in PROGRESS.items() if k != "started"}
        out["preview"] = list(PROGRESS["preview"])
        out["elapsed_str"] = _human(PROGRESS["elapsed"])
        return out


def _merge(data: Optional[Dict[str, Any]]) -> None:
    if not data:
        return
    for key in PROGRESS:
        if key in data:
            PROGRESS[key] = data[key]


def as_json() -> Dict[str, Any]:
    return snapshot()


with LOCK:
    _merge(STATE.read_newer(force=True))
