# config.py
import os

# ======= Board / inventory =======
MAX_TILE_SIZE = int(os.getenv("SQ_MAX_TILE_SIZE", "8"))
# Unset means the edge that the triangular inventory covers exactly
# (36 for tiles up to 8).
_BOARD_RAW = os.getenv("SQ_BOARD_SIZE", "").strip()
BOARD_SIZE = int(_BOARD_RAW) if _BOARD_RAW else None

# ======= Search cadence =======
# Wall-clock gap between progress reports; the search yields one host tick
# after each report.
PROGRESS_INTERVAL_MS = int(os.getenv("SQ_PROGRESS_INTERVAL_MS", "200"))

# ======= Solution counter =======
SOLUTION_LIMIT = int(os.getenv("SQ_SOLUTION_LIMIT", "2"))

# Unset means system randomness; set an integer to make the per-depth size
# orders reproducible.
_SEED_RAW   = os.getenv("SQ_SOLVER_SEED", "").strip()
SOLVER_SEED = int(_SEED_RAW) if _SEED_RAW else None

# ======= Engines (backtrack | cp_sat) =======
AUTOFILL_ENGINE    = os.getenv("SQ_AUTOFILL_ENGINE", "backtrack").strip().lower()
CHECK_ENGINE       = os.getenv("SQ_CHECK_ENGINE", "backtrack").strip().lower()
CP_SAT_MAX_SECONDS = float(os.getenv("SQ_CP_SAT_MAX_SECONDS", "30"))
CP_SAT_WORKERS     = int(os.getenv("SQ_CP_SAT_WORKERS", "1"))
CP_SAT_MAX_MEMORY_MB = int(os.getenv("SQ_CP_SAT_MAX_MEMORY_MB", "2048"))

# ======= Host =======
PUZZLE_QUERY_KEYS = tuple(
    k.strip() for k in os.getenv("SQ_PUZZLE_QUERY_KEYS", "p,q").split(",") if k.strip()
)

class CFG:
    BOARD_SIZE    = BOARD_SIZE
    MAX_TILE_SIZE = MAX_TILE_SIZE

    PROGRESS_INTERVAL_MS = PROGRESS_INTERVAL_MS
    SOLUTION_LIMIT       = SOLUTION_LIMIT
    SOLVER_SEED          = SOLVER_SEED

    AUTOFILL_ENGINE      = AUTOFILL_ENGINE
    CHECK_ENGINE         = CHECK_ENGINE
    CP_SAT_MAX_SECONDS   = CP_SAT_MAX_SECONDS
    CP_SAT_WORKERS       = CP_SAT_WORKERS
    CP_SAT_MAX_MEMORY_MB = CP_SAT_MAX_MEMORY_MB

    PUZZLE_QUERY_KEYS = PUZZLE_QUERY_KEYS


__all__ = ["CFG"]
