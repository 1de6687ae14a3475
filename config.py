"""Application configuration driven by environment variables.

All settings have sensible defaults for local development.
Components take these values as constructor defaults, so tests can pass
their own without touching the environment.
"""

import os

# ---------------------------------------------------------------------------
# gRPC server (the host application connects to us on this address)
# ---------------------------------------------------------------------------

GRPC_SERVER_HOST: str = os.getenv("GRPC_SERVER_HOST", "0.0.0.0")
GRPC_SERVER_PORT: int = int(os.getenv("GRPC_SERVER_PORT", "50051"))

# Thread pool size for the gRPC server.  Each concurrent RPC occupies one
# thread, so this caps concurrent request handling.
GRPC_MAX_WORKERS: int = int(os.getenv("GRPC_MAX_WORKERS", "4"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# Local storage
# ---------------------------------------------------------------------------

# Single sqlite file holding the profile record, cached payloads and play
# counts.  Falls back to in-memory storage if it cannot be opened.
NOVE_DB_PATH: str = os.getenv("NOVE_DB_PATH", os.path.expanduser("~/.nove/nove.db"))

# ---------------------------------------------------------------------------
# Track catalogue
# ---------------------------------------------------------------------------

# JSON file with a list of track objects, written by the search/browse layer.
CATALOGUE_PATH: str = os.getenv("CATALOGUE_PATH", "catalogue.json")

CATALOGUE_REFRESH_INTERVAL_SECONDS: int = int(
    os.getenv("CATALOGUE_REFRESH_INTERVAL_SECONDS", "300")
)

# ---------------------------------------------------------------------------
# Interest model
# ---------------------------------------------------------------------------

POINTS_LIKE: float = 5.0
POINTS_DISLIKE: float = -10.0
POINTS_SAVE: float = 3.0
POINTS_COMPLETION_HIGH: float = 2.0   # completion ratio above the threshold
POINTS_SKIP_EARLY: float = -3.0
POINTS_RELISTEN: float = 4.0

HIGH_COMPLETION_RATIO: float = 0.8

DECAY_RATE: float = 0.9               # multiplier per full decay period
DECAY_INTERVAL_DAYS: int = 7

RELISTEN_WINDOW_HOURS: int = 24
MAX_INTERACTIONS: int = 500           # most recent interactions kept

# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

SERENDIPITY_RATIO: float = 0.1        # share of each list reserved for discovery
DISLIKE_CUTOFF: float = -50.0         # content slate excludes scores at or below this
NOVELTY_BONUS: float = 1.0
LIKED_BONUS: float = 2.0
DISLIKED_PENALTY: float = -100.0

# ---------------------------------------------------------------------------
# Audio cache
# ---------------------------------------------------------------------------

CACHE_THRESHOLD: int = int(os.getenv("CACHE_THRESHOLD", "3"))   # plays before caching
MAX_CACHE_SIZE_MB: int = int(os.getenv("MAX_CACHE_SIZE_MB", "500"))
MAX_CACHE_ITEMS: int = int(os.getenv("MAX_CACHE_ITEMS", "50"))
MAX_ITEM_SIZE_MB: int = int(os.getenv("MAX_ITEM_SIZE_MB", "50"))

FETCH_TIMEOUT_SECONDS: float = float(os.getenv("FETCH_TIMEOUT_SECONDS", "60"))
CACHE_FETCH_WORKERS: int = int(os.getenv("CACHE_FETCH_WORKERS", "2"))
