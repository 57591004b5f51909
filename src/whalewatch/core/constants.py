"""Application-wide constants.

These are fixed values that don't change between environments.
For configurable values, see config.py Settings.
"""

# ─────────────────────────────────────────────────────────────
# Leaderboard (external constraints)
# ─────────────────────────────────────────────────────────────
LEADERBOARD_HARD_LIMIT = 500  # Never return more traders than this
LEADERBOARD_PAGE_SIZE = 50  # Data API page size for /v1/leaderboard
LEADERBOARD_ORDER_BY = "PNL"

# ─────────────────────────────────────────────────────────────
# Profile computation
# ─────────────────────────────────────────────────────────────
TRADE_COUNT_CAP = 10000  # Data API refuses offsets past this
TRADE_PAGE_SIZE = 500
CLOSED_POSITIONS_LIMIT = 500
# Finished profile computations nobody collected are dropped after this long
COMPUTED_PROFILE_RETENTION_SECONDS = 300.0
DEFAULT_ACTIVITY_LIMIT = 50

# Smart score weights (sum to 1.0)
SMART_SCORE_WEIGHT_WIN_RATE = 0.40
SMART_SCORE_WEIGHT_EFFICIENCY = 0.35
SMART_SCORE_WEIGHT_ACTIVITY = 0.25
SMART_SCORE_FULL_ROI = 0.10  # pnl/volume at which efficiency saturates
SMART_SCORE_FULL_ACTIVITY_TRADES = 1000

# ─────────────────────────────────────────────────────────────
# Enrichment polling
# ─────────────────────────────────────────────────────────────
POLL_INTERVAL_SECONDS = 3.0
POLL_BATCH_SIZE = 50  # Max addresses re-checked per poll tick

# ─────────────────────────────────────────────────────────────
# Watch list
# ─────────────────────────────────────────────────────────────
WATCH_LABEL_MAX_LENGTH = 6

# ─────────────────────────────────────────────────────────────
# Storage
# ─────────────────────────────────────────────────────────────
DEFAULT_DATABASE_PATH = "data/whales.db"
DEFAULT_LEGACY_DATA_DIR = "datas"
LEGACY_WATCHED_FILE = "watched_addresses.json"
LEGACY_WHALES_DIR = "whales"
MIGRATION_MARKER_KEY = "legacy_json_migrated_at"
SQLITE_MAX_VARIABLES = 500  # Chunk size for IN (...) lookups

# ─────────────────────────────────────────────────────────────
# Redis
# ─────────────────────────────────────────────────────────────
REDIS_PREFIX = "whalewatch"
LEADERBOARD_CACHE_PREFIX = f"{REDIS_PREFIX}:leaderboard"

# ─────────────────────────────────────────────────────────────
# API URL Defaults (used as defaults in Settings)
# ─────────────────────────────────────────────────────────────
DEFAULT_POLYMARKET_DATA_API_URL = "https://data-api.polymarket.com"
