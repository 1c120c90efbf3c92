import os


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
# "redis" fans out through Redis pub/sub; "memory" keeps subscribers in-process.
BROADCAST_BACKEND = (os.getenv("BROADCAST_BACKEND") or "redis").strip().lower()

# Standard cricket: wides and no-balls are re-bowled and do not count.
DEFAULT_REBOWL_WIDE_OR_NO_BALL = _env_flag("DEFAULT_REBOWL_WIDE_OR_NO_BALL", True)

LIVE_STATE_CACHE_TTL = _env_float("LIVE_STATE_CACHE_TTL", 30.0)

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
