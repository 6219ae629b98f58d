import os
from dotenv import load_dotenv

load_dotenv()

MAX_GROUPS = 10
DEFAULT_PORT = 10000


def parse_groups(raw) -> int:
    """Number of groups, clamped into [1, MAX_GROUPS]; anything unparsable means one group."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return 1
    return max(1, min(MAX_GROUPS, value))


def _parse_port(raw) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return DEFAULT_PORT


def _truthy(raw) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes", "on")


GROUPS = parse_groups(os.getenv("GROUPS", "1"))
HOST = os.getenv("HOST", "0.0.0.0")
PORT = _parse_port(os.getenv("PORT", DEFAULT_PORT))
CLIENT_URL = os.getenv("CLIENT_URL", "*")
CORS_ORIGINS = "*" if CLIENT_URL == "*" else [CLIENT_URL]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SOCKETIO_DEBUG = _truthy(os.getenv("SOCKETIO_DEBUG"))
