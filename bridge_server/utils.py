"""
Bridge server configuration.

All settings come from environment variables and are resolved once, at
import time. Invalid numeric values fall back to their defaults.
"""

import os
from pathlib import Path

from ncm_api.credential_store import resolve_cookie_file_path

SERVICE_NAME = "stellatune-ncm-sidecar"

DEFAULT_PORT = 46321
DEFAULT_HOST = "127.0.0.1"


def _env_int(name: str, default: int) -> int:
    raw = str(os.environ.get(name, "") or "").strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


# =============================================================================
# LISTEN ADDRESS
# =============================================================================

PORT: int = _env_int("PORT", DEFAULT_PORT)
HOST: str = str(os.environ.get("HOST", "") or "").strip() or DEFAULT_HOST

# =============================================================================
# SESSION COOKIE FILE
# =============================================================================

# STELLATUNE_NCM_COOKIE_FILE overrides the per-user state directory.
COOKIE_FILE: Path = resolve_cookie_file_path()

# =============================================================================
# LIFECYCLE
# =============================================================================

# 0 disables the owner-liveness monitor.
OWNER_PID: int = _env_int("STELLATUNE_NCM_OWNER_PID", 0)

LOG_LEVEL: str = str(os.environ.get("NCM_BRIDGE_LOG_LEVEL", "") or "INFO").upper()
