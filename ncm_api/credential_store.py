"""Session cookie storage.

The bridge holds exactly one session cookie. ``CredentialStore`` keeps it
in memory and mirrors it to a single JSON file on disk; it is the only
writer of that file.
"""

import json
import logging
import os
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

COOKIE_FILE_ENV = "STELLATUNE_NCM_COOKIE_FILE"
_RELATIVE_COOKIE_PATH = ("netease", "session-cookie.json")


def resolve_cookie_file_path(env: Optional[Mapping[str, str]] = None) -> Path:
    """Resolve where the session cookie is persisted.

    An explicit override wins; otherwise a per-user state directory is used
    (LOCALAPPDATA on Windows, XDG_STATE_HOME elsewhere), each falling back
    to a location under the home directory.
    """
    if env is None:
        env = os.environ

    override = str(env.get(COOKIE_FILE_ENV, "") or "").strip()
    if override:
        return Path(override).resolve()

    if sys.platform == "win32":
        base = str(env.get("LOCALAPPDATA", "") or "").strip()
        root = Path(base) if base else Path.home() / "AppData" / "Local"
        return root.joinpath("StellaTune", *_RELATIVE_COOKIE_PATH)

    state_home = str(env.get("XDG_STATE_HOME", "") or "").strip()
    root = Path(state_home) if state_home else Path.home() / ".local" / "state"
    return root.joinpath("stellatune", *_RELATIVE_COOKIE_PATH)


def normalize_cookie_value(raw: Any) -> str:
    """Collapse a cookie given as a string or a list of strings to one string."""
    if isinstance(raw, (list, tuple)):
        parts = ["" if v is None else str(v).strip() for v in raw]
        return ";".join(p for p in parts if p).strip()
    if isinstance(raw, str):
        return raw.strip()
    return ""


def _describe(cookie: str) -> str:
    return f"len={len(cookie)}" if cookie else "empty"


class CredentialStore:
    """In-memory session cookie with a JSON file mirror."""

    def __init__(self, cookie_file: Path):
        self.cookie_file = Path(cookie_file)
        self._cookie = ""
        self._updated_at: Optional[datetime] = None
        self._lock = threading.Lock()

    def get(self) -> str:
        return self._cookie

    @property
    def updated_at(self) -> Optional[datetime]:
        return self._updated_at

    def has_cookie(self) -> bool:
        return bool(self._cookie)

    def set(self, raw: Any, reason: str = "") -> str:
        """Replace the current cookie and write it through to disk.

        Only presence and length are logged, never the value itself.
        Returns the normalized cookie now held.
        """
        normalized = normalize_cookie_value(raw)
        with self._lock:
            previous = self._cookie
            self._cookie = normalized
            self._updated_at = datetime.now(timezone.utc)
            self.persist()
        if normalized != previous:
            logger.info(
                "session cookie updated (%s): %s -> %s",
                reason or "n/a",
                _describe(previous),
                _describe(normalized),
            )
        return normalized

    def clear(self, reason: str = "") -> None:
        self.set("", reason)

    def persist(self) -> None:
        """Mirror the current cookie to disk; failures are logged, not raised."""
        try:
            if not self._cookie:
                self.cookie_file.unlink(missing_ok=True)
                return
            self.cookie_file.parent.mkdir(parents=True, exist_ok=True)
            updated_at = self._updated_at or datetime.now(timezone.utc)
            payload = json.dumps(
                {
                    "cookie": self._cookie,
                    "updated_at": updated_at.isoformat().replace("+00:00", "Z"),
                },
                indent=2,
            )
            fd = os.open(
                self.cookie_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            # O_CREAT's mode is ignored for files that already exist
            os.chmod(self.cookie_file, 0o600)
        except OSError as e:
            logger.warning("failed to persist cookie: %s", e)

    def load_from_disk(self) -> bool:
        """Adopt a previously persisted cookie, if there is a usable one.

        Does not re-persist. A missing or unreadable file leaves the store
        empty. Returns True when a cookie was loaded.
        """
        try:
            if not self.cookie_file.exists():
                return False
            raw = self.cookie_file.read_text(encoding="utf-8")
            if not raw.strip():
                return False
            parsed = json.loads(raw)
            if not isinstance(parsed, dict):
                return False
            cookie = normalize_cookie_value(parsed.get("cookie"))
            if not cookie:
                return False
        except (OSError, ValueError, RecursionError) as e:
            logger.warning("failed to load cookie from disk: %s", e)
            return False

        with self._lock:
            self._cookie = cookie
            self._updated_at = _parse_timestamp(parsed.get("updated_at"))
        logger.info("loaded session cookie from disk (len=%d)", len(cookie))
        return True

    def has_persisted(self) -> bool:
        """True when the cookie file exists as a regular, non-empty file."""
        try:
            return self.cookie_file.is_file() and self.cookie_file.stat().st_size > 0
        except OSError:
            return False


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str):
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
