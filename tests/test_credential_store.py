"""Unit tests for ncm_api/credential_store.py.

Covers cookie normalization, write-through persistence, loading from
disk, and the platform-dependent cookie file path.
"""

import json
import logging
import os
import stat
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

import ncm_api.credential_store as _store_module
from ncm_api.credential_store import (
    CredentialStore,
    normalize_cookie_value,
    resolve_cookie_file_path,
)


# =============================================================================
# normalize_cookie_value
# =============================================================================


class TestNormalizeCookieValue:
    def test_string_is_trimmed(self):
        assert normalize_cookie_value("  MUSIC_U=abc  ") == "MUSIC_U=abc"

    def test_list_is_joined(self):
        raw = [" MUSIC_U=abc ", "", None, "__csrf=x"]
        assert normalize_cookie_value(raw) == "MUSIC_U=abc;__csrf=x"

    def test_other_types_are_empty(self):
        assert normalize_cookie_value(None) == ""
        assert normalize_cookie_value(123) == ""
        assert normalize_cookie_value({"cookie": "x"}) == ""


# =============================================================================
# CredentialStore.set / get
# =============================================================================


class TestSetAndGet:
    def test_default_is_empty(self, store):
        assert store.get() == ""
        assert store.has_cookie() is False

    def test_get_returns_normalized_value(self, store):
        store.set(["a=1 ", " b=2"], "test")
        assert store.get() == "a=1;b=2"

    def test_set_returns_current_value(self, store):
        assert store.set("  a=1 ", "test") == "a=1"

    def test_transition_logged_once(self, store, caplog):
        with caplog.at_level(logging.INFO, logger=_store_module.__name__):
            store.set("a=1", "first")
            store.set(" a=1 ", "again")

        updates = [r for r in caplog.records if "session cookie updated" in r.message]
        assert len(updates) == 1
        assert "empty -> len=3" in updates[0].message

    def test_log_never_contains_cookie(self, store, caplog):
        with caplog.at_level(logging.DEBUG):
            store.set("MUSIC_U=supersecret", "login")
            store.set("", "logout")
        assert "supersecret" not in caplog.text

    def test_updated_at_is_set(self, store):
        store.set("a=1", "test")
        assert store.updated_at is not None


# =============================================================================
# Persistence
# =============================================================================


class TestPersist:
    def test_writes_json_document(self, store, cookie_file):
        store.set("MUSIC_U=abc", "login")

        data = json.loads(cookie_file.read_text(encoding="utf-8"))
        assert data["cookie"] == "MUSIC_U=abc"
        assert data["updated_at"].endswith("Z")

    def test_creates_parent_directories(self, store, cookie_file):
        assert not cookie_file.parent.exists()
        store.set("a=1", "test")
        assert cookie_file.exists()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_owner_only_permissions(self, store, cookie_file):
        store.set("a=1", "test")
        mode = stat.S_IMODE(os.stat(cookie_file).st_mode)
        assert mode == 0o600

    def test_empty_value_deletes_file(self, store, cookie_file):
        store.set("a=1", "test")
        assert cookie_file.exists()

        store.set("", "logout")
        assert not cookie_file.exists()

    def test_delete_is_idempotent(self, store, cookie_file):
        store.set("", "logout")
        store.set("", "logout")
        assert not cookie_file.exists()

    def test_io_failure_is_swallowed(self, store, caplog):
        with patch.object(Path, "mkdir", side_effect=PermissionError("denied")):
            with caplog.at_level(logging.WARNING, logger=_store_module.__name__):
                result = store.set("a=1", "test")

        assert result == "a=1"
        assert store.get() == "a=1"
        assert "failed to persist cookie" in caplog.text

    def test_has_persisted(self, store):
        assert store.has_persisted() is False
        store.set("a=1", "test")
        assert store.has_persisted() is True

    def test_has_persisted_false_for_empty_file(self, store, cookie_file):
        cookie_file.parent.mkdir(parents=True)
        cookie_file.write_text("")
        assert store.has_persisted() is False


# =============================================================================
# load_from_disk
# =============================================================================


class TestLoadFromDisk:
    def test_round_trip(self, store, cookie_file):
        store.set("MUSIC_U=abc; __csrf=def", "login")

        fresh = CredentialStore(cookie_file)
        assert fresh.load_from_disk() is True
        assert fresh.get() == "MUSIC_U=abc; __csrf=def"

    def test_cleared_session_loads_empty(self, store, cookie_file):
        store.set("a=1", "login")
        store.set("", "logout")

        fresh = CredentialStore(cookie_file)
        assert fresh.load_from_disk() is False
        assert fresh.get() == ""

    def test_missing_file_is_not_an_error(self, store, caplog):
        with caplog.at_level(logging.WARNING, logger=_store_module.__name__):
            assert store.load_from_disk() is False
        assert caplog.text == ""

    def test_blank_file_ignored(self, store, cookie_file):
        cookie_file.parent.mkdir(parents=True)
        cookie_file.write_text("   \n")
        assert store.load_from_disk() is False

    def test_corrupt_json_swallowed(self, store, cookie_file, caplog):
        cookie_file.parent.mkdir(parents=True)
        cookie_file.write_text("{not json")
        with caplog.at_level(logging.WARNING, logger=_store_module.__name__):
            assert store.load_from_disk() is False
        assert store.get() == ""
        assert "failed to load cookie" in caplog.text

    def test_deeply_nested_json_swallowed(self, store, cookie_file, caplog):
        cookie_file.parent.mkdir(parents=True)
        cookie_file.write_text("[" * 200000)
        with caplog.at_level(logging.WARNING, logger=_store_module.__name__):
            assert store.load_from_disk() is False
        assert store.get() == ""
        assert "failed to load cookie" in caplog.text

    def test_non_object_document_ignored(self, store, cookie_file):
        cookie_file.parent.mkdir(parents=True)
        cookie_file.write_text('["a=1"]')
        assert store.load_from_disk() is False

    def test_array_cookie_accepted(self, store, cookie_file):
        cookie_file.parent.mkdir(parents=True)
        cookie_file.write_text(json.dumps({"cookie": ["a=1", "b=2"]}))
        assert store.load_from_disk() is True
        assert store.get() == "a=1;b=2"

    def test_load_does_not_rewrite_file(self, store, cookie_file):
        cookie_file.parent.mkdir(parents=True)
        original = json.dumps({"cookie": "a=1", "updated_at": "2026-01-01T00:00:00Z"})
        cookie_file.write_text(original)

        store.load_from_disk()
        assert cookie_file.read_text() == original
        assert store.updated_at.year == 2026


# =============================================================================
# resolve_cookie_file_path
# =============================================================================


class TestResolveCookieFilePath:
    def test_override_wins(self, tmp_path):
        target = tmp_path / "custom.json"
        env = {"STELLATUNE_NCM_COOKIE_FILE": f"  {target}  ", "XDG_STATE_HOME": "/x"}
        assert resolve_cookie_file_path(env) == target.resolve()

    def test_xdg_state_home(self):
        with patch.object(_store_module.sys, "platform", "linux"):
            path = resolve_cookie_file_path({"XDG_STATE_HOME": "/var/state"})
        assert path == Path("/var/state/stellatune/netease/session-cookie.json")

    def test_posix_home_fallback(self):
        with patch.object(_store_module.sys, "platform", "linux"):
            path = resolve_cookie_file_path({})
        assert path == Path.home() / ".local/state/stellatune/netease/session-cookie.json"

    def test_windows_local_app_data(self):
        with patch.object(_store_module.sys, "platform", "win32"):
            path = resolve_cookie_file_path({"LOCALAPPDATA": "/appdata"})
        assert path == Path("/appdata/StellaTune/netease/session-cookie.json")

    def test_windows_home_fallback(self):
        with patch.object(_store_module.sys, "platform", "win32"):
            path = resolve_cookie_file_path({"LOCALAPPDATA": "  "})
        assert path == Path.home() / "AppData/Local/StellaTune/netease/session-cookie.json"
