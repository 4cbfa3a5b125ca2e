"""Authentication route implementation logic.

Covers the cookie session itself plus the upstream login-status, refresh,
logout and QR-code login flow. Every upstream step that can hand back a
renewed cookie feeds it through ``SessionCoordinator.absorb``.
"""

from typing import Optional, Tuple

from ncm_api.credential_store import CredentialStore
from ncm_api.errors import ValidationError
from ncm_api.session import SessionCoordinator

# 800 expired, 801 waiting for scan, 802 scanned, 803 authorized
QR_CHECK_ALLOWED_CODES = frozenset({200, 800, 801, 802, 803})


def _with_cookie(body: dict, cookie: str) -> dict:
    return {"body": body, "cookie": cookie or None}


def get_session_info(store: CredentialStore) -> Tuple[dict, int]:
    """Describe the stored session without revealing the cookie."""
    cookie = store.get()
    return {
        "has_cookie": bool(cookie),
        "cookie_length": len(cookie),
        "persisted": store.has_persisted(),
        "cookie_file": str(store.cookie_file),
        "updated_at": store.updated_at.isoformat() if store.updated_at else None,
    }, 200


def check_login_status(coordinator: SessionCoordinator, cookie: str) -> Tuple[dict, int]:
    envelope = coordinator.gateway.call("login_status", {"cookie": cookie})
    return _with_cookie(envelope["body"], coordinator.absorb(envelope)), 200


def refresh_login(coordinator: SessionCoordinator, cookie: str) -> Tuple[dict, int]:
    envelope = coordinator.gateway.call("login_refresh", {"cookie": cookie})
    return _with_cookie(envelope["body"], coordinator.absorb(envelope)), 200


def logout(coordinator: SessionCoordinator, cookie: str) -> Tuple[dict, int]:
    """Log out upstream, then drop the stored session."""
    envelope = coordinator.gateway.call("logout", {"cookie": cookie})
    coordinator.store.clear("logout")
    return _with_cookie(envelope["body"], ""), 200


def create_qr_key(coordinator: SessionCoordinator) -> Tuple[dict, int]:
    envelope = coordinator.gateway.call("login_qr_key", {})
    return _with_cookie(envelope["body"], coordinator.absorb(envelope)), 200


def create_qr_code(
    coordinator: SessionCoordinator,
    key: Optional[str],
    qrimg: Optional[str] = None,
    cookie: str = "",
) -> Tuple[dict, int]:
    key = str(key or "").strip()
    if not key:
        raise ValidationError("key is required")

    envelope = coordinator.gateway.call(
        "login_qr_create",
        {"key": key, "qrimg": str(qrimg or "true"), "cookie": cookie},
    )
    return _with_cookie(envelope["body"], coordinator.absorb(envelope)), 200


def check_qr_code(
    coordinator: SessionCoordinator, key: Optional[str], cookie: str = ""
) -> Tuple[dict, int]:
    """Poll the QR login; the pending codes are not errors."""
    key = str(key or "").strip()
    if not key:
        raise ValidationError("key is required")

    envelope = coordinator.gateway.call(
        "login_qr_check",
        {"key": key, "cookie": cookie},
        allowed_codes=QR_CHECK_ALLOWED_CODES,
    )
    return _with_cookie(envelope["body"], coordinator.absorb(envelope)), 200
