"""Default upstream operation registry, backed by pyncm.

Each operation takes a payload dict (always carrying a ``cookie`` string)
and returns an envelope ``{"body": dict, "cookie": str}``. The cookie is
only present when the upstream response changed the session cookies.

pyncm keeps its "current session" as process state, so calls are
serialized and each one runs against a throwaway session seeded with the
caller's cookie.
"""

import base64
import io
import threading
from typing import Any, Callable, Dict, Optional

import pyncm
import qrcode
from pyncm.apis import cloudsearch, login, playlist, track, user

from ncm_api.gateway import Operation

QR_LOGIN_URL = "https://music.163.com/login?codekey={key}"
SEARCH_TYPE_SONG = 1

# Set-Cookie attributes that may leak into a stored cookie string
_COOKIE_ATTRIBUTES = {
    "max-age",
    "expires",
    "path",
    "domain",
    "httponly",
    "secure",
    "samesite",
}

_call_lock = threading.Lock()


def parse_cookie_string(cookie: str) -> Dict[str, str]:
    """Split ``a=1; b=2`` into a dict, skipping Set-Cookie attributes."""
    pairs: Dict[str, str] = {}
    for part in (cookie or "").split(";"):
        name, sep, value = part.strip().partition("=")
        name = name.strip()
        if not sep or not name or name.lower() in _COOKIE_ATTRIBUTES:
            continue
        pairs[name] = value.strip()
    return pairs


def _dump_cookies(session) -> Dict[str, str]:
    return {c.name: c.value for c in session.cookies}


def _run(fn: Callable[[], Any], cookie: Optional[str]) -> dict:
    """Run one pyncm call against a fresh session seeded with ``cookie``."""
    session = pyncm.Session()
    for name, value in parse_cookie_string(cookie or "").items():
        session.cookies.set(name, value)
    before = _dump_cookies(session)

    with _call_lock:
        previous = pyncm.GetCurrentSession()
        pyncm.SetCurrentSession(session)
        try:
            body = fn()
        finally:
            pyncm.SetCurrentSession(previous)

    envelope = {"body": body if isinstance(body, dict) else {}}
    after = _dump_cookies(session)
    if after and after != before:
        envelope["cookie"] = "; ".join(f"{k}={v}" for k, v in after.items())
    return envelope


def _search(payload: dict) -> dict:
    return _run(
        lambda: cloudsearch.GetSearchResult(
            payload["keywords"],
            stype=payload.get("type", SEARCH_TYPE_SONG),
            limit=payload.get("limit", 30),
            offset=payload.get("offset", 0),
        ),
        payload.get("cookie"),
    )


def _playlist_track_all(payload: dict) -> dict:
    return _run(
        lambda: playlist.GetPlaylistAllTracks(
            payload["id"],
            offset=payload.get("offset", 0),
            limit=payload.get("limit", 1000),
        ),
        payload.get("cookie"),
    )


def _user_playlist(payload: dict) -> dict:
    return _run(
        lambda: user.GetUserPlaylists(
            payload["uid"],
            offset=payload.get("offset", 0),
            limit=payload.get("limit", 30),
        ),
        payload.get("cookie"),
    )


def _song_url_v1(payload: dict) -> dict:
    return _run(
        lambda: track.GetTrackAudioV1(
            [payload["id"]], level=payload.get("level", "standard")
        ),
        payload.get("cookie"),
    )


def _lyric(payload: dict) -> dict:
    return _run(lambda: track.GetTrackLyrics(payload["id"]), payload.get("cookie"))


def _login_status(payload: dict) -> dict:
    envelope = _run(login.GetCurrentLoginStatus, payload.get("cookie"))
    # Account info is reported under "data" with no status code of its own
    envelope["body"] = {"data": envelope["body"]}
    return envelope


def _login_refresh(payload: dict) -> dict:
    return _run(login.LoginRefreshToken, payload.get("cookie"))


def _logout(payload: dict) -> dict:
    return _run(login.LoginLogout, payload.get("cookie"))


def _login_qr_key(payload: dict) -> dict:
    envelope = _run(lambda: login.LoginQrcodeUnikey(1), payload.get("cookie"))
    body = envelope["body"]
    envelope["body"] = {"code": body.get("code", 200), "data": body}
    return envelope


def _login_qr_create(payload: dict) -> dict:
    """Build the QR login URL for a key; no upstream round trip is needed.

    With ``qrimg`` set, the QR code is rendered as a PNG data URL.
    """
    qrurl = QR_LOGIN_URL.format(key=payload["key"])
    want_image = str(payload.get("qrimg", "")).strip().lower() in {"1", "true", "yes"}
    return {
        "body": {
            "code": 200,
            "data": {
                "qrurl": qrurl,
                "qrimg": render_qr_data_url(qrurl) if want_image else "",
            },
        }
    }


def render_qr_data_url(text: str) -> str:
    buf = io.BytesIO()
    qrcode.make(text).save(buf)
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def _login_qr_check(payload: dict) -> dict:
    return _run(lambda: login.LoginQrcodeCheck(payload["key"]), payload.get("cookie"))


def build_registry() -> Dict[str, Operation]:
    return {
        "search": _search,
        "playlist_track_all": _playlist_track_all,
        "user_playlist": _user_playlist,
        "song_url_v1": _song_url_v1,
        "lyric": _lyric,
        "login_status": _login_status,
        "login_refresh": _login_refresh,
        "logout": _logout,
        "login_qr_key": _login_qr_key,
        "login_qr_create": _login_qr_create,
        "login_qr_check": _login_qr_check,
    }
