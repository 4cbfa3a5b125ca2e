"""Track route implementation logic: playlist tracks, stream URLs, lyrics."""

import math
from typing import Any, Tuple

from ncm_api.errors import NotFound, ValidationError
from ncm_api.routes.search import normalize_level
from ncm_api.session import SessionCoordinator
from ncm_api.utils import (
    bound_limit,
    bound_offset,
    format_song_list,
    guess_extension,
    to_int,
)

PLAYLIST_TRACKS_LIMIT_DEFAULT = 100
PLAYLIST_TRACKS_LIMIT_MAX = 1000


def get_playlist_tracks(
    coordinator: SessionCoordinator,
    playlist_id: Any,
    limit: Any = None,
    offset: Any = None,
    level: Any = None,
    cookie: str = "",
) -> Tuple[dict, int]:
    """List the songs of a playlist."""
    playlist_id = to_int(playlist_id, 0)
    if playlist_id <= 0:
        raise ValidationError("playlist_id is required")

    envelope = coordinator.gateway.call(
        "playlist_track_all",
        {
            "id": str(playlist_id),
            "limit": bound_limit(
                to_int(limit, PLAYLIST_TRACKS_LIMIT_DEFAULT),
                max_n=PLAYLIST_TRACKS_LIMIT_MAX,
            ),
            "offset": bound_offset(to_int(offset, 0)),
            "cookie": cookie,
        },
    )

    songs = envelope["body"].get("songs")
    return {"items": format_song_list(songs, normalize_level(level))}, 200


def get_song_url(
    coordinator: SessionCoordinator,
    song_id: Any,
    level: Any = None,
    cookie: str = "",
) -> Tuple[dict, int]:
    """Resolve a playable stream URL for one song."""
    song_id = to_int(song_id, 0)
    if song_id <= 0:
        raise ValidationError("song_id is required")

    level = normalize_level(level)
    envelope = coordinator.gateway.call(
        "song_url_v1", {"id": str(song_id), "level": level, "cookie": cookie}
    )

    rows = envelope["body"].get("data")
    row = rows[0] if isinstance(rows, list) and rows else None
    url = row.get("url") if isinstance(row, dict) else None
    if not isinstance(url, str) or not url:
        raise NotFound("song url unavailable")

    fallback = row.get("type") if isinstance(row.get("type"), str) else ""
    bitrate = row.get("br")
    if isinstance(bitrate, bool) or not isinstance(bitrate, (int, float)):
        bitrate = None
    elif not math.isfinite(bitrate):
        bitrate = None

    return {
        "url": url,
        "ext_hint": guess_extension(url, fallback.strip().lower() or "mp3"),
        "level": level,
        "bitrate": bitrate,
    }, 200


def get_lyric(
    coordinator: SessionCoordinator, song_id: Any, cookie: str = ""
) -> Tuple[dict, int]:
    """Pass the upstream lyric payload through unchanged."""
    song_id = to_int(song_id, 0)
    if song_id <= 0:
        raise ValidationError("song_id is required")

    envelope = coordinator.gateway.call("lyric", {"id": str(song_id), "cookie": cookie})
    return {"body": envelope["body"]}, 200
