import math
import posixpath
import re
from typing import Any, Optional
from urllib.parse import urlsplit

SOURCE_ID = "netease"
DEFAULT_SOURCE_LABEL = "Netease Cloud Music"
DEFAULT_EXT = "mp3"

_LEADING_INT = re.compile(r"\s*[-+]?\d+")


def to_int(raw: Any, fallback: int) -> int:
    """Parse the leading integer of a query-string value ("12abc" -> 12).

    Returns fallback when there is no leading integer.
    """
    if isinstance(raw, bool):
        return fallback
    if isinstance(raw, int):
        return raw
    match = _LEADING_INT.match(str(raw if raw is not None else ""))
    if match is None:
        return fallback
    return int(match.group(0))


def bound_limit(limit: Optional[int], max_n: int = 50) -> int:
    """Clamp limit to the range [1, max_n]. Returns max_n when limit is None."""
    if limit is None:
        return max_n
    if limit < 1:
        limit = 1
    elif limit > max_n:
        limit = max_n
    return limit


def bound_offset(offset: Optional[int]) -> int:
    if offset is None or offset < 0:
        return 0
    return offset


def _finite(value: Any) -> bool:
    # bool is an int subclass but never a meaningful duration or count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _coerce_id(raw: Any) -> Optional[int]:
    """Return a positive integer id, or None when the value is unusable."""
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, float):
        if not math.isfinite(raw) or not raw.is_integer():
            return None
        raw = int(raw)
    try:
        value = int(str(raw).strip()) if not isinstance(raw, int) else raw
    except ValueError:
        return None
    return value if value > 0 else None


def _cover_ref(url: Any) -> Optional[dict]:
    if not isinstance(url, str) or not url.strip():
        return None
    return {"kind": "url", "value": url.strip(), "mime": None}


def guess_extension(url: Any, fallback: str = DEFAULT_EXT) -> str:
    """Guess a file extension from the path of a URL.

    Never raises: unparsable URLs, URLs without a scheme, and paths with no
    extension all yield ``fallback`` unchanged.
    """
    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            return fallback
        ext = posixpath.splitext(parts.path or "")[1]
    except (TypeError, ValueError, AttributeError):
        return fallback
    ext = ext.lstrip(".").lower()
    return ext or fallback


def _artist_names(song: dict) -> Optional[str]:
    for key in ("ar", "artists"):
        artists = song.get(key)
        if isinstance(artists, list):
            names = [
                a.get("name")
                for a in artists
                if isinstance(a, dict) and isinstance(a.get("name"), str)
            ]
            joined = " / ".join(n for n in names if n)
            return joined or None
    artist = song.get("artist")
    if isinstance(artist, str) and artist:
        return artist
    return None


def _album_name(song: dict) -> Optional[str]:
    for key in ("al", "album"):
        album = song.get(key)
        if isinstance(album, dict) and isinstance(album.get("name"), str):
            return album["name"] or None
    album = song.get("album")
    if isinstance(album, str) and album:
        return album
    return None


def _album_cover(song: dict) -> Optional[dict]:
    for key in ("al", "album"):
        album = song.get(key)
        if isinstance(album, dict) and isinstance(album.get("picUrl"), str):
            return _cover_ref(album["picUrl"])
    return None


def format_song_data(
    song: Any,
    level: str,
    stream_url: Optional[str] = None,
    ext_fallback: str = DEFAULT_EXT,
) -> Optional[dict]:
    """
    Format an upstream song record into the canonical song shape.

    Args:
        song: Raw song dict as returned by the upstream client
        level: Requested quality level, echoed back as ``level``
        stream_url: Optional stream URL, used for ``ext_hint``
        ext_fallback: Extension used when the stream URL gives none

    Returns:
        Canonical song dict, or None when the record has no usable id
    """
    if not isinstance(song, dict):
        return None
    song_id = _coerce_id(song.get("id"))
    if song_id is None:
        return None

    if _finite(song.get("dt")):
        duration_ms = song["dt"]
    elif _finite(song.get("duration")):
        duration_ms = song["duration"]
    else:
        duration_ms = None

    fallback = ext_fallback or DEFAULT_EXT
    name = song.get("name")
    return {
        "song_id": song_id,
        "title": name if isinstance(name, str) and name else f"Song {song_id}",
        "artist": _artist_names(song),
        "album": _album_name(song),
        "duration_ms": duration_ms,
        "ext_hint": guess_extension(stream_url, fallback) if stream_url else fallback,
        "cover": _album_cover(song),
        "stream_url": stream_url,
        "level": level,
    }


def format_playlist_data(playlist: Any, source_label: str = "") -> Optional[dict]:
    """Format an upstream playlist record; None when it has no usable id."""
    if not isinstance(playlist, dict):
        return None
    playlist_id = _coerce_id(playlist.get("id"))
    if playlist_id is None:
        return None

    name = playlist.get("name")
    title = name.strip() if isinstance(name, str) and name.strip() else ""
    track_count = playlist.get("trackCount")

    return {
        "kind": "playlist",
        "source_id": SOURCE_ID,
        "source_label": source_label or DEFAULT_SOURCE_LABEL,
        "playlist_id": str(playlist_id),
        "title": title or f"Playlist {playlist_id}",
        "track_count": int(track_count) if _finite(track_count) else None,
        "cover": _cover_ref(playlist.get("coverImgUrl")),
        "playlist_ref": {"playlist_id": playlist_id},
    }


def format_song_list(songs: Any, level: str) -> list:
    """Normalize a list of songs, dropping records without an id."""
    if not isinstance(songs, list):
        return []
    formatted = (format_song_data(song, level) for song in songs)
    return [item for item in formatted if item is not None]


def format_playlist_list(playlists: Any, source_label: str = "") -> list:
    if not isinstance(playlists, list):
        return []
    formatted = (format_playlist_data(p, source_label) for p in playlists)
    return [item for item in formatted if item is not None]
