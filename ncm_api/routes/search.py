"""Search route implementation logic."""

from typing import Any, Optional, Tuple

from ncm_api.session import SessionCoordinator
from ncm_api.utils import bound_limit, bound_offset, format_song_list, to_int

SEARCH_LIMIT_DEFAULT = 30
SEARCH_LIMIT_MAX = 200


def normalize_level(level: Any) -> str:
    return str(level or "standard").strip().lower() or "standard"


def search_songs(
    coordinator: SessionCoordinator,
    keywords: Optional[str],
    limit: Any = None,
    offset: Any = None,
    level: Any = None,
    cookie: str = "",
) -> Tuple[dict, int]:
    """Search songs by keyword.

    Blank keywords short-circuit to an empty result without calling the
    upstream.
    """
    keywords = str(keywords or "").strip()
    if not keywords:
        return {"items": []}, 200

    envelope = coordinator.gateway.call(
        "search",
        {
            "keywords": keywords,
            "type": 1,
            "limit": bound_limit(
                to_int(limit, SEARCH_LIMIT_DEFAULT), max_n=SEARCH_LIMIT_MAX
            ),
            "offset": bound_offset(to_int(offset, 0)),
            "cookie": cookie,
        },
    )

    result = envelope["body"].get("result")
    songs = result.get("songs") if isinstance(result, dict) else None
    return {"items": format_song_list(songs, normalize_level(level))}, 200
