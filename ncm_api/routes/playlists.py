"""Playlist route implementation logic."""

import logging
from typing import Any, Optional, Tuple

from ncm_api.errors import AuthRequired
from ncm_api.session import SessionCoordinator
from ncm_api.utils import (
    DEFAULT_SOURCE_LABEL,
    bound_limit,
    bound_offset,
    format_playlist_list,
    to_int,
)

logger = logging.getLogger(__name__)

PLAYLISTS_LIMIT_DEFAULT = 100
PLAYLISTS_LIMIT_MAX = 1000


def get_user_playlists(
    coordinator: SessionCoordinator,
    uid: Any = None,
    limit: Any = None,
    offset: Any = None,
    source_label: Optional[str] = None,
    cookie: str = "",
) -> Tuple[dict, int]:
    """
    List a user's playlists.

    When no uid is given the current session's user is looked up first;
    an unresolvable user yields 401.
    """
    limit = bound_limit(to_int(limit, PLAYLISTS_LIMIT_DEFAULT), max_n=PLAYLISTS_LIMIT_MAX)
    offset = bound_offset(to_int(offset, 0))
    source_label = str(source_label or DEFAULT_SOURCE_LABEL)
    logger.info(
        "/v1/playlists request limit=%d offset=%d has_cookie=%s",
        limit,
        offset,
        bool(cookie),
    )

    user_id = to_int(uid, 0)
    if user_id <= 0:
        user_id = coordinator.resolve_current_user_id(cookie) or 0
    if user_id <= 0:
        logger.warning("/v1/playlists reject: uid unavailable")
        raise AuthRequired("user not logged in or uid unavailable")
    logger.info("/v1/playlists using uid=%d", user_id)

    envelope = coordinator.gateway.call(
        "user_playlist",
        {"uid": str(user_id), "limit": limit, "offset": offset, "cookie": cookie},
    )
    coordinator.absorb(envelope)

    items = format_playlist_list(envelope["body"].get("playlist"), source_label)
    logger.info("/v1/playlists response count=%d", len(items))
    return {"items": items}, 200
