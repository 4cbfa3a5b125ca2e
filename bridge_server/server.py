"""
NCM bridge HTTP server.

Exposes a normalized HTTP API over the upstream Netease Cloud Music
client. The route implementation functions live in ncm_api/routes/; this
module wires them to Flask, resolves the per-request cookie, and turns
every failure into a JSON ``{"error": ...}`` body.
"""

import logging
import sys
from typing import Callable, Tuple

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from ncm_api.credential_store import CredentialStore
from ncm_api.errors import BridgeError
from ncm_api.gateway import UpstreamGateway
from ncm_api.routes.auth import (
    check_login_status,
    check_qr_code,
    create_qr_code,
    create_qr_key,
    get_session_info,
    logout,
    refresh_login,
)
from ncm_api.routes.playlists import get_user_playlists
from ncm_api.routes.search import search_songs
from ncm_api.routes.tracks import get_lyric, get_playlist_tracks, get_song_url
from ncm_api.session import SessionCoordinator
from ncm_api.upstream import build_registry

from bridge_server.lifecycle import OwnerMonitor, schedule_shutdown
from bridge_server.utils import COOKIE_FILE, HOST, LOG_LEVEL, OWNER_PID, PORT, SERVICE_NAME

logger = logging.getLogger(__name__)

COOKIE_HEADER = "x-ncm-cookie"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def _respond(result: Tuple[dict, int]):
    """Convert a (dict, http_status) tuple from a route function into a
    Flask JSON response."""
    data, status = result
    return jsonify(data), status


def _request_cookie(coordinator: SessionCoordinator) -> str:
    """Header override, then query override, then the stored session."""
    return coordinator.resolve_credential(
        request.headers.get(COOKIE_HEADER), request.args.get("cookie")
    )


def _handle_error(err: Exception):
    if isinstance(err, HTTPException):
        return jsonify({"error": err.description}), err.code or 500
    status = err.status_code if isinstance(err, BridgeError) else 502
    message = str(err) or type(err).__name__
    if status >= 500:
        logger.error("error: %s", message)
    else:
        logger.info("request rejected (%d): %s", status, message)
    return jsonify({"error": message}), status


# =============================================================================
# APP FACTORY
# =============================================================================


def create_app(
    store: CredentialStore,
    gateway: UpstreamGateway,
    shutdown: Callable[[], object] = schedule_shutdown,
) -> Flask:
    """Build the Flask app around one credential store and one gateway."""
    app = Flask(__name__)
    coordinator = SessionCoordinator(store, gateway)

    app.register_error_handler(Exception, _handle_error)

    # -------------------------------------------------------------------------
    # Service
    # -------------------------------------------------------------------------

    @app.get("/health")
    def health():
        return jsonify(
            {
                "ok": True,
                "service": SERVICE_NAME,
                "has_cookie": store.has_cookie(),
                "cookie_file": str(store.cookie_file),
            }
        )

    @app.get("/v1/admin/shutdown")
    def admin_shutdown():
        logger.warning("shutdown requested")
        shutdown()
        return jsonify({"ok": True, "shutting_down": True})

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    @app.get("/v1/search")
    def search():
        args = request.args
        return _respond(
            search_songs(
                coordinator,
                args.get("keywords"),
                limit=args.get("limit"),
                offset=args.get("offset"),
                level=args.get("level"),
                cookie=_request_cookie(coordinator),
            )
        )

    @app.get("/v1/playlist/tracks")
    def playlist_tracks():
        args = request.args
        return _respond(
            get_playlist_tracks(
                coordinator,
                args.get("playlist_id"),
                limit=args.get("limit"),
                offset=args.get("offset"),
                level=args.get("level"),
                cookie=_request_cookie(coordinator),
            )
        )

    @app.get("/v1/playlists")
    def playlists():
        args = request.args
        return _respond(
            get_user_playlists(
                coordinator,
                uid=args.get("uid"),
                limit=args.get("limit"),
                offset=args.get("offset"),
                source_label=args.get("source_label"),
                cookie=_request_cookie(coordinator),
            )
        )

    @app.get("/v1/song/url")
    def song_url():
        return _respond(
            get_song_url(
                coordinator,
                request.args.get("song_id"),
                level=request.args.get("level"),
                cookie=_request_cookie(coordinator),
            )
        )

    @app.get("/v1/lyric")
    def lyric():
        return _respond(
            get_lyric(
                coordinator,
                request.args.get("song_id"),
                cookie=_request_cookie(coordinator),
            )
        )

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    @app.get("/v1/auth/session")
    def auth_session():
        return _respond(get_session_info(store))

    @app.get("/v1/auth/login_status")
    def auth_login_status():
        return _respond(check_login_status(coordinator, _request_cookie(coordinator)))

    @app.get("/v1/auth/login_refresh")
    def auth_login_refresh():
        return _respond(refresh_login(coordinator, _request_cookie(coordinator)))

    @app.get("/v1/auth/logout")
    def auth_logout():
        return _respond(logout(coordinator, _request_cookie(coordinator)))

    @app.get("/v1/auth/qr/key")
    def auth_qr_key():
        return _respond(create_qr_key(coordinator))

    @app.get("/v1/auth/qr/create")
    def auth_qr_create():
        return _respond(
            create_qr_code(
                coordinator,
                request.args.get("key"),
                qrimg=request.args.get("qrimg"),
                cookie=_request_cookie(coordinator),
            )
        )

    @app.get("/v1/auth/qr/check")
    def auth_qr_check():
        return _respond(
            check_qr_code(
                coordinator,
                request.args.get("key"),
                cookie=_request_cookie(coordinator),
            )
        )

    return app


# =============================================================================
# ENTRY POINT
# =============================================================================


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Send log lines to stderr, prefixed with the service name."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=f"[{SERVICE_NAME}] %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main() -> None:
    configure_logging()

    store = CredentialStore(COOKIE_FILE)
    store.load_from_disk()
    gateway = UpstreamGateway(build_registry())
    app = create_app(store, gateway)

    monitor = OwnerMonitor(OWNER_PID)
    monitor.start()

    logger.info("listening on http://%s:%d", HOST, PORT)
    try:
        app.run(host=HOST, port=PORT, threaded=True, use_reloader=False)
    finally:
        monitor.stop()


if __name__ == "__main__":
    main()
