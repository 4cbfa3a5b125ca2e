"""Upstream gateway: named operation dispatch plus envelope validation."""

import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from ncm_api.errors import InvalidUpstreamResponse, UnknownOperation, UpstreamRejected

logger = logging.getLogger(__name__)

# (payload) -> {"body": dict, "cookie": str | list[str]}
Operation = Callable[[Dict[str, Any]], Dict[str, Any]]

REQUIRED_OPERATIONS = (
    "search",
    "playlist_track_all",
    "user_playlist",
    "song_url_v1",
    "lyric",
    "login_status",
    "login_refresh",
    "logout",
    "login_qr_key",
    "login_qr_create",
    "login_qr_check",
)

DEFAULT_ALLOWED_CODES = frozenset({200})


class UpstreamGateway:
    """Calls upstream operations by name through a registry.

    The registry is checked once at construction so a missing operation
    fails at startup rather than on the first request that needs it.
    """

    def __init__(
        self,
        registry: Mapping[str, Operation],
        required: Iterable[str] = REQUIRED_OPERATIONS,
    ):
        for name in required:
            if not callable(registry.get(name)):
                raise UnknownOperation(name)
        self._registry = dict(registry)

    def invoke(self, operation: str, payload: Optional[dict] = None) -> dict:
        fn = self._registry.get(operation)
        if not callable(fn):
            raise UnknownOperation(operation)
        result = fn(dict(payload or {}))
        if not isinstance(result, dict):
            raise InvalidUpstreamResponse(operation)
        return result

    def call(
        self,
        operation: str,
        payload: Optional[dict] = None,
        allowed_codes: Iterable[int] = DEFAULT_ALLOWED_CODES,
    ) -> dict:
        """Invoke an operation and check its envelope in one step."""
        envelope = self.invoke(operation, payload)
        assert_accepted(envelope, operation, allowed_codes)
        return envelope


def _status_code(body: dict) -> Optional[int]:
    code = body.get("code")
    if isinstance(code, bool):
        return None
    try:
        return int(code)
    except (TypeError, ValueError):
        return None


def assert_accepted(
    envelope: dict,
    operation: str,
    allowed_codes: Iterable[int] = DEFAULT_ALLOWED_CODES,
) -> None:
    """Raise UpstreamRejected unless the envelope's status code is allowed.

    Bodies without a ``code`` field are accepted; some endpoints omit it.
    """
    body = envelope.get("body")
    if not isinstance(body, dict) or (not body and "code" not in body):
        raise UpstreamRejected(f"empty body from operation: {operation}")
    if "code" not in body:
        return

    code = _status_code(body)
    if code is not None and code in set(allowed_codes):
        return

    message = body.get("msg") or body.get("message") or f"code={body.get('code')}"
    logger.debug("%s rejected upstream code=%s", operation, body.get("code"))
    raise UpstreamRejected(f"{operation} failed: {message}", code=code)
