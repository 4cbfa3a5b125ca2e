"""Session coordination between inbound requests, the gateway and the store."""

import logging
import math
from typing import Any, Optional

from ncm_api.credential_store import CredentialStore, normalize_cookie_value
from ncm_api.gateway import UpstreamGateway

logger = logging.getLogger(__name__)


class SessionCoordinator:
    """Decides which cookie a request uses and absorbs refreshed cookies.

    ``absorb`` is the only path through which an upstream response moves
    the stored session forward.
    """

    def __init__(self, store: CredentialStore, gateway: UpstreamGateway):
        self.store = store
        self.gateway = gateway

    def resolve_credential(self, *overrides: Optional[str]) -> str:
        """Return the first non-blank override, else the stored cookie.

        Overrides are given in precedence order (header before query).
        """
        for override in overrides:
            if isinstance(override, str) and override.strip():
                return override.strip()
        return self.store.get()

    def absorb(self, envelope: Any) -> str:
        if not isinstance(envelope, dict):
            return self.store.get()

        body = envelope.get("body")
        from_body = normalize_cookie_value(
            body.get("cookie") if isinstance(body, dict) else None
        )
        if from_body:
            return self.store.set(from_body, "result.body.cookie")

        from_result = normalize_cookie_value(envelope.get("cookie"))
        if from_result:
            return self.store.set(from_result, "result.cookie")

        return self.store.get()

    def resolve_current_user_id(self, credential: str) -> Optional[int]:
        """Look up the logged-in user's id; None means not logged in.

        The account id takes precedence over the profile user id.
        """
        envelope = self.gateway.call("login_status", {"cookie": credential})
        self.absorb(envelope)

        data = envelope["body"].get("data")
        if not isinstance(data, dict):
            data = {}
        account = data.get("account")
        profile = data.get("profile")

        for holder, key in ((account, "id"), (profile, "userId")):
            if isinstance(holder, dict):
                uid = _positive_int(holder.get(key))
                if uid is not None:
                    return uid

        logger.warning("resolve_current_user_id failed: account/profile uid unavailable")
        return None


def _positive_int(raw: Any) -> Optional[int]:
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0 or not value.is_integer():
        return None
    return int(value)
