"""Shared test fixtures and module-level mocking for the ncm-bridge test suite.

This conftest centralises the ``sys.modules`` patching that is required
because the real ``pyncm`` package may not be installed in every test
environment. Keeping the mocks here (rather than in each test file) means
that adding a new import to a source module won't silently break an
unrelated test file.

Fixtures
--------
- ``cookie_file`` — a path under ``tmp_path`` for the persisted session.
- ``store`` — an empty ``CredentialStore`` backed by ``cookie_file``.
- ``fake_upstream`` — a registry of ``MagicMock`` operations that answer
  ``{"body": {"code": 200}}`` unless told otherwise.
- ``gateway`` / ``coordinator`` — built on ``fake_upstream`` and ``store``.
- ``shutdown`` / ``client`` — a Flask test client with shutdown stubbed.
"""

from unittest.mock import MagicMock, patch

import pytest


# ============================================================================
# Module-level sys.modules mocking
# ============================================================================
#
# Applied at *import time* (before pytest collects any test modules) so
# that ``ncm_api.upstream`` and ``bridge_server.server`` never hit a real
# ``pyncm`` package or the network.

_pyncm_mock = MagicMock()

_pyncm_mocks = {
    "pyncm": _pyncm_mock,
    "pyncm.apis": _pyncm_mock.apis,
    "pyncm.apis.cloudsearch": _pyncm_mock.apis.cloudsearch,
    "pyncm.apis.login": _pyncm_mock.apis.login,
    "pyncm.apis.playlist": _pyncm_mock.apis.playlist,
    "pyncm.apis.track": _pyncm_mock.apis.track,
    "pyncm.apis.user": _pyncm_mock.apis.user,
}

_pyncm_patch = patch.dict("sys.modules", _pyncm_mocks)
_pyncm_patch.start()

import ncm_api.upstream as upstream_module  # noqa: E402
import bridge_server.server as server_module  # noqa: E402

from ncm_api.credential_store import CredentialStore  # noqa: E402
from ncm_api.gateway import REQUIRED_OPERATIONS, UpstreamGateway  # noqa: E402
from ncm_api.session import SessionCoordinator  # noqa: E402


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture()
def cookie_file(tmp_path):
    return tmp_path / "state" / "netease" / "session-cookie.json"


@pytest.fixture()
def store(cookie_file):
    return CredentialStore(cookie_file)


@pytest.fixture()
def fake_upstream():
    """A registry where every required operation is a MagicMock."""
    return {
        name: MagicMock(name=name, return_value={"body": {"code": 200}})
        for name in REQUIRED_OPERATIONS
    }


@pytest.fixture()
def gateway(fake_upstream):
    return UpstreamGateway(fake_upstream)


@pytest.fixture()
def coordinator(store, gateway):
    return SessionCoordinator(store, gateway)


@pytest.fixture()
def shutdown():
    return MagicMock(name="shutdown")


@pytest.fixture()
def client(store, gateway, shutdown):
    app = server_module.create_app(store, gateway, shutdown=shutdown)
    app.testing = True
    return app.test_client()
