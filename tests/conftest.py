"""Pytest shared fixtures for identity resolution tests."""
import json
import pathlib
import sys
import time
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import jwt
import pytest
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from gexec_authn.config.providers import DEFAULT_SCOPES, Driver, Endpoints, Mappings, ProviderConfig


ISSUER = "https://sso.example.com/realms/demo"
CLIENT_ID = "gexec"


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting live provider endpoints.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _stub_get(url, *args, **kwargs):
        if url.endswith("/.well-known/openid-configuration"):
            return FakeResponse({"jwks_uri": f"{ISSUER}/protocol/openid-connect/certs"})
        raise RuntimeError(f"Unexpected HTTP GET in unit test: {url}")

    def _stub_post(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP POST in unit test: {url}")

    monkeypatch.setattr(requests, "get", _stub_get)
    monkeypatch.setattr(requests, "post", _stub_post)


# ─────────────────────────────────────────────────────────────────────────────
# Fake HTTP Layer
# ─────────────────────────────────────────────────────────────────────────────
class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, payload=None, status_code: int = 200, text: Optional[str] = None):
        self._payload = payload
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None and self.text:
            return json.loads(self.text)
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(response=self)


class FakeSession:
    """OAuth session stub: maps URL -> FakeResponse (or exception to raise)."""

    def __init__(self, routes: dict):
        self.routes = routes
        self.calls: list[tuple[str, dict]] = []
        self.closed = False
        self.token = None

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        outcome = self.routes.get(url)
        if outcome is None:
            raise RuntimeError(f"Unexpected URL in test: {url}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


@pytest.fixture()
def fake_session():
    """Build a session factory backed by a ``FakeSession``.

    Usage:
        factory, session = fake_session({url: FakeResponse({...})})
    """
    def _build(routes: dict):
        session = FakeSession(routes)

        def factory(token):
            session.token = token
            return session

        return factory, session

    return _build


@pytest.fixture()
def http_transport(monkeypatch):
    """Answer ``requests.Session`` traffic at the transport adapter.

    Usage:
        responses, sent = http_transport
        responses["https://api.example.com/user"] = (200, {...})
        # sent: list of (PreparedRequest, adapter kwargs)
    """
    sent = []
    responses = {}

    def _send(adapter, request, **kwargs):
        sent.append((request, kwargs))
        url = request.url.split("?", 1)[0]
        if url not in responses:
            raise RuntimeError(f"Unexpected {request.method} in unit test: {request.url}")
        status_code, payload = responses[url]
        resp = requests.Response()
        resp.status_code = status_code
        resp._content = json.dumps(payload).encode()
        resp.headers["Content-Type"] = "application/json"
        resp.encoding = "utf-8"
        resp.url = request.url
        resp.request = request
        return resp

    monkeypatch.setattr(requests.adapters.HTTPAdapter, "send", _send)
    return responses, sent


# ─────────────────────────────────────────────────────────────────────────────
# Provider Config Helpers
# ─────────────────────────────────────────────────────────────────────────────
PROFILE_URLS = {
    Driver.ENTRAID: "https://graph.microsoft.com/v1.0/me",
    Driver.GOOGLE: "https://www.googleapis.com/oauth2/v2/userinfo",
    Driver.GITEA: "https://gitea.example.com/login/oauth/userinfo",
    Driver.GITLAB: "https://gitlab.com/api/v4/user",
    Driver.GITHUB: "https://api.github.com/user",
}
GITHUB_EMAIL_URL = "https://api.github.com/user/emails"


def make_provider_config(driver: Driver, **overrides) -> ProviderConfig:
    base = dict(
        name=driver.value,
        driver=driver,
        display=driver.value.title(),
        client_id=CLIENT_ID,
        client_secret="secret",
        scopes=DEFAULT_SCOPES[driver],
        issuer=ISSUER if driver is Driver.OIDC else "",
        endpoints=Endpoints(
            profile=PROFILE_URLS.get(driver, ""),
            email=GITHUB_EMAIL_URL if driver is Driver.GITHUB else "",
        ),
        mappings=Mappings(login="preferred_username", name="name", email="email", role="groups")
        if driver is Driver.OIDC else Mappings(),
    )
    base.update(overrides)
    return ProviderConfig(**base)


# ─────────────────────────────────────────────────────────────────────────────
# RSA Key Pair for JWT Testing
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def rsa_key_pair():
    """Generate RSA key pair for JWT signing in tests."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_key = private_key.public_key()

    return {
        "private_key": private_key,
        "private_pem": private_pem,
        "public_key": public_key,
    }


class DummySigningKey:
    def __init__(self, key):
        self.key = key


class DummyJWKS:
    """Stand-in for ``PyJWKClient`` returning a fixed public key."""

    def __init__(self, public_key):
        self.public_key = public_key
        self.calls = 0

    def get_signing_key_from_jwt(self, token):
        self.calls += 1
        jwt.get_unverified_header(token)
        return DummySigningKey(self.public_key)


# ─────────────────────────────────────────────────────────────────────────────
# JWT Token Helpers
# ─────────────────────────────────────────────────────────────────────────────
def create_id_token(
    rsa_key_pair: dict,
    issuer: str = ISSUER,
    audience: str = CLIENT_ID,
    sub: str = "user-123",
    exp_offset: int = 3600,
    kid: str = "default-key-id",
    **extra_claims,
) -> str:
    """Create an RS256-signed ID token for testing."""
    now = int(time.time())
    payload = {
        "iss": issuer,
        "aud": audience,
        "sub": sub,
        "exp": now + exp_offset,
        "iat": now,
    }
    payload.update(extra_claims)
    return jwt.encode(payload, rsa_key_pair["private_pem"], algorithm="RS256", headers={"kid": kid})


def public_jwk_set(rsa_key_pair: dict, kid: str = "default-key-id") -> dict:
    """JWKS document publishing the test key pair's public half."""
    jwk = json.loads(RSAAlgorithm.to_jwk(rsa_key_pair["public_key"]))
    jwk.update({"kid": kid, "use": "sig", "alg": "RS256"})
    return {"keys": [jwk]}


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires live providers)"
    )
