"""Authentication routes: provider listing, login redirect and callback.

Multi-IdP Support:
- Every provider in the auth config gets an authlib OAuth client and a
  ``Provider`` (built once in ``init_oauth``)
- GET /api/v1/auth/<name>/login starts the authorization code flow (PKCE)
- GET /api/v1/auth/<name>/callback exchanges the code and resolves the user

The callback only reports the resolved identity; issuing sessions or tokens
belongs to the caller of this service.
"""
from __future__ import annotations
import base64
import hashlib
import secrets
import string

from authlib.integrations.flask_client import OAuth
from flask import Blueprint, abort, current_app, jsonify, redirect, session, url_for

from gexec_authn.config.providers import Driver
from gexec_authn.core.exceptions import ConfigError
from gexec_authn.core.provider import Provider

bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


def init_oauth(app, cfg) -> dict[str, Provider]:
    """Register an OAuth client and build a ``Provider`` per configured provider."""
    oauth = OAuth(app)
    providers: dict[str, Provider] = {}

    for name, provider_cfg in cfg.providers.items():
        register_kwargs = {
            "name": name,
            "client_id": provider_cfg.client_id,
            "client_secret": provider_cfg.client_secret or None,
            "client_kwargs": {"scope": " ".join(provider_cfg.scopes)},
        }
        if provider_cfg.driver is Driver.OIDC:
            register_kwargs["server_metadata_url"] = f"{provider_cfg.issuer}/.well-known/openid-configuration"
        else:
            if "openid" in provider_cfg.scopes and not provider_cfg.endpoints.jwks:
                raise ConfigError(
                    f"Provider {name}: 'openid' scope on {provider_cfg.driver.value} driver requires 'endpoints.jwks'"
                )
            register_kwargs["authorize_url"] = provider_cfg.endpoints.auth
            register_kwargs["access_token_url"] = provider_cfg.endpoints.token
            if provider_cfg.endpoints.jwks:
                # authlib checks the id_token that openid-scoped logins return
                register_kwargs["jwks_uri"] = provider_cfg.endpoints.jwks

        oauth.register(**register_kwargs)
        providers[name] = Provider.from_config(provider_cfg, timeout=cfg.request_timeout)

    app.extensions["authn_oauth"] = oauth
    app.extensions["authn_providers"] = providers
    return providers


def get_provider(name: str) -> Provider:
    """Look up a configured provider or abort with 404."""
    provider = current_app.extensions.get("authn_providers", {}).get(name)
    if provider is None:
        abort(404, description=f"Unknown provider: {name}")
    return provider


def get_oauth_client(name: str):
    oauth: OAuth = current_app.extensions["authn_oauth"]
    client = oauth.create_client(name)
    if client is None:
        abort(404, description=f"Unknown provider: {name}")
    return client


def _redirect_uri(name: str) -> str:
    cfg = current_app.config["APP_CONFIG"]
    path = url_for("auth.callback", name=name)
    if cfg.redirect_base_url:
        return f"{cfg.redirect_base_url}{path}"
    return url_for("auth.callback", name=name, _external=True)


# ─────────────────────────────────────────────────────────────────────────────
# PKCE Helpers
# ─────────────────────────────────────────────────────────────────────────────
def _generate_code_verifier(length: int = 64) -> str:
    """Generate PKCE code verifier."""
    alphabet = string.ascii_letters + string.digits + "-._~"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _build_code_challenge(code_verifier: str) -> str:
    """Build PKCE code challenge from verifier."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────
@bp.route("/providers")
def list_providers():
    """List configured identity providers."""
    providers = current_app.extensions.get("authn_providers", {})
    return jsonify({
        "providers": [
            {"name": name, "display": provider.config.display, "driver": provider.driver.value}
            for name, provider in providers.items()
        ]
    })


@bp.route("/<name>/login")
def login(name: str):
    """Initiate the authorization code flow with PKCE."""
    get_provider(name)
    client = get_oauth_client(name)

    code_verifier = _generate_code_verifier()
    session[f"pkce_code_verifier:{name}"] = code_verifier

    return client.authorize_redirect(
        redirect_uri=_redirect_uri(name),
        code_challenge=_build_code_challenge(code_verifier),
        code_challenge_method="S256",
    )


@bp.route("/<name>/callback")
def callback(name: str):
    """Exchange the authorization code and resolve the canonical user."""
    provider = get_provider(name)
    client = get_oauth_client(name)

    code_verifier = session.pop(f"pkce_code_verifier:{name}", None)
    if not code_verifier:
        return redirect(url_for("auth.login", name=name))

    token = client.authorize_access_token(code_verifier=code_verifier)
    user = provider.claims(token)

    current_app.logger.info(f"[Auth] Provider: {name}, login: {user.login}, roles: {list(user.roles)}")
    return jsonify({"provider": name, "user": user.to_dict()})
