"""Identity provider configuration loaded from the auth config file.

Example ``auth.yaml``::

    providers:
      - name: github
        display: GitHub
        driver: github
        client_id: abc123
      - name: keycloak
        display: Keycloak
        driver: oidc
        client_id: gexec
        issuer: https://sso.example.com/realms/demo
        mappings:
          login: preferred_username
          role: groups
"""
from __future__ import annotations
import enum
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from gexec_authn.config.docker_secrets import load_secret
from gexec_authn.core.exceptions import ConfigError


class Driver(str, enum.Enum):
    OIDC = "oidc"
    ENTRAID = "entraid"
    GOOGLE = "google"
    GITEA = "gitea"
    GITLAB = "gitlab"
    GITHUB = "github"


@dataclass(frozen=True)
class Endpoints:
    auth: str = ""
    token: str = ""
    profile: str = ""
    email: str = ""
    jwks: str = ""


@dataclass(frozen=True)
class Mappings:
    """Claim keys feeding ``User`` fields (consulted by the oidc driver only)."""
    login: str = ""
    name: str = ""
    email: str = ""
    role: str = ""


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    driver: Driver
    display: str = ""
    client_id: str = ""
    client_secret: str = ""
    scopes: tuple[str, ...] = ()
    issuer: str = ""
    endpoints: Endpoints = field(default_factory=Endpoints)
    mappings: Mappings = field(default_factory=Mappings)


# ─────────────────────────────────────────────────────────────────────────────
# Driver Defaults
# ─────────────────────────────────────────────────────────────────────────────
DEFAULT_ENDPOINTS: dict[Driver, Endpoints] = {
    Driver.GITHUB: Endpoints(
        auth="https://github.com/login/oauth/authorize",
        token="https://github.com/login/oauth/access_token",
        profile="https://api.github.com/user",
        email="https://api.github.com/user/emails",
    ),
    Driver.GITLAB: Endpoints(
        auth="https://gitlab.com/oauth/authorize",
        token="https://gitlab.com/oauth/token",
        profile="https://gitlab.com/api/v4/user",
    ),
    Driver.GOOGLE: Endpoints(
        auth="https://accounts.google.com/o/oauth2/auth",
        token="https://oauth2.googleapis.com/token",
        profile="https://www.googleapis.com/oauth2/v2/userinfo",
        jwks="https://www.googleapis.com/oauth2/v3/certs",
    ),
    Driver.ENTRAID: Endpoints(
        auth="https://login.microsoftonline.com/common/oauth2/v2.0/authorize",
        token="https://login.microsoftonline.com/common/oauth2/v2.0/token",
        profile="https://graph.microsoft.com/v1.0/me",
    ),
}

DEFAULT_SCOPES: dict[Driver, tuple[str, ...]] = {
    Driver.OIDC: ("openid", "profile", "email"),
    Driver.ENTRAID: ("User.Read",),
    Driver.GOOGLE: ("openid", "profile", "email"),
    Driver.GITEA: ("openid", "profile", "email"),
    Driver.GITLAB: ("read_user",),
    Driver.GITHUB: ("read:user", "user:email"),
}

DEFAULT_OIDC_MAPPINGS = Mappings(login="preferred_username", name="name", email="email", role="")

_PROVIDER_KEYS = {"name", "display", "driver", "client_id", "client_secret", "scopes", "issuer", "endpoints", "mappings"}


def _load_client_secret(name: str) -> str:
    """Read ``<name>_client_secret`` from /run/secrets, then the environment."""
    env_var = f"{name.upper().replace('-', '_')}_CLIENT_SECRET"
    return load_secret(f"{name}_client_secret", env_var) or ""


def _section(entry: dict, key: str, label: str) -> dict:
    value = entry.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Provider {label}: '{key}' must be a mapping")
    return value


def _with_defaults(endpoints: Endpoints, defaults: Endpoints | None) -> Endpoints:
    if defaults is None:
        return endpoints
    return Endpoints(
        auth=endpoints.auth or defaults.auth,
        token=endpoints.token or defaults.token,
        profile=endpoints.profile or defaults.profile,
        email=endpoints.email or defaults.email,
        jwks=endpoints.jwks or defaults.jwks,
    )


def parse_provider(entry: Any, index: int = 0) -> ProviderConfig:
    """Build a validated ``ProviderConfig`` from one ``providers`` entry.

    Raises:
        ConfigError: If the entry is malformed or misses a required value
    """
    if not isinstance(entry, dict):
        raise ConfigError(f"Provider #{index}: entry must be a mapping")

    name = str(entry.get("name") or "").strip()
    label = name or f"#{index}"
    if not name:
        raise ConfigError(f"Provider {label}: 'name' is required")

    unknown = set(entry) - _PROVIDER_KEYS
    if unknown:
        raise ConfigError(f"Provider {label}: unknown keys {sorted(unknown)}")

    try:
        driver = Driver(str(entry.get("driver") or "").strip().lower())
    except ValueError:
        raise ConfigError(f"Provider {label}: unsupported driver {entry.get('driver')!r}") from None

    raw_mappings = _section(entry, "mappings", label)
    try:
        endpoints = Endpoints(**{k: str(v or "") for k, v in _section(entry, "endpoints", label).items()})
        mappings = Mappings(**{k: str(v or "") for k, v in raw_mappings.items()})
    except TypeError as exc:
        raise ConfigError(f"Provider {label}: {exc}") from exc

    if driver is Driver.OIDC:
        mappings = replace(
            mappings,
            login=mappings.login if "login" in raw_mappings else DEFAULT_OIDC_MAPPINGS.login,
            name=mappings.name if "name" in raw_mappings else DEFAULT_OIDC_MAPPINGS.name,
            email=mappings.email if "email" in raw_mappings else DEFAULT_OIDC_MAPPINGS.email,
        )

    endpoints = _with_defaults(endpoints, DEFAULT_ENDPOINTS.get(driver))

    scopes = entry.get("scopes") or DEFAULT_SCOPES[driver]
    if isinstance(scopes, str):
        scopes = scopes.split()

    issuer = str(entry.get("issuer") or "").rstrip("/")
    if driver is Driver.OIDC and not issuer:
        raise ConfigError(f"Provider {label}: oidc driver requires 'issuer'")
    if driver is not Driver.OIDC and not endpoints.profile:
        raise ConfigError(f"Provider {label}: {driver.value} driver requires 'endpoints.profile'")
    if driver is Driver.GITHUB and not endpoints.email:
        raise ConfigError(f"Provider {label}: github driver requires 'endpoints.email'")
    # an id_token returned for the openid scope is checked against this key set
    if driver is not Driver.OIDC and "openid" in scopes and not endpoints.jwks:
        raise ConfigError(f"Provider {label}: 'openid' scope on {driver.value} driver requires 'endpoints.jwks'")

    return ProviderConfig(
        name=name,
        driver=driver,
        display=str(entry.get("display") or name),
        client_id=str(entry.get("client_id") or ""),
        client_secret=str(entry.get("client_secret") or "") or _load_client_secret(name),
        scopes=tuple(str(scope) for scope in scopes),
        issuer=issuer,
        endpoints=endpoints,
        mappings=mappings,
    )


def load_providers(path: str | Path) -> dict[str, ProviderConfig]:
    """Load all providers from a YAML auth config file, keyed by name."""
    config_path = Path(path)
    try:
        document = yaml.safe_load(config_path.read_text()) or {}
    except OSError as exc:
        raise ConfigError(f"Failed to read auth config {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse auth config {config_path}: {exc}") from exc

    if not isinstance(document, dict):
        raise ConfigError(f"Auth config {config_path} must be a mapping")

    entries = document.get("providers") or []
    if not isinstance(entries, list):
        raise ConfigError(f"Auth config {config_path}: 'providers' must be a list")

    providers: dict[str, ProviderConfig] = {}
    for index, entry in enumerate(entries):
        provider = parse_provider(entry, index)
        if provider.name in providers:
            raise ConfigError(f"Provider {provider.name}: duplicate name")
        providers[provider.name] = provider
    return providers
