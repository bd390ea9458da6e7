"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path

from .docker_secrets import load_secret
from .providers import ProviderConfig, load_providers


@dataclass
class AppConfig:
    """Application configuration container."""
    demo_mode: bool
    secret_key: str

    # Auth providers
    auth_config_path: str = ""
    request_timeout: float = 5.0
    redirect_base_url: str = ""
    providers: dict[str, ProviderConfig] = field(default_factory=dict)

    def provider_names(self) -> list[str]:
        return list(self.providers)


def _parse_timeout(raw: str) -> float:
    try:
        timeout = float(raw)
    except ValueError:
        raise RuntimeError(f"AUTH_REQUEST_TIMEOUT must be a number, got {raw!r}") from None
    if timeout <= 0:
        raise RuntimeError("AUTH_REQUEST_TIMEOUT must be positive")
    return timeout


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"

    # Flask secret key
    secret_key = load_secret("flask_secret_key", "FLASK_SECRET_KEY")
    if not secret_key:
        if not demo_mode:
            raise RuntimeError("FLASK_SECRET_KEY not found in /run/secrets or environment")
        secret_key = secrets.token_urlsafe(48)
        print("[demo-mode] Generated temporary FLASK_SECRET_KEY")

    # Provider definitions
    auth_config_path = os.environ.get("AUTH_CONFIG", "").strip()
    if not auth_config_path and demo_mode:
        auth_config_path = "config/auth.yaml"
    if not auth_config_path:
        raise RuntimeError("Environment variable AUTH_CONFIG is required in production mode.")

    providers: dict[str, ProviderConfig] = {}
    if Path(auth_config_path).exists() or not demo_mode:
        providers = load_providers(auth_config_path)
    else:
        print(f"[demo-mode] {auth_config_path} not found; no providers configured")

    request_timeout = _parse_timeout(os.environ.get("AUTH_REQUEST_TIMEOUT", "5"))
    redirect_base_url = os.environ.get(
        "AUTH_REDIRECT_BASE_URL",
        "http://localhost:5000" if demo_mode else "",
    ).rstrip("/")

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; providers={','.join(providers) or '-'}")

    return AppConfig(
        demo_mode=demo_mode,
        secret_key=secret_key,
        auth_config_path=auth_config_path,
        request_timeout=request_timeout,
        redirect_base_url=redirect_base_url,
        providers=providers,
    )
