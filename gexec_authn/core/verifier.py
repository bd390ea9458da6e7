"""OIDC ID token verification.

Validates signed ID tokens against the issuer's JSON Web Key Set:

- RSA/EC signature verification via JWKS (RFC 7517)
- Expiration, not-before, issuer and audience checks (RFC 7519)
- Key set location discovered lazily; signing keys cached by ``PyJWKClient``
"""
from __future__ import annotations
import logging
import threading
from typing import Any, Optional, Sequence

import jwt
import requests
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    InvalidSignatureError,
    InvalidTokenError,
    PyJWKClientError,
)

from gexec_authn.core.exceptions import ClaimsDecodeFailed, TokenVerificationFailed

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5


def discover_jwks_uri(issuer: str, timeout: float = REQUEST_TIMEOUT) -> str:
    """Read ``jwks_uri`` from the issuer's discovery document."""
    url = f"{issuer.rstrip('/')}/.well-known/openid-configuration"
    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    jwks_uri = resp.json().get("jwks_uri")
    if not jwks_uri:
        raise RuntimeError(f"jwks_uri missing from discovery document: {url}")
    return jwks_uri


class IDTokenVerifier:
    """Verifies ID tokens for one issuer/client pair.

    When ``jwks_uri`` is empty it is resolved through discovery on the first
    ``verify`` call, so an unreachable issuer fails logins, not startup.

    Usage:
        verifier = IDTokenVerifier("https://sso/realms/demo", "gexec")
        claims = verifier.verify(token["id_token"])
    """

    def __init__(
        self,
        issuer: str,
        client_id: str,
        jwks_uri: str = "",
        algorithms: Sequence[str] = ("RS256",),
        leeway: int = 5,
        jwks_client: Optional[PyJWKClient] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.issuer = issuer
        self.client_id = client_id
        self.jwks_uri = jwks_uri
        self.algorithms = list(algorithms)
        self.leeway = leeway
        self.timeout = timeout
        self._jwks_client = jwks_client
        self._lock = threading.Lock()
        if self._jwks_client is None and jwks_uri:
            self._jwks_client = self._build_jwks_client(jwks_uri)

    @classmethod
    def from_discovery(
        cls,
        issuer: str,
        client_id: str,
        timeout: float = REQUEST_TIMEOUT,
        jwks_uri: str = "",
        **kwargs: Any,
    ) -> "IDTokenVerifier":
        """Build a verifier, resolving ``jwks_uri`` via discovery right away unless given."""
        if not jwks_uri:
            jwks_uri = discover_jwks_uri(issuer, timeout=timeout)
            logger.info("Resolved JWKS for %s: %s", issuer, jwks_uri)
        return cls(issuer, client_id, jwks_uri, timeout=timeout, **kwargs)

    @staticmethod
    def _build_jwks_client(jwks_uri: str) -> PyJWKClient:
        return PyJWKClient(
            jwks_uri,
            cache_keys=True,
            max_cached_keys=16,
            lifespan=3600,
            headers={"User-Agent": "gexec-authn/1.0"},
        )

    def _get_jwks_client(self, provider: str) -> PyJWKClient:
        if self._jwks_client is not None:
            return self._jwks_client
        with self._lock:
            if self._jwks_client is None:
                try:
                    jwks_uri = discover_jwks_uri(self.issuer, timeout=self.timeout)
                except (requests.RequestException, ValueError, RuntimeError) as exc:
                    raise TokenVerificationFailed(f"failed to resolve signing keys: {exc}", provider) from exc
                logger.info("Resolved JWKS for %s: %s", self.issuer, jwks_uri)
                self.jwks_uri = jwks_uri
                self._jwks_client = self._build_jwks_client(jwks_uri)
        return self._jwks_client

    def verify(self, raw_token: str, provider: str = "") -> dict[str, Any]:
        """Verify ``raw_token`` and return its claim set.

        Raises:
            TokenVerificationFailed: Bad signature, expired, wrong issuer or
                audience, unreachable issuer, or no matching signing key
            ClaimsDecodeFailed: Malformed token or payload
        """
        jwks_client = self._get_jwks_client(provider)
        try:
            signing_key = jwks_client.get_signing_key_from_jwt(raw_token)
            claims = jwt.decode(
                raw_token,
                signing_key.key,
                algorithms=self.algorithms,
                audience=self.client_id,
                issuer=self.issuer,
                options={
                    "verify_signature": True,
                    "verify_exp": True,
                    "verify_nbf": True,
                    "verify_iss": True,
                    "verify_aud": True,
                    "require": ["exp", "iat", "iss", "sub"],
                },
                leeway=self.leeway,
            )
        except InvalidSignatureError as exc:
            raise TokenVerificationFailed(f"failed to verify token: {exc}", provider) from exc
        except DecodeError as exc:
            raise ClaimsDecodeFailed(f"failed to parse claims: {exc}", provider) from exc
        except (InvalidTokenError, PyJWKClientError) as exc:
            raise TokenVerificationFailed(f"failed to verify token: {exc}", provider) from exc

        if not isinstance(claims, dict):
            raise ClaimsDecodeFailed("failed to parse claims: payload is not an object", provider)
        return claims
