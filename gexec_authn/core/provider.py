"""Provider facade: turns an OAuth2 token into a canonical ``User``.

Flow per call (no retries at this layer):

    oidc:   verify id_token -> map claims
    others: GET profile     -> map claims -> [github, empty email] GET emails

A ``Provider`` is immutable after construction and safe to share between
request threads; every call creates its own HTTP session.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Mapping, Optional

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.requests_client import OAuth2Session

from gexec_authn.config.providers import Driver, ProviderConfig
from gexec_authn.core.exceptions import (
    ConfigError,
    EmailDecodeFailed,
    EmailFetchFailed,
    MissingIDToken,
    ProfileBadStatus,
    ProfileDecodeFailed,
    ProfileFetchFailed,
)
from gexec_authn.core.mappers import MAPPERS
from gexec_authn.core.models import MappingResult, User
from gexec_authn.core.verifier import IDTokenVerifier

REQUEST_TIMEOUT = 5.0

SessionFactory = Callable[[Mapping[str, Any]], requests.Session]


def oauth_session(token: Mapping[str, Any]) -> OAuth2Session:
    """Requests session that attaches ``token`` as a Bearer credential."""
    return OAuth2Session(token=dict(token))


class Provider:
    """Identity resolution for one configured provider.

    Usage:
        provider = Provider.from_config(cfg)
        user = provider.claims(token)
    """

    def __init__(
        self,
        config: ProviderConfig,
        verifier: Optional[IDTokenVerifier] = None,
        session_factory: Optional[SessionFactory] = None,
        timeout: float = REQUEST_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ):
        if config.driver is Driver.OIDC and verifier is None:
            raise ConfigError(f"Provider {config.name}: oidc driver requires an ID token verifier")
        self._config = config
        self._mapper = MAPPERS[config.driver]
        self._verifier = verifier
        self._session_factory = session_factory or oauth_session
        self._timeout = timeout
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: ProviderConfig, timeout: float = REQUEST_TIMEOUT, **kwargs: Any) -> "Provider":
        """Build a provider without network calls; OIDC keys resolve on first use."""
        verifier = kwargs.pop("verifier", None)
        if config.driver is Driver.OIDC and verifier is None:
            verifier = IDTokenVerifier(
                config.issuer,
                config.client_id,
                jwks_uri=config.endpoints.jwks,
                timeout=timeout,
            )
        return cls(config, verifier=verifier, timeout=timeout, **kwargs)

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def driver(self) -> Driver:
        return self._config.driver

    # ─────────────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────────────
    def claims(self, token: Mapping[str, Any], timeout: Optional[float] = None) -> User:
        """Resolve the canonical user behind ``token``.

        Args:
            token: OAuth2 token (``access_token``, optional ``id_token``)
            timeout: Per-request timeout in seconds (defaults to the provider's)

        Returns:
            User with every resolvable field populated

        Raises:
            AuthnError: Any structural failure (see ``core.exceptions``)
        """
        timeout = self._timeout if timeout is None else timeout

        raw = self.fetch_claims(token, timeout)
        user, _ = self.extract_user(raw)

        if self.driver is Driver.GITHUB and not user.email:
            user = self.backfill_email(user, token, timeout)

        self._logger.info("[%s] Resolved identity: driver=%s login=%s", self.name, self.driver.value, user.login)
        return user

    def fetch_claims(self, token: Mapping[str, Any], timeout: Optional[float] = None) -> dict[str, Any]:
        """Produce the raw claim set: verified ID token (oidc) or profile JSON."""
        timeout = self._timeout if timeout is None else timeout
        if self.driver is Driver.OIDC:
            return self._verify_id_token(token)
        return self._fetch_profile(token, timeout)

    def extract_user(self, raw: Mapping[str, Any]) -> MappingResult:
        """Map raw claims and log every field that could not be mapped."""
        user, diagnostics = self._mapper(raw, self._config.mappings)
        for diagnostic in diagnostics:
            self._logger.warning(
                "[%s] %s",
                self.name,
                diagnostic.message,
                extra={"attr": diagnostic.field, "mapping": diagnostic.source, "observed": diagnostic.observed},
            )
        return user, diagnostics

    def backfill_email(self, user: User, token: Mapping[str, Any], timeout: Optional[float] = None) -> User:
        """Fill ``user.email`` with the first primary, verified address.

        Leaves the email empty when no entry qualifies.

        Raises:
            EmailFetchFailed: Transport error or non-2xx status
            EmailDecodeFailed: Body is not a JSON array
        """
        timeout = self._timeout if timeout is None else timeout
        url = self._config.endpoints.email

        session = self._session_factory(token)
        try:
            resp = session.get(url, timeout=timeout)
        except (requests.RequestException, AuthlibBaseError) as exc:
            raise EmailFetchFailed(f"failed to fetch emails: {exc}", self.name) from exc
        finally:
            session.close()

        if not 200 <= resp.status_code < 300:
            raise EmailFetchFailed(f"bad status code returned: {resp.status_code} ({url})", self.name)

        try:
            mails = resp.json()
        except ValueError as exc:
            raise EmailDecodeFailed(f"failed to decode emails: {exc}", self.name) from exc
        if not isinstance(mails, list):
            raise EmailDecodeFailed("failed to decode emails: expected a JSON array", self.name)

        for mail in mails:
            if not isinstance(mail, dict):
                continue
            address = mail.get("email")
            if mail.get("primary") is True and mail.get("verified") is True and isinstance(address, str):
                return user.with_email(address)

        self._logger.info("[%s] No primary verified email for %s", self.name, user.login)
        return user

    # ─────────────────────────────────────────────────────────────────────────
    # Fetch Paths
    # ─────────────────────────────────────────────────────────────────────────
    def _verify_id_token(self, token: Mapping[str, Any]) -> dict[str, Any]:
        raw_token = token.get("id_token") if isinstance(token, Mapping) else None
        if not isinstance(raw_token, str) or not raw_token:
            raise MissingIDToken("token response carries no id_token", self.name)
        return self._verifier.verify(raw_token, provider=self.name)

    def _fetch_profile(self, token: Mapping[str, Any], timeout: float) -> dict[str, Any]:
        url = self._config.endpoints.profile

        session = self._session_factory(token)
        try:
            resp = session.get(url, timeout=timeout)
        except (requests.RequestException, AuthlibBaseError) as exc:
            raise ProfileFetchFailed(f"failed to fetch userinfo: {exc}", self.name) from exc
        finally:
            session.close()

        if not 200 <= resp.status_code < 300:
            raise ProfileBadStatus(resp.status_code, url, self.name)

        try:
            attrs = resp.json()
        except ValueError as exc:
            raise ProfileDecodeFailed(f"failed to decode userinfo: {exc}", self.name) from exc
        if not isinstance(attrs, dict):
            raise ProfileDecodeFailed("failed to decode userinfo: expected a JSON object", self.name)
        return attrs
