"""Identity resolution exceptions for error handling.

Every ``AuthnError`` aborts a ``Provider.claims`` call. Field-level mapping
problems never raise; they are reported as diagnostics instead.
"""
from __future__ import annotations


class ConfigError(Exception):
    """Provider configuration is invalid or incomplete."""
    pass


class AuthnError(Exception):
    """Base exception for all identity resolution failures.

    Attributes:
        provider: Name of the provider that failed (may be empty)
    """

    def __init__(self, message: str, provider: str = ""):
        self.provider = provider
        super().__init__(f"[{provider}] {message}" if provider else message)


class MissingIDToken(AuthnError):
    """OIDC token response carries no ``id_token`` string."""
    pass


class TokenVerificationFailed(AuthnError):
    """ID token signature, expiry, issuer or audience check failed."""
    pass


class ClaimsDecodeFailed(AuthnError):
    """Verified ID token payload could not be decoded into a claim set."""
    pass


class ProfileFetchFailed(AuthnError):
    """Transport error while calling the profile endpoint."""
    pass


class ProfileBadStatus(AuthnError):
    """Profile endpoint answered with a non-2xx status.

    Attributes:
        status_code: HTTP status code
        endpoint: Profile URL that failed
    """

    def __init__(self, status_code: int, endpoint: str, provider: str = ""):
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(f"bad status code returned: {status_code} ({endpoint})", provider)


class ProfileDecodeFailed(AuthnError):
    """Profile response body is not a JSON object."""
    pass


class EmailFetchFailed(AuthnError):
    """Transport error or bad status while calling the email endpoint."""
    pass


class EmailDecodeFailed(AuthnError):
    """Email endpoint response body is not a JSON array."""
    pass
