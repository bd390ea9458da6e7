"""Core Identity Resolution Module

Turns provider-specific OAuth2/OIDC claims into a canonical user,
independent of HTTP frameworks (no Flask imports).

Module Structure:
    - claims.py     : Safe-cast helpers for loosely-typed claim sets
    - models.py     : User and Diagnostic records
    - mappers.py    : One pure claim mapper per driver
    - verifier.py   : OIDC ID token verification (JWKS)
    - provider.py   : Provider facade (fetch -> map -> email backfill)
    - exceptions.py : Structural error taxonomy

Usage Pattern:
    Import explicitly when needed:
        from gexec_authn.core.provider import Provider
        from gexec_authn.core.mappers import map_github_user
        from gexec_authn.core.exceptions import AuthnError
"""
