"""Claim mappers, one per identity provider family.

Every mapper is a pure function ``(raw, mappings) -> (User, diagnostics)``.
Missing or mistyped claims leave the target field empty and add a
``Diagnostic``; mappers never raise for field-level problems.

Source keys:

    driver    ident                login                       name          email
    oidc      sub                  mappings.login              mappings.name mappings.email
    entraid   id                   displayName (slugified)     displayName   mail
    google    id                   name (slugified)            name          email
    gitea     sub                  preferred_username          name          email
    gitlab    id (number)          username                    name          email
    github    id (number)          login                       name          email (nullable)
"""
from __future__ import annotations
from typing import Any, Callable, Mapping

from slugify import slugify

from gexec_authn.config.providers import Driver, Mappings
from gexec_authn.core.claims import (
    MISSING,
    as_identifier,
    as_string,
    as_string_list,
    claim_kind,
    lookup,
)
from gexec_authn.core.models import Diagnostic, MappingResult, User

Mapper = Callable[[Mapping[str, Any], Mappings], MappingResult]


class _Extractor:
    """Collects diagnostics while reading typed values out of a claim set."""

    def __init__(self, raw: Mapping[str, Any]):
        self.raw = raw
        self.diagnostics: list[Diagnostic] = []

    def _report(self, field: str, key: str, value: Any, observed: str | None = None) -> None:
        self.diagnostics.append(Diagnostic(field=field, source=key, observed=observed or claim_kind(value)))

    def string(self, field: str, key: str, nullable: bool = False) -> str:
        value = lookup(self.raw, key)
        if nullable and (value is MISSING or value is None):
            return ""
        typed = as_string(value)
        if typed is None:
            self._report(field, key, value)
            return ""
        return typed

    def identifier(self, field: str, key: str) -> str:
        value = lookup(self.raw, key)
        typed = as_identifier(value)
        if typed is None:
            observed = claim_kind(value)
            if observed == "number":
                observed = "number (not an exact integer)"
            self._report(field, key, value, observed)
            return ""
        return typed

    def string_list(self, field: str, key: str) -> tuple[str, ...]:
        value = lookup(self.raw, key)
        typed = as_string_list(value)
        if typed is None:
            observed = claim_kind(value)
            if observed == "array":
                bad = next(item for item in value if not isinstance(item, str))
                observed = f"array of {claim_kind(bad)}"
            self._report(field, key, value, observed)
            return ()
        return tuple(typed)


def map_oidc_user(raw: Mapping[str, Any], mappings: Mappings) -> MappingResult:
    """Generic OIDC: configurable claim keys; empty mappings are skipped."""
    extract = _Extractor(raw)
    user = User(
        ident=extract.string("ident", "sub"),
        login=extract.string("login", mappings.login) if mappings.login else "",
        name=extract.string("name", mappings.name) if mappings.name else "",
        email=extract.string("email", mappings.email) if mappings.email else "",
        roles=extract.string_list("roles", mappings.role) if mappings.role else (),
        raw=raw,
    )
    return user, extract.diagnostics


def map_entraid_user(raw: Mapping[str, Any], mappings: Mappings) -> MappingResult:
    """Microsoft Graph ``/me`` profile."""
    extract = _Extractor(raw)
    user = User(
        ident=extract.string("ident", "id"),
        login=slugify(extract.string("login", "displayName")),
        name=extract.string("name", "displayName"),
        email=extract.string("email", "mail"),
        raw=raw,
    )
    return user, extract.diagnostics


def map_google_user(raw: Mapping[str, Any], mappings: Mappings) -> MappingResult:
    """Google OAuth2 v2 userinfo."""
    extract = _Extractor(raw)
    user = User(
        ident=extract.string("ident", "id"),
        login=slugify(extract.string("login", "name")),
        name=extract.string("name", "name"),
        email=extract.string("email", "email"),
        raw=raw,
    )
    return user, extract.diagnostics


def map_gitea_user(raw: Mapping[str, Any], mappings: Mappings) -> MappingResult:
    """Gitea/Forgejo OIDC userinfo endpoint."""
    extract = _Extractor(raw)
    user = User(
        ident=extract.string("ident", "sub"),
        login=extract.string("login", "preferred_username"),
        name=extract.string("name", "name"),
        email=extract.string("email", "email"),
        raw=raw,
    )
    return user, extract.diagnostics


def map_gitlab_user(raw: Mapping[str, Any], mappings: Mappings) -> MappingResult:
    """GitLab ``/api/v4/user``."""
    extract = _Extractor(raw)
    user = User(
        ident=extract.identifier("ident", "id"),
        login=extract.string("login", "username"),
        name=extract.string("name", "name"),
        email=extract.string("email", "email"),
        raw=raw,
    )
    return user, extract.diagnostics


def map_github_user(raw: Mapping[str, Any], mappings: Mappings) -> MappingResult:
    """GitHub ``/user``.

    ``email`` is null whenever the user keeps their address private; that is
    expected and resolved by the email backfill, so it is not reported.
    """
    extract = _Extractor(raw)
    user = User(
        ident=extract.identifier("ident", "id"),
        login=extract.string("login", "login"),
        name=extract.string("name", "name"),
        email=extract.string("email", "email", nullable=True),
        raw=raw,
    )
    return user, extract.diagnostics


MAPPERS: dict[Driver, Mapper] = {
    Driver.OIDC: map_oidc_user,
    Driver.ENTRAID: map_entraid_user,
    Driver.GOOGLE: map_google_user,
    Driver.GITEA: map_gitea_user,
    Driver.GITLAB: map_gitlab_user,
    Driver.GITHUB: map_github_user,
}
