"""Canonical identity records produced by the claim mappers."""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Mapping


@dataclass(frozen=True)
class Diagnostic:
    """A single field that could not be mapped from the raw claims.

    Attributes:
        field: Target ``User`` field (ident, login, name, email, roles)
        source: Claim key that was consulted
        observed: JSON kind of the value found, or ``missing``
    """
    field: str
    source: str
    observed: str

    @property
    def message(self) -> str:
        if self.observed == "missing":
            return f"Failed to fetch attr {self.field} from {self.source!r}"
        return f"Failed to convert attr {self.field} from {self.source!r} (type: {self.observed})"


@dataclass(frozen=True)
class User:
    """Provider-independent identity.

    Every field except ``raw`` may legitimately be empty; a missing optional
    claim is not an error.
    """
    ident: str = ""
    login: str = ""
    name: str = ""
    email: str = ""
    roles: tuple[str, ...] = ()
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def with_email(self, email: str) -> "User":
        """Return a copy with ``email`` replaced."""
        return replace(self, email=email)

    def to_dict(self, include_raw: bool = False) -> dict:
        data = {
            "ident": self.ident,
            "login": self.login,
            "name": self.name,
            "email": self.email,
            "roles": list(self.roles),
        }
        if include_raw:
            data["raw"] = dict(self.raw)
        return data


MappingResult = tuple[User, list[Diagnostic]]
