"""
auth/models.py -- Domain types for access rules and stored credentials.

Pattern: Data class (pure data container, minimal logic). Stores, the engine,
and routes do the work; these types only own shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Requirement(str, Enum):
    """What a matching rule demands of the request."""

    PUBLIC = "PUBLIC"
    AUTHENTICATED = "AUTHENTICATED"
    DENY = "DENY"


class AuthDecision(str, Enum):
    """Output of AccessDecisionEngine.decide(). Never persisted."""

    ALLOW = "ALLOW"
    DENY = "DENY"
    REQUIRES_AUTH = "REQUIRES_AUTH"


@dataclass(frozen=True)
class Rule:
    """A path pattern plus the requirement applied when it matches.

    segments is the pattern split on "/" with the leading empty segment
    removed, so "/account/*" becomes ("account", "*"). Build rules through
    auth.access.compile_rule() so the pattern is validated.
    """

    pattern: str
    requirement: Requirement
    segments: tuple[str, ...]


@dataclass(frozen=True)
class RuleSet:
    """Ordered, immutable collection of rules. First match wins."""

    rules: tuple[Rule, ...] = ()

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


@dataclass
class CredentialRecord:
    """A registered identity as held by the credential store.

    identifier is the normalized e-mail address (stripped, lower-cased).
    hash_encoded is the self-describing "{bcrypt}$2b$..." string -- the
    plaintext password is never held on this object.
    id and created_at are None until the store assigns them on insert.
    """

    identifier: str
    hash_encoded: str
    role: str = "user"
    id: int | None = None
    created_at: str | None = None
