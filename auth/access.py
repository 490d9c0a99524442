"""
auth/access.py -- Access Decision Engine.

Pattern: Chain of Responsibility over an immutable rule list. decide() walks
the RuleSet in declaration order and the first matching rule returns. A later,
broader rule can never override an earlier, more specific one.

Pattern syntax:
  "/notices"      exact, case-sensitive, full-path match
  "/account/*"    "*" matches exactly ONE non-empty segment

  At most one wildcard per pattern, and a wildcard must be a whole segment
  ("/a*" is rejected). Matching is full-path only: "/notices" does not match
  "/notices/archive" and "/account/*" does not match "/account/a/b".

Default policy:
  Unmatched paths fall to the engine's default, which is DENY unless the
  operator explicitly configures ALLOW. An ALLOW default is the
  "anyRequest().permitAll()" misconfiguration class -- every route someone
  forgets to list becomes public.

Purity: decide() does no I/O and touches no mutable state, so a single engine
is shared across all request threads without locking.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from auth.models import AuthDecision, Requirement, Rule, RuleSet

logger = logging.getLogger("gatehouse.access")

WILDCARD = "*"

_REPEATED_SLASHES = re.compile(r"/{2,}")


# ---------------------------------------------------------------------------
# Rule construction
# ---------------------------------------------------------------------------


def compile_rule(pattern: str, requirement: Requirement | str) -> Rule:
    """Validate a pattern and return an immutable Rule.

    Raises ValueError for patterns the matcher cannot honour safely:
    missing leading slash, empty segments, trailing slash, more than one
    wildcard, or a wildcard mixed with literal characters.
    """
    try:
        requirement = Requirement(requirement)
    except ValueError as exc:
        raise ValueError(f"Unknown requirement {requirement!r} for pattern {pattern!r}") from exc

    if not pattern.startswith("/"):
        raise ValueError(f"Rule pattern must be an absolute path: {pattern!r}")
    if pattern == "/":
        return Rule(pattern=pattern, requirement=requirement, segments=())

    segments = tuple(pattern[1:].split("/"))
    if any(seg == "" for seg in segments):
        raise ValueError(f"Rule pattern has an empty segment or trailing slash: {pattern!r}")
    if sum(1 for seg in segments if seg == WILDCARD) > 1:
        raise ValueError(f"Rule pattern may contain at most one wildcard segment: {pattern!r}")
    if any(WILDCARD in seg and seg != WILDCARD for seg in segments):
        raise ValueError(f"Wildcard must be a whole segment: {pattern!r}")

    return Rule(pattern=pattern, requirement=requirement, segments=segments)


def build_rule_set(pairs: Iterable[tuple[str, str]]) -> RuleSet:
    """Build a RuleSet from (pattern, requirement) pairs, preserving order.

    Accepts the shape used by Settings.access_rules. Duplicate patterns are
    kept (the first one wins at decision time) but logged, since the later
    entry is unreachable.
    """
    rules: list[Rule] = []
    seen: set[str] = set()
    for pattern, requirement in pairs:
        rule = compile_rule(pattern, requirement)
        if rule.pattern in seen:
            logger.warning("Access rule %s is shadowed by an earlier rule with the same pattern", rule.pattern)
        seen.add(rule.pattern)
        rules.append(rule)
    return RuleSet(rules=tuple(rules))


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def normalize_path(raw: str) -> str:
    """Return the engine's input form of a request path.

    Collapses repeated slashes, drops a trailing slash (except on root), and
    guarantees a single leading slash. The query string is the caller's
    concern -- pass request.url.path, not the full URL.

    Normalizing before matching closes the "/myAccount/" and "//myAccount"
    variants that would otherwise slip past an exact rule.
    """
    path = _REPEATED_SLASHES.sub("/", "/" + raw.lstrip("/"))
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path


def matches(rule: Rule, path: str) -> bool:
    """Return True if the rule's pattern matches the normalized path exactly."""
    if path == "/":
        return rule.segments == ()
    parts = path[1:].split("/")
    if len(parts) != len(rule.segments):
        return False
    for expected, actual in zip(rule.segments, parts):
        if expected == WILDCARD:
            if not actual:
                return False
        elif expected != actual:
            return False
    return True


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class AccessDecisionEngine:
    """Evaluate request paths against an ordered RuleSet.

    Usage:
        engine = AccessDecisionEngine(build_rule_set([("/notices", "PUBLIC")]))
        engine.decide("/notices", has_valid_credential=False)  # AuthDecision.ALLOW
        engine.decide("/other", has_valid_credential=True)     # AuthDecision.DENY
    """

    def __init__(self, rule_set: RuleSet, default_policy: AuthDecision = AuthDecision.DENY) -> None:
        if default_policy not in (AuthDecision.DENY, AuthDecision.ALLOW):
            raise ValueError(f"Default policy must be DENY or ALLOW, got {default_policy!r}")
        self.rule_set = rule_set
        self.default_policy = default_policy

    def match(self, path: str) -> Rule | None:
        """Return the first rule matching path, or None."""
        for rule in self.rule_set:
            if matches(rule, path):
                return rule
        return None

    def decide(self, path: str, has_valid_credential: bool) -> AuthDecision:
        """Return the access decision for path.

        PUBLIC -> ALLOW. DENY -> DENY. AUTHENTICATED -> ALLOW when the caller
        holds a valid credential, otherwise REQUIRES_AUTH. No match -> the
        configured default policy.
        """
        rule = self.match(path)
        if rule is None:
            return self.default_policy
        if rule.requirement is Requirement.PUBLIC:
            return AuthDecision.ALLOW
        if rule.requirement is Requirement.DENY:
            return AuthDecision.DENY
        return AuthDecision.ALLOW if has_valid_credential else AuthDecision.REQUIRES_AUTH
