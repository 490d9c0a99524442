"""Unit tests for auth/access.py -- the access decision engine.

Pure logic, no I/O, no mocking. Covers:
- Default-deny for unmatched paths, and the explicit ALLOW default
- First-match-wins ordering
- Wildcard and exact matching (full-path, case-sensitive, one segment)
- Pattern validation at construction
- Path normalization
"""

import pytest

from auth.access import AccessDecisionEngine, build_rule_set, compile_rule, matches, normalize_path
from auth.models import AuthDecision, Requirement

# ---------------------------------------------------------------------------
# Inline helpers
# ---------------------------------------------------------------------------


def _engine(*pairs, default=AuthDecision.DENY):
    return AccessDecisionEngine(build_rule_set(pairs), default_policy=default)


_TUTORIAL = _engine(("/public", "PUBLIC"), ("/secure", "AUTHENTICATED"))


# ---------------------------------------------------------------------------
# TestDecide
# ---------------------------------------------------------------------------


class TestDecide:
    def test_public_path_without_credential_allows(self):
        assert _TUTORIAL.decide("/public", has_valid_credential=False) is AuthDecision.ALLOW

    def test_secure_path_without_credential_requires_auth(self):
        assert _TUTORIAL.decide("/secure", has_valid_credential=False) is AuthDecision.REQUIRES_AUTH

    def test_secure_path_with_credential_allows(self):
        assert _TUTORIAL.decide("/secure", has_valid_credential=True) is AuthDecision.ALLOW

    def test_unknown_path_denied_even_with_credential(self):
        assert _TUTORIAL.decide("/unknown", has_valid_credential=True) is AuthDecision.DENY

    def test_deny_rule_denies_authenticated_caller(self):
        engine = _engine(("/admin", "DENY"))
        assert engine.decide("/admin", has_valid_credential=True) is AuthDecision.DENY

    def test_public_path_with_credential_still_allows(self):
        assert _TUTORIAL.decide("/public", has_valid_credential=True) is AuthDecision.ALLOW

    @pytest.mark.parametrize("path", ["/", "/x", "/public/extra", "/secure/1", "/PUBLIC"])
    def test_unmatched_paths_fall_to_default_deny(self, path):
        assert _TUTORIAL.decide(path, has_valid_credential=False) is AuthDecision.DENY
        assert _TUTORIAL.decide(path, has_valid_credential=True) is AuthDecision.DENY

    def test_empty_rule_set_denies_everything(self):
        engine = _engine()
        assert engine.decide("/notices", has_valid_credential=True) is AuthDecision.DENY

    def test_explicit_allow_default(self):
        engine = _engine(("/secure", "AUTHENTICATED"), default=AuthDecision.ALLOW)
        assert engine.decide("/anything", has_valid_credential=False) is AuthDecision.ALLOW
        assert engine.decide("/secure", has_valid_credential=False) is AuthDecision.REQUIRES_AUTH

    def test_requires_auth_is_not_a_valid_default(self):
        with pytest.raises(ValueError, match="Default policy"):
            AccessDecisionEngine(build_rule_set([]), default_policy=AuthDecision.REQUIRES_AUTH)


# ---------------------------------------------------------------------------
# TestOrdering
# ---------------------------------------------------------------------------


class TestOrdering:
    def test_earlier_wildcard_deny_beats_later_exact_public(self):
        engine = _engine(("/admin/*", "DENY"), ("/admin/panel", "PUBLIC"))
        assert engine.decide("/admin/panel", has_valid_credential=False) is AuthDecision.DENY

    def test_earlier_exact_public_beats_later_wildcard_deny(self):
        engine = _engine(("/admin/panel", "PUBLIC"), ("/admin/*", "DENY"))
        assert engine.decide("/admin/panel", has_valid_credential=False) is AuthDecision.ALLOW
        assert engine.decide("/admin/users", has_valid_credential=True) is AuthDecision.DENY

    def test_duplicate_pattern_first_wins(self):
        engine = _engine(("/notices", "PUBLIC"), ("/notices", "DENY"))
        assert engine.decide("/notices", has_valid_credential=False) is AuthDecision.ALLOW

    def test_match_returns_first_rule(self):
        engine = _engine(("/account/*", "AUTHENTICATED"), ("/account/open", "PUBLIC"))
        rule = engine.match("/account/open")
        assert rule is not None
        assert rule.pattern == "/account/*"


# ---------------------------------------------------------------------------
# TestMatching
# ---------------------------------------------------------------------------


class TestMatching:
    def test_wildcard_matches_one_segment(self):
        rule = compile_rule("/account/*", "AUTHENTICATED")
        assert matches(rule, "/account/42")
        assert not matches(rule, "/account")
        assert not matches(rule, "/account/42/statements")

    def test_wildcard_in_middle(self):
        rule = compile_rule("/cards/*/limits", Requirement.AUTHENTICATED)
        assert matches(rule, "/cards/visa/limits")
        assert not matches(rule, "/cards/visa/limits/daily")
        assert not matches(rule, "/cards/limits")

    def test_exact_match_is_not_prefix_match(self):
        rule = compile_rule("/notices", "PUBLIC")
        assert matches(rule, "/notices")
        assert not matches(rule, "/notices/archive")
        assert not matches(rule, "/noticesX")

    def test_matching_is_case_sensitive(self):
        rule = compile_rule("/myAccount", "AUTHENTICATED")
        assert not matches(rule, "/myaccount")
        assert not matches(rule, "/MYACCOUNT")

    def test_root_pattern_only_matches_root(self):
        rule = compile_rule("/", "PUBLIC")
        assert matches(rule, "/")
        assert not matches(rule, "/notices")

    def test_root_wildcard_matches_single_segment_only(self):
        rule = compile_rule("/*", "PUBLIC")
        assert matches(rule, "/anything")
        assert not matches(rule, "/")
        assert not matches(rule, "/a/b")


# ---------------------------------------------------------------------------
# TestRuleValidation
# ---------------------------------------------------------------------------


class TestRuleValidation:
    @pytest.mark.parametrize(
        "pattern",
        [
            "myCards",  # missing leading slash
            "/a//b",  # empty segment
            "/notices/",  # trailing slash
            "/*/x/*",  # two wildcards
            "/a*",  # partial-segment wildcard
            "/**",
        ],
    )
    def test_invalid_patterns_rejected(self, pattern):
        with pytest.raises(ValueError):
            compile_rule(pattern, "PUBLIC")

    def test_unknown_requirement_rejected(self):
        with pytest.raises(ValueError, match="Unknown requirement"):
            build_rule_set([("/notices", "permitAll")])

    def test_rule_set_preserves_declaration_order(self):
        rule_set = build_rule_set([("/b", "PUBLIC"), ("/a", "DENY"), ("/c", "AUTHENTICATED")])
        assert [r.pattern for r in rule_set] == ["/b", "/a", "/c"]
        assert len(rule_set) == 3

    def test_rule_set_is_immutable(self):
        rule_set = build_rule_set([("/a", "PUBLIC")])
        with pytest.raises(AttributeError):
            rule_set.rules = ()  # type: ignore[misc]


# ---------------------------------------------------------------------------
# TestNormalizePath
# ---------------------------------------------------------------------------


class TestNormalizePath:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("/myAccount", "/myAccount"),
            ("/myAccount/", "/myAccount"),
            ("//myAccount", "/myAccount"),
            ("/account//42/", "/account/42"),
            ("/", "/"),
            ("", "/"),
            ("notices", "/notices"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_path(raw) == expected

    def test_trailing_slash_cannot_bypass_rule(self):
        path = normalize_path("/secure/")
        assert _TUTORIAL.decide(path, has_valid_credential=False) is AuthDecision.REQUIRES_AUTH
