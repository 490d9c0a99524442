"""
auth/components.py -- Explicit construction of the auth core from Settings.

Everything the core needs is built here, once, and handed to its consumers:
the API lifespan stores the result on app.state, the CLI uses it directly,
and tests build their own with cheap settings. No component looks another up
from a registry; each receives its collaborators through its constructor.

Layer rule: may import from core/ (the kernel). No imports from api/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.access import AccessDecisionEngine, build_rule_set
from auth.models import AuthDecision
from auth.oracle import PwnedPasswordsOracle
from auth.passwords import CredentialService, PasswordHasher
from auth.registration import RegistrationService
from auth.store import DEFAULT_DB_URL, CredentialStore
from core.config import Settings

logger = logging.getLogger("gatehouse.auth")


@dataclass
class Components:
    access_engine: AccessDecisionEngine
    credential_store: CredentialStore
    credential_service: CredentialService
    registration_service: RegistrationService

    def close(self) -> None:
        self.credential_store.close()


def build_components(settings: Settings, store: CredentialStore | None = None) -> Components:
    """Build the engine, store, credential service, and registration service.

    Raises ValueError if ACCESS_RULES contains an invalid pattern or
    requirement, so a bad policy stops startup instead of serving requests.
    Pass store to reuse an existing CredentialStore (tests do).
    """
    rule_set = build_rule_set(settings.access_rules)
    engine = AccessDecisionEngine(rule_set, default_policy=AuthDecision(settings.default_policy))
    logger.info("Access rules loaded (%d rules, default=%s)", len(rule_set), settings.default_policy)

    if store is None:
        store = CredentialStore(settings.database_url or DEFAULT_DB_URL)

    oracle = None
    if settings.oracle_enabled:
        oracle = PwnedPasswordsOracle(settings.oracle_url, timeout_seconds=settings.oracle_timeout_ms / 1000)

    hasher = PasswordHasher(cost=settings.hash_cost, concurrency_cap=settings.hash_concurrency_cap)
    credentials = CredentialService(hasher, oracle)
    registration = RegistrationService(
        store,
        credentials,
        reject_compromised=settings.reject_compromised,
        min_password_length=settings.min_password_length,
        default_role=settings.default_role,
    )
    return Components(
        access_engine=engine,
        credential_store=store,
        credential_service=credentials,
        registration_service=registration,
    )
