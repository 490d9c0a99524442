"""
auth/registration.py -- Registration flow orchestration.

Steps, in order:
  1. Normalize and validate the identifier and password   -> ValidationError
  2. Breach check (optional, fails open)                  -> WeakCredentialError
  3. Hash
  4. Persist                                              -> DuplicateIdentifierError
                                                             PersistenceError
  5. Return the stored record (hash only, never plaintext)

Store faults are logged here with full detail and re-raised as a
PersistenceError whose message is generic. The route layer can show that
message to a client without leaking driver or SQL text.

The role is never caller-supplied; new records get the configured default.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import re

from auth.errors import EncodingError, PersistenceError, StoreError, ValidationError, WeakCredentialError
from auth.models import CredentialRecord
from auth.passwords import CredentialService
from auth.store import CredentialRepository

logger = logging.getLogger("gatehouse.registration")

MAX_IDENTIFIER_LENGTH = 255

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_identifier(identifier: str) -> str:
    """Strip surrounding whitespace and lower-case an e-mail identifier."""
    return identifier.strip().lower()


class RegistrationService:
    """Create credential records from an identifier and plaintext password.

    Usage:
        service = RegistrationService(store, credentials)
        record = service.register("Jane@Example.com", "s3cure-enough")
        record.identifier  # "jane@example.com"
    """

    def __init__(
        self,
        store: CredentialRepository,
        credentials: CredentialService,
        reject_compromised: bool = True,
        min_password_length: int = 8,
        default_role: str = "user",
    ) -> None:
        self.store = store
        self.credentials = credentials
        self.reject_compromised = reject_compromised
        self.min_password_length = min_password_length
        self.default_role = default_role

    def register(self, identifier: str, plaintext: str) -> CredentialRecord:
        identifier = normalize_identifier(identifier or "")
        self._validate(identifier, plaintext)

        if self.reject_compromised and self.credentials.is_compromised(plaintext):
            logger.info("Registration rejected for %s: password found in breach corpus", identifier)
            raise WeakCredentialError("This password has appeared in a data breach. Choose a different one.")

        try:
            encoded = self.credentials.hash(plaintext)
        except EncodingError as exc:
            raise ValidationError(exc.message) from exc

        try:
            saved = self.store.insert(
                CredentialRecord(identifier=identifier, hash_encoded=encoded, role=self.default_role)
            )
        except StoreError as exc:
            logger.error("Registration store failure for %s", identifier, exc_info=exc)
            raise PersistenceError("Registration could not be completed.") from exc

        logger.info("Registered %s (id=%s, role=%s)", saved.identifier, saved.id, saved.role)
        return saved

    def _validate(self, identifier: str, plaintext: str) -> None:
        if not identifier:
            raise ValidationError("Email is required.")
        if len(identifier) > MAX_IDENTIFIER_LENGTH:
            raise ValidationError(f"Email must be at most {MAX_IDENTIFIER_LENGTH} characters.")
        if not _EMAIL_RE.match(identifier):
            raise ValidationError("Email address is not valid.")
        if not plaintext:
            raise ValidationError("Password is required.")
        if len(plaintext) < self.min_password_length:
            raise ValidationError(f"Password must be at least {self.min_password_length} characters.")
        max_bytes = self.credentials.hasher.max_bytes
        if len(plaintext.encode("utf-8")) > max_bytes:
            raise ValidationError(f"Password must be at most {max_bytes} bytes.")
