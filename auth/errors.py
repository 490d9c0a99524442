"""
auth/errors.py -- Typed error taxonomy for the auth core.

Every failure the core can signal has its own class so callers branch on type,
never on message text. Each class carries a machine-readable `code` that the
route layer copies into the error envelope.

Message policy:
  User-correctable errors (ValidationError, WeakCredentialError,
  DuplicateIdentifierError) carry a message that is safe to show the client.
  Infrastructure errors (StoreError, PersistenceError) carry a generic message;
  the underlying exception is chained via `raise ... from exc` and only ever
  reaches internal logs.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class GatehouseError(Exception):
    """Base class for every error raised by the auth core."""

    code: str = "error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


# ---------------------------------------------------------------------------
# Registration outcomes
# ---------------------------------------------------------------------------


class RegistrationError(GatehouseError):
    """Any failure of the registration flow."""

    code = "registration_failed"


class ValidationError(RegistrationError):
    """Identifier or password has the wrong shape. User-correctable."""

    code = "validation_error"


class WeakCredentialError(RegistrationError):
    """Password was found in a breach corpus. User-correctable."""

    code = "weak_password"


class DuplicateIdentifierError(RegistrationError):
    """The identifier is already registered."""

    code = "duplicate_identifier"


class PersistenceError(RegistrationError):
    """The store failed for a reason other than a duplicate.

    Always constructed with a generic message. The original StoreError is
    chained as __cause__ for logging.
    """

    code = "persistence_error"


# ---------------------------------------------------------------------------
# Credential subsystem
# ---------------------------------------------------------------------------


class EncodingError(GatehouseError):
    """Plaintext cannot be hashed (empty or over the length bound)."""

    code = "encoding_error"


class MalformedHashError(GatehouseError):
    """A stored hash cannot be parsed. Signals storage corruption."""

    code = "malformed_hash"


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class OracleUnavailable(GatehouseError):
    """The breach oracle could not answer (network, timeout, bad response)."""

    code = "oracle_unavailable"


class StoreError(GatehouseError):
    """The credential store failed."""

    code = "store_error"
