"""
auth/passwords.py -- Credential Subsystem: password hashing and verification.

Encoded format:
  "{bcrypt}$2b$12$<22-char salt><31-char digest>"

  The "{id}" prefix names the algorithm, so stored hashes stay readable after
  the default algorithm changes -- verify() dispatches on the tag, hash()
  always writes the current default. The bcrypt body itself embeds the cost
  and the 16-byte (128-bit) random salt, so verification needs nothing but
  the stored string.

Cost:
  bcrypt cost 12 takes roughly 200-300ms per operation on commodity hardware,
  which is the target range for interactive logins. The cost is a constructor
  argument (Settings.hash_cost); tests use 4.

Length bound:
  bcrypt only reads the first 72 bytes of its input. Rather than silently
  truncating, hash() refuses anything longer with EncodingError and verify()
  returns False for it. The bound also caps the work a single request can
  demand.

Concurrency cap:
  Every bcrypt call runs under a BoundedSemaphore. A flood of login or
  registration requests queues on the semaphore instead of spawning unbounded
  CPU-bound work across the thread pool.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Protocol

import bcrypt

from auth.errors import EncodingError, MalformedHashError, OracleUnavailable

logger = logging.getLogger("gatehouse.auth")

DEFAULT_COST = 12
MIN_COST = 4
MAX_COST = 31
MAX_PASSWORD_BYTES = 72

_ALGORITHM_ID = "bcrypt"
_FILLER = b"gatehouse-out-of-bounds"

_ENCODED_RE = re.compile(r"^\{(?P<id>[A-Za-z0-9_-]+)\}(?P<body>.*)$", re.DOTALL)
_BCRYPT_RE = re.compile(r"^\$2[aby]\$(?P<cost>\d{2})\$[./A-Za-z0-9]{53}$")


class BreachOracle(Protocol):
    """External compromised-password check. See auth/oracle.py."""

    def check_compromised(self, plaintext: str) -> bool:
        """Return True if plaintext appears in a breach corpus.

        Raises OracleUnavailable when the oracle cannot answer.
        """
        ...


# ---------------------------------------------------------------------------
# Hasher
# ---------------------------------------------------------------------------


class PasswordHasher:
    """Hash and verify passwords in the self-describing "{bcrypt}..." format.

    Usage:
        hasher = PasswordHasher(cost=12, concurrency_cap=4)
        encoded = hasher.hash("correct horse battery staple")
        hasher.verify("correct horse battery staple", encoded)  # True
    """

    def __init__(
        self,
        cost: int = DEFAULT_COST,
        concurrency_cap: int = 4,
        max_bytes: int = MAX_PASSWORD_BYTES,
    ) -> None:
        if not MIN_COST <= cost <= MAX_COST:
            raise ValueError(f"bcrypt cost must be between {MIN_COST} and {MAX_COST}, got {cost}")
        if concurrency_cap < 1:
            raise ValueError(f"concurrency_cap must be at least 1, got {concurrency_cap}")
        if not 1 <= max_bytes <= MAX_PASSWORD_BYTES:
            raise ValueError(f"max_bytes must be between 1 and {MAX_PASSWORD_BYTES}, got {max_bytes}")
        self.cost = cost
        self.max_bytes = max_bytes
        self._slots = threading.BoundedSemaphore(concurrency_cap)
        # Verified against when the identifier does not exist, so that path
        # costs the same as a wrong password. Computed once, at the same cost.
        self._dummy_hash = self.hash("gatehouse-timing-equalizer")
        self._dummy_body = self._parse(self._dummy_hash)

    def hash(self, plaintext: str) -> str:
        """Return the encoded hash of plaintext with a fresh random salt.

        Raises EncodingError if plaintext is empty or longer than max_bytes
        once UTF-8 encoded.
        """
        raw = self._encode(plaintext)
        if raw is None:
            raise EncodingError(f"Password must be between 1 and {self.max_bytes} bytes.")
        with self._slots:
            digest = bcrypt.hashpw(raw, bcrypt.gensalt(rounds=self.cost))
        return "{%s}%s" % (_ALGORITHM_ID, digest.decode("ascii"))

    def verify(self, plaintext: str, encoded: str) -> bool:
        """Return True if plaintext matches encoded. Constant-time comparison.

        Returns False on mismatch and for plaintext outside the length bounds.
        Raises MalformedHashError if encoded is not a well-formed
        "{bcrypt}$2b$..." string -- that indicates corrupted storage, not a
        wrong password, so it must not be folded into False.
        """
        body = self._parse(encoded)
        raw = self._encode(plaintext)
        if raw is None:
            # One checkpw regardless, so an empty or oversized password costs
            # the same as a wrong one.
            self._checkpw(_FILLER, self._dummy_body)
            return False
        return self._checkpw(raw, body)

    def needs_rehash(self, encoded: str) -> bool:
        """Return True if encoded was produced at a lower cost than this hasher uses."""
        return self.cost_of(encoded) < self.cost

    def cost_of(self, encoded: str) -> int:
        """Return the bcrypt cost embedded in encoded."""
        body = self._parse(encoded)
        return int(body[4:6])

    def equalize_timing(self, plaintext: str) -> None:
        """Spend one verification's worth of work against the dummy hash."""
        self.verify(plaintext, self._dummy_hash)

    def _checkpw(self, raw: bytes, body: str) -> bool:
        try:
            with self._slots:
                return bcrypt.checkpw(raw, body.encode("ascii"))
        except ValueError as exc:
            raise MalformedHashError("Stored password hash is malformed.") from exc

    def _encode(self, plaintext: str) -> bytes | None:
        if not plaintext:
            return None
        raw = plaintext.encode("utf-8")
        if len(raw) > self.max_bytes:
            return None
        return raw

    @staticmethod
    def _parse(encoded: str) -> str:
        if not isinstance(encoded, str):
            raise MalformedHashError("Stored password hash is malformed.")
        m = _ENCODED_RE.match(encoded)
        if m is None:
            raise MalformedHashError("Stored password hash has no algorithm tag.")
        if m.group("id") != _ALGORITHM_ID:
            raise MalformedHashError(f"Unsupported password hash algorithm {m.group('id')!r}.")
        body = m.group("body")
        bm = _BCRYPT_RE.match(body)
        if bm is None or not MIN_COST <= int(bm.group("cost")) <= MAX_COST:
            raise MalformedHashError("Stored bcrypt hash is malformed.")
        return body


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


class CredentialService:
    """Hashing, verification, and the optional breach check behind one object.

    The breach oracle is a non-critical enhancement: when it cannot answer,
    is_compromised() logs a warning and returns False (fail-open) so an outage
    upstream never blocks registration.
    """

    def __init__(self, hasher: PasswordHasher, oracle: BreachOracle | None = None) -> None:
        self.hasher = hasher
        self.oracle = oracle

    def hash(self, plaintext: str) -> str:
        return self.hasher.hash(plaintext)

    def verify(self, plaintext: str, encoded: str) -> bool:
        return self.hasher.verify(plaintext, encoded)

    def equalize_timing(self, plaintext: str) -> None:
        self.hasher.equalize_timing(plaintext)

    def needs_rehash(self, encoded: str) -> bool:
        return self.hasher.needs_rehash(encoded)

    def is_compromised(self, plaintext: str) -> bool:
        if self.oracle is None:
            return False
        try:
            return self.oracle.check_compromised(plaintext)
        except OracleUnavailable as exc:
            logger.warning("Breach oracle unavailable, skipping compromised-password check: %s", exc)
            return False
