"""
auth/oracle.py -- Breach oracle adapter for the Pwned Passwords range API.

k-anonymity:
  The plaintext never leaves the process. We SHA-1 it, send only the first
  five hex characters, and receive every suffix sharing that prefix along
  with its breach count. The match happens locally.

  With "Add-Padding: true" the service pads each response with zero-count
  decoy suffixes so response size does not leak the prefix bucket. Decoys
  carry a count of 0 and must not count as a hit.

Failure policy:
  Any network failure, timeout, non-2xx status, or unparseable body raises
  OracleUnavailable. The caller (CredentialService.is_compromised) decides to
  fail open; this module never swallows the error itself.

Layer rule: no imports from api/. Import from core/ is allowed for constants.
"""

from __future__ import annotations

import hashlib
import logging

import requests

from auth.errors import OracleUnavailable
from core.config import DEFAULT_ORACLE_URL

logger = logging.getLogger("gatehouse.oracle")

# Module-level session shared across oracle instances for connection pooling.
# One well-known endpoint -- redirects beyond a couple of hops are suspicious.
_session = requests.Session()
_session.max_redirects = 3


class PwnedPasswordsOracle:
    """Compromised-password check against the Pwned Passwords range API.

    Usage:
        oracle = PwnedPasswordsOracle(timeout_seconds=2.0)
        oracle.check_compromised("password123")  # True
    """

    def __init__(
        self,
        base_url: str = DEFAULT_ORACLE_URL,
        timeout_seconds: float = 2.0,
        session: requests.Session | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session or _session

    def check_compromised(self, plaintext: str) -> bool:
        """Return True if plaintext appears in the breach corpus.

        Raises OracleUnavailable if the service cannot be reached or answers
        with something other than a range listing.
        """
        digest = hashlib.sha1(plaintext.encode("utf-8")).hexdigest().upper()  # noqa: S324 # nosec B324 -- protocol-mandated
        prefix, suffix = digest[:5], digest[5:]
        try:
            resp = self._session.get(
                f"{self.base_url}/range/{prefix}",
                headers={"Add-Padding": "true"},
                timeout=self.timeout_seconds,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise OracleUnavailable(f"Pwned Passwords request failed: {e}") from e
        return _suffix_in_range(suffix, resp.text)


def _suffix_in_range(suffix: str, body: str) -> bool:
    """Return True if suffix is listed in the range body with a non-zero count.

    Each line is "<35 hex chars>:<count>". Raises OracleUnavailable on a line
    that does not have that shape.
    """
    for line in body.splitlines():
        line = line.strip()
        if not line:
            continue
        candidate, sep, count = line.partition(":")
        count = count.strip()
        if not sep or not (count.isascii() and count.isdigit()):
            raise OracleUnavailable("Unexpected Pwned Passwords response format.")
        if candidate.upper() == suffix:
            return int(count) > 0
    return False
