"""Unit tests for auth/passwords.py -- hashing, verification, breach check facade.

Uses bcrypt cost 4 (the hasher fixture) so the suite stays fast; the cost is
embedded in each hash, so nothing here depends on the production cost.
"""

import threading
import time

import bcrypt
import pytest

from auth.errors import EncodingError, MalformedHashError
from auth.passwords import MAX_PASSWORD_BYTES, CredentialService, PasswordHasher

# ---------------------------------------------------------------------------
# TestHash
# ---------------------------------------------------------------------------


class TestHash:
    def test_encoded_hash_is_self_describing(self, hasher):
        encoded = hasher.hash("s3cret-password")
        assert encoded.startswith("{bcrypt}$2b$04$")
        # tag + "$2b$04$" + 22-char salt + 31-char digest
        assert len(encoded) == len("{bcrypt}") + 60

    def test_same_password_hashes_differently(self, hasher):
        first = hasher.hash("same-password")
        second = hasher.hash("same-password")
        assert first != second
        assert hasher.verify("same-password", first)
        assert hasher.verify("same-password", second)

    def test_empty_password_rejected(self, hasher):
        with pytest.raises(EncodingError):
            hasher.hash("")

    def test_password_over_byte_bound_rejected(self, hasher):
        with pytest.raises(EncodingError):
            hasher.hash("a" * (MAX_PASSWORD_BYTES + 1))

    def test_byte_bound_counts_utf8_bytes(self, hasher):
        # 25 three-byte characters = 75 bytes, over the 72-byte bound.
        with pytest.raises(EncodingError):
            hasher.hash("€" * 25)

    def test_password_at_byte_bound_accepted(self, hasher):
        plain = "b" * MAX_PASSWORD_BYTES
        assert hasher.verify(plain, hasher.hash(plain))

    def test_cost_is_embedded(self, hasher):
        assert hasher.cost_of(hasher.hash("password-1")) == 4

    def test_needs_rehash_below_configured_cost(self, hasher):
        stronger = PasswordHasher(cost=5, concurrency_cap=1)
        assert stronger.needs_rehash(hasher.hash("password-1"))
        assert not hasher.needs_rehash(stronger.hash("password-1"))
        assert not hasher.needs_rehash(hasher.hash("password-1"))


# ---------------------------------------------------------------------------
# TestVerify
# ---------------------------------------------------------------------------


class TestVerify:
    def test_correct_password_verifies(self, hasher):
        assert hasher.verify("correct horse", hasher.hash("correct horse"))

    def test_wrong_password_fails(self, hasher):
        encoded = hasher.hash("correct horse")
        assert hasher.verify("Correct horse", encoded) is False
        assert hasher.verify("correct horse ", encoded) is False

    def test_hash_from_other_cost_verifies(self, hasher):
        other = PasswordHasher(cost=5, concurrency_cap=1)
        assert hasher.verify("portable", other.hash("portable"))

    def test_empty_plaintext_returns_false(self, hasher):
        assert hasher.verify("", hasher.hash("not-empty")) is False

    def test_oversized_plaintext_returns_false(self, hasher):
        assert hasher.verify("a" * 200, hasher.hash("a" * 72)) is False

    @pytest.mark.parametrize(
        "encoded",
        [
            "",
            "$2b$04$abcdefghijklmnopqrstuuJz6b7PfNg3JmZt5bMYm8zjU9QeL0yQa",  # no tag
            "{noop}plaintext",
            "{sha256}deadbeef",
            "{bcrypt}",
            "{bcrypt}$2b$04$tooshort",
            "{bcrypt}$2b$99$abcdefghijklmnopqrstuuJz6b7PfNg3JmZt5bMYm8zjU9QeL0yQa",
            "{bcrypt}$9z$04$abcdefghijklmnopqrstuuJz6b7PfNg3JmZt5bMYm8zjU9QeL0yQa",
        ],
    )
    def test_malformed_hash_raises(self, hasher, encoded):
        with pytest.raises(MalformedHashError):
            hasher.verify("whatever", encoded)

    def test_malformed_hash_raises_even_for_empty_plaintext(self, hasher):
        with pytest.raises(MalformedHashError):
            hasher.verify("", "{noop}secret")

    def test_equalize_timing_does_not_raise(self, hasher):
        hasher.equalize_timing("")
        hasher.equalize_timing("anything")


# ---------------------------------------------------------------------------
# TestConstruction
# ---------------------------------------------------------------------------


class TestConstruction:
    @pytest.mark.parametrize("cost", [0, 3, 32])
    def test_cost_out_of_range_rejected(self, cost):
        with pytest.raises(ValueError, match="cost"):
            PasswordHasher(cost=cost)

    def test_concurrency_cap_must_be_positive(self):
        with pytest.raises(ValueError, match="concurrency_cap"):
            PasswordHasher(cost=4, concurrency_cap=0)

    def test_max_bytes_cannot_exceed_bcrypt_limit(self):
        with pytest.raises(ValueError, match="max_bytes"):
            PasswordHasher(cost=4, max_bytes=100)

    @pytest.mark.parametrize("cap", [1, 2])
    def test_concurrent_hashing_respects_cap(self, cap, monkeypatch):
        hasher = PasswordHasher(cost=4, concurrency_cap=cap)
        real_hashpw = bcrypt.hashpw
        lock = threading.Lock()
        active = 0
        peak = 0

        def tracking_hashpw(raw, salt):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            try:
                time.sleep(0.02)
                return real_hashpw(raw, salt)
            finally:
                with lock:
                    active -= 1

        monkeypatch.setattr("auth.passwords.bcrypt.hashpw", tracking_hashpw)
        results: list[str] = []

        def worker(i: int) -> None:
            results.append(hasher.hash(f"password-{i}"))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 6
        assert 1 <= peak <= cap


# ---------------------------------------------------------------------------
# TestCredentialService
# ---------------------------------------------------------------------------


class TestCredentialService:
    def test_no_oracle_means_not_compromised(self, credentials):
        assert credentials.is_compromised("password") is False

    def test_oracle_positive(self, hasher, stub_oracle):
        stub_oracle.compromised = True
        service = CredentialService(hasher, stub_oracle)
        assert service.is_compromised("password") is True
        assert stub_oracle.calls == ["password"]

    def test_oracle_unavailable_fails_open(self, hasher, stub_oracle, caplog):
        stub_oracle.unavailable = True
        service = CredentialService(hasher, stub_oracle)
        with caplog.at_level("WARNING", logger="gatehouse.auth"):
            assert service.is_compromised("password") is False
        assert "Breach oracle unavailable" in caplog.text

    def test_hash_and_verify_delegate(self, credentials):
        encoded = credentials.hash("delegated-1")
        assert credentials.verify("delegated-1", encoded)
        assert not credentials.verify("delegated-2", encoded)
