"""Tests for request signing and the password gate."""

from __future__ import annotations

import hashlib

from utils.signature import check_password, generate_signature, verify_signature


class TestSignature:
    def test_digest_format(self) -> None:
        expected = hashlib.sha256(b"1700000000000:hello:secret").hexdigest()
        assert generate_signature(1700000000000, "hello", "secret") == expected

    def test_verify_roundtrip(self) -> None:
        sign = generate_signature(42, "héllo", "secret")
        assert verify_signature(42, "héllo", "secret", sign)

    def test_verify_rejects_mismatch(self) -> None:
        sign = generate_signature(42, "hello", "secret")
        assert not verify_signature(43, "hello", "secret", sign)
        assert not verify_signature(42, "hello", "other", sign)
        assert not verify_signature(42, "hello", "secret", None)
        assert not verify_signature(42, "hello", "secret", "ünicode")


class TestPasswordGate:
    def test_disabled_gate_accepts_everything(self) -> None:
        assert check_password(None, [])
        assert check_password("anything", [])

    def test_list_membership(self) -> None:
        assert check_password("beta", ["alpha", "beta"])
        assert not check_password("gamma", ["alpha", "beta"])
        assert not check_password(None, ["alpha"])
