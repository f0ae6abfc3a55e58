"""
tests/test_crypto.py

Accounts, addresses and detached signature verification.
"""

import pytest

from recordledger.core.crypto import (
    Account,
    address_from_public_key,
    public_key_from_address,
)
from recordledger.core.types import ADDRESS, ADDRESS_LENGTH


class TestAddress:

    def test_address_shape(self, alice):
        assert len(alice.address) == ADDRESS_LENGTH
        assert alice.address.startswith("aleo1")
        ADDRESS.check(alice.address)

    def test_address_roundtrips_public_key(self, alice):
        assert public_key_from_address(alice.address) == alice.public_key_hex
        assert address_from_public_key(alice.public_key_hex) == alice.address

    def test_seed_is_deterministic(self):
        a = Account.from_private_bytes(b"\x01" * 32)
        b = Account.from_private_bytes(b"\x01" * 32)
        assert a.address == b.address

    def test_bad_seed_length(self):
        with pytest.raises(ValueError):
            Account.from_private_bytes(b"\x01" * 31)

    def test_checksum_detects_typo(self, alice):
        body = alice.address[5:]
        swapped = "b" if body[0] != "b" else "c"
        with pytest.raises(ValueError):
            public_key_from_address("aleo1" + swapped + body[1:])

    def test_malformed_address(self):
        with pytest.raises(ValueError):
            public_key_from_address("aleo1nope")


class TestSigning:

    def test_sign_and_verify(self, alice):
        sig = alice.sign(b"payload")
        assert "=" not in sig
        assert Account.verify_detached(b"payload", sig, alice.address)

    def test_wrong_data(self, alice):
        sig = alice.sign(b"payload")
        assert not Account.verify_detached(b"payload!", sig, alice.address)

    def test_wrong_address(self, alice, bob):
        sig = alice.sign(b"payload")
        assert not Account.verify_detached(b"payload", sig, bob.address)

    def test_garbage_never_raises(self, alice):
        assert not Account.verify_detached(b"payload", "not-base64!!", alice.address)
        assert not Account.verify_detached(b"payload", alice.sign(b"payload"), "aleo1nope")


class TestPersistence:

    def test_save_and_load(self, alice, tmp_path):
        path = tmp_path / "keys" / "alice.pem"
        alice.save(path)
        assert Account.from_file(path).address == alice.address

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Account.from_file(tmp_path / "missing.pem")

    def test_not_a_key(self, tmp_path):
        path = tmp_path / "junk.pem"
        path.write_text("not a key")
        with pytest.raises(ValueError):
            Account.from_file(path)
