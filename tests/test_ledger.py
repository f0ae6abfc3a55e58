"""
tests/test_ledger.py

Transaction log: hash chain, signatures, persistence and tamper detection.
"""

import json

import pytest

from recordledger import VM, Account, auction_program
from recordledger.core.exceptions import LedgerError
from recordledger.ledger import Ledger, LedgerEntry


@pytest.fixture
def node():
    return Account.generate()


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "data" / "ledger.jsonl"


@pytest.fixture
def filled(node, ledger_path, auctioneer, alice, bob):
    """A persisted log holding three accepted transactions."""
    vm = VM(account=node, ledger=Ledger(node, ledger_path))
    vm.deploy(auction_program(auctioneer.address))
    bid_a = vm.execute_as(alice, "auction.aleo", "place_bid", bidder=alice.address, amount=1)
    bid_b = vm.execute_as(bob, "auction.aleo", "place_bid", bidder=bob.address, amount=2)
    vm.execute_as(auctioneer, "auction.aleo", "resolve",
                  first=bid_a.outputs[0], second=bid_b.outputs[0])
    return vm.ledger


def _rewrite(path, mutate):
    lines = [json.loads(line) for line in path.read_text().splitlines()]
    mutate(lines)
    path.write_text("".join(json.dumps(line) + "\n" for line in lines))


class TestChain:

    def test_genesis_and_links(self, filled):
        entries = filled.get_all_entries()
        assert [e.index for e in entries] == [0, 1, 2]
        assert entries[0].previous_hash == Ledger.GENESIS_HASH
        assert entries[1].previous_hash == entries[0].compute_hash()
        assert entries[2].previous_hash == entries[1].compute_hash()
        assert filled.verify() == []

    def test_signed_by_node(self, filled, node):
        assert {e.signer for e in filled.get_all_entries()} == {node.address}

    def test_entry_roundtrip(self, filled):
        entry = filled.get_entry_by_index(0)
        assert LedgerEntry.from_dict(entry.to_dict()) == entry
        assert filled.get_entry_by_index(3) is None

    def test_queries(self, filled):
        entry = filled.get_entry_by_index(1)
        tx_id = entry.data["transaction_id"]
        assert filled.get_transaction(tx_id) == entry
        assert filled.get_transaction("tx-missing") is None
        assert len(filled.get_entries_by_status("accepted")) == 3

        stats = filled.get_stats()
        assert stats["total_entries"] == 3
        assert stats["by_status"] == {"accepted": 3}
        assert stats["head_hash"] == filled.get_entry_by_index(2).compute_hash()

    def test_empty_stats(self, node):
        stats = Ledger(node).get_stats()
        assert stats["total_entries"] == 0
        assert stats["head_hash"] is None


class TestPersistence:

    def test_reload(self, filled, node, ledger_path):
        reloaded = Ledger(node, ledger_path)
        assert [e.to_dict() for e in reloaded.get_all_entries()] == \
               [e.to_dict() for e in filled.get_all_entries()]

    def test_append_after_reload_continues_chain(self, filled, node, ledger_path, alice):
        vm = VM(account=node, ledger=Ledger(node, ledger_path))
        vm.deploy(auction_program(alice.address))
        vm.execute_as(alice, "auction.aleo", "place_bid", bidder=alice.address, amount=3)
        assert len(vm.ledger.get_all_entries()) == 4
        assert Ledger(None, ledger_path).verify() == []

    def test_read_only(self, filled, ledger_path):
        reader = Ledger(None, ledger_path)
        assert reader.verify() == []
        with pytest.raises(LedgerError, match="read-only"):
            reader._create_entry("transaction", {})

    def test_malformed_line(self, ledger_path, node):
        ledger_path.parent.mkdir(parents=True)
        ledger_path.write_text("{not json}\n")
        with pytest.raises(LedgerError, match="line 1"):
            Ledger(node, ledger_path)


class TestTamperDetection:

    def test_modified_data(self, filled, ledger_path):
        def mutate(lines):
            lines[1]["data"]["status"] = "rejected"
        _rewrite(ledger_path, mutate)

        violations = Ledger(None, ledger_path, verify_on_load=False).verify()
        assert violations == ["data hash mismatch at index 1"]
        with pytest.raises(LedgerError):
            Ledger(None, ledger_path)

    def test_deleted_entry(self, filled, ledger_path):
        _rewrite(ledger_path, lambda lines: lines.pop(1))
        violations = Ledger(None, ledger_path, verify_on_load=False).verify()
        assert any(v.startswith("chain break") for v in violations)

    def test_resigned_by_other_key(self, filled, ledger_path):
        forger = Account.generate()

        def mutate(lines):
            entry = LedgerEntry.from_dict(lines[2])
            lines[2]["signature"] = forger.sign(bytes.fromhex(entry.compute_hash()))
        _rewrite(ledger_path, mutate)

        violations = Ledger(None, ledger_path, verify_on_load=False).verify()
        assert violations == ["invalid signature at index 2"]
