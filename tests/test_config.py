"""
tests/test_config.py

YAML configuration, VM.from_config, and state persistence across restarts.
"""

import textwrap

import pytest

from recordledger import (
    VM,
    Account,
    AlreadySpent,
    ArithmeticOverflow,
    RecordLedgerError,
    TypeMismatch,
    auction_program,
    token_program,
)
from recordledger.config import NodeConfig, load_config
from recordledger.core.exceptions import AuthorizationError, ConfigError
from recordledger.programs import build_program
from recordledger.runtime.auth import SignedCall


def _write(tmp_path, body):
    path = tmp_path / "node.yaml"
    path.write_text(textwrap.dedent(body))
    return path


@pytest.fixture
def config_file(tmp_path, auctioneer):
    return _write(tmp_path, f"""
        node:
          key_path: keys/node.pem
          ledger_path: data/ledger.jsonl
          state_path: data/state.json
        logging:
          level: debug
          json: true
        programs:
          - id: auction.aleo
            kind: auction
            auctioneer: {auctioneer.address}
          - id: token.aleo
            kind: token
    """)


class TestNodeConfig:

    def test_load(self, config_file, tmp_path, auctioneer):
        config = load_config(config_file)
        assert config.key_path == tmp_path / "keys" / "node.pem"
        assert config.ledger_path == tmp_path / "data" / "ledger.jsonl"
        assert config.state_path == tmp_path / "data" / "state.json"
        assert config.log_level == "DEBUG"
        assert config.log_json is True
        assert [(p.program_id, p.kind) for p in config.programs] == [
            ("auction.aleo", "auction"),
            ("token.aleo", "token"),
        ]
        assert config.programs[0].params == {"auctioneer": auctioneer.address}

    def test_defaults(self, tmp_path):
        config = load_config(_write(tmp_path, "{}\n"))
        assert config.key_path is None
        assert config.ledger_path is None
        assert config.log_level == "INFO"
        assert config.programs == []

    def test_absolute_paths_kept(self, tmp_path):
        config = NodeConfig.from_dict({"node": {"ledger_path": "/var/lib/ledger.jsonl"}})
        assert str(config.ledger_path) == "/var/lib/ledger.jsonl"

    def test_invalid_level(self, tmp_path):
        with pytest.raises(ConfigError, match="log level"):
            load_config(_write(tmp_path, "logging:\n  level: loud\n"))

    def test_program_missing_kind(self, tmp_path):
        with pytest.raises(ConfigError, match="kind"):
            load_config(_write(tmp_path, "programs:\n  - id: token.aleo\n"))

    def test_root_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, "- a\n- b\n"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_config(_write(tmp_path, "node: [unclosed\n"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yaml")


class TestBuildProgram:

    def test_unknown_kind(self):
        with pytest.raises(ConfigError, match="unknown program kind"):
            build_program("casino", "casino.aleo")

    def test_missing_parameter(self):
        with pytest.raises(ConfigError, match="bad parameters"):
            build_program("auction", "auction.aleo")

    def test_custom_program_id(self, auctioneer):
        program = build_program("auction", "sale.aleo", auctioneer=auctioneer.address)
        assert program.program_id == "sale.aleo"


class TestFromConfig:

    def test_generates_and_reuses_node_key(self, config_file, tmp_path):
        first = VM.from_config(load_config(config_file))
        assert (tmp_path / "keys" / "node.pem").exists()
        second = VM.from_config(load_config(config_file))
        assert second.account.address == first.account.address
        assert sorted(second.programs) == ["auction.aleo", "token.aleo"]

    def test_state_survives_restart(self, config_file, auctioneer, alice):
        vm = VM.from_config(load_config(config_file))
        bid = vm.execute_as(
            alice, "auction.aleo", "place_bid", bidder=alice.address, amount=42,
        ).outputs[0]
        vm.execute_as(alice, "token.aleo", "mint_public", receiver=alice.address, amount=9)
        token = vm.execute_as(
            alice, "token.aleo", "mint_private", receiver=alice.address, amount=3,
        ).outputs[0]
        vm.execute_as(alice, "token.aleo", "transfer_private",
                      sender=token, receiver=alice.address, amount=1)

        restarted = VM.from_config(load_config(config_file))

        assert restarted.records_of(auctioneer.address, "auction.aleo") == [bid]
        assert restarted.mapping_value("token.aleo", "account", alice.address) == 9
        assert restarted.records.is_spent(token.ref)
        assert len(restarted.records_of(alice.address, "token.aleo")) == 2
        assert len(restarted.ledger.get_all_entries()) == 4
        assert restarted.ledger.verify() == []

    def test_restored_spent_record_stays_spent(self, config_file, alice):
        vm = VM.from_config(load_config(config_file))
        token = vm.execute_as(
            alice, "token.aleo", "mint_private", receiver=alice.address, amount=3,
        ).outputs[0]
        vm.execute_as(alice, "token.aleo", "transfer_private",
                      sender=token, receiver=alice.address, amount=1)

        restarted = VM.from_config(load_config(config_file))
        with pytest.raises(AlreadySpent):
            restarted.execute_as(alice, "token.aleo", "transfer_private",
                                 sender=token.ref, receiver=alice.address, amount=1)

    def test_call_cannot_be_replayed_after_restart(self, config_file, alice):
        call = SignedCall.create(
            alice, "token.aleo", "mint_public", {"receiver": alice.address, "amount": 10},
        )
        VM.from_config(load_config(config_file)).execute(call)

        restarted = VM.from_config(load_config(config_file))
        with pytest.raises(AuthorizationError, match="already submitted"):
            restarted.execute(call)
        assert restarted.mapping_value("token.aleo", "account", alice.address) == 10

    def test_nonce_of_rejected_call_survives_restart(self, config_file, alice, bob):
        call = SignedCall.create(
            alice, "token.aleo", "transfer_public", {"receiver": bob.address, "amount": 5},
        )
        vm = VM.from_config(load_config(config_file))
        with pytest.raises(ArithmeticOverflow):
            vm.execute(call)
        vm.execute_as(alice, "token.aleo", "mint_public", receiver=alice.address, amount=5)

        restarted = VM.from_config(load_config(config_file))
        with pytest.raises(AuthorizationError):
            restarted.execute(call)
        assert restarted.mapping_value("token.aleo", "account", bob.address) is None

    def test_import_requires_empty_vm(self, vm, alice):
        vm.execute_as(alice, "token.aleo", "mint_private", receiver=alice.address, amount=1)
        state = vm.export_state()
        with pytest.raises(RecordLedgerError, match="empty"):
            vm.import_state(state)

    def test_import_requires_empty_mappings(self, vm, alice):
        vm.execute_as(alice, "token.aleo", "mint_public", receiver=alice.address, amount=1)
        with pytest.raises(RecordLedgerError, match="empty"):
            vm.import_state(vm.export_state())

    def test_failed_import_loads_nothing(self, vm, auctioneer, alice):
        vm.execute_as(alice, "token.aleo", "mint_public", receiver=alice.address, amount=5)
        vm.execute_as(alice, "token.aleo", "mint_private", receiver=alice.address, amount=6)
        state = vm.export_state()
        state["mappings"].append({
            "program_id": "token.aleo", "mapping": "account",
            "key": alice.address, "value": "not a number",
        })

        clone = VM(account=Account.generate())
        clone.deploy(auction_program(auctioneer.address))
        clone.deploy(token_program())
        with pytest.raises(TypeMismatch):
            clone.import_state(state)
        assert len(clone.records) == 0
        assert len(clone.mappings) == 0

        state["mappings"].pop()
        state["nonces"].append({"caller": alice.address})
        with pytest.raises(KeyError):
            clone.import_state(state)
        assert len(clone.records) == 0
        assert len(clone.mappings) == 0

    def test_export_import_roundtrip(self, vm, auctioneer, alice):
        vm.execute_as(alice, "token.aleo", "mint_public", receiver=alice.address, amount=5)
        vm.execute_as(alice, "token.aleo", "mint_private", receiver=alice.address, amount=6)

        clone = VM(account=Account.generate())
        clone.deploy(auction_program(auctioneer.address))
        clone.deploy(token_program())
        clone.import_state(vm.export_state())

        assert clone.mapping_value("token.aleo", "account", alice.address) == 5
        assert [r["amount"] for r in clone.records_of(alice.address)] == [6]
