"""
tests/test_record_store.py

Record schemas, record references and spend-once consumption.
"""

import pytest

from recordledger.core.exceptions import (
    AlreadySpent,
    NotOwner,
    ProgramError,
    RecordError,
    TypeMismatch,
    UnknownRecord,
)
from recordledger.core.models import Record, RecordSchema
from recordledger.core.types import ADDRESS, BOOLEAN, U64
from recordledger.store import RecordStore


PROGRAM = "notes.aleo"


@pytest.fixture
def schema():
    return RecordSchema("Note", [("amount", U64), ("memo_set", BOOLEAN)])


@pytest.fixture
def store():
    return RecordStore()


def _fields(amount=5):
    return {"amount": amount, "memo_set": False}


# ─────────────────────────────────────────────────────────────
# Schemas and records
# ─────────────────────────────────────────────────────────────

class TestSchema:

    def test_owner_cannot_be_redeclared(self):
        with pytest.raises(ProgramError):
            RecordSchema("Bad", [("owner", U64)])

    def test_duplicate_field(self):
        with pytest.raises(ProgramError):
            RecordSchema("Bad", [("a", U64), ("a", U64)])

    def test_field_needs_value_type(self):
        with pytest.raises(ProgramError):
            RecordSchema("Bad", [("a", int)])

    def test_missing_field(self, schema, alice):
        with pytest.raises(TypeMismatch):
            schema.instantiate(PROGRAM, alice.address, {"amount": 5})

    def test_wrong_field_type(self, schema, alice):
        with pytest.raises(TypeMismatch):
            schema.instantiate(PROGRAM, alice.address, {"amount": alice.address, "memo_set": False})

    def test_owner_must_be_address(self, schema):
        with pytest.raises(TypeMismatch):
            schema.instantiate(PROGRAM, "alice", _fields())


class TestRecord:

    def test_ref_shape(self, schema, alice):
        record = schema.instantiate(PROGRAM, alice.address, _fields())
        assert record.ref.startswith("rec1")
        assert len(record.ref) == 4 + 64
        assert len(record.nonce) == 32

    def test_identical_contents_get_distinct_refs(self, schema, alice):
        a = schema.instantiate(PROGRAM, alice.address, _fields())
        b = schema.instantiate(PROGRAM, alice.address, _fields())
        assert a.ref != b.ref

    def test_ref_commits_to_contents(self, schema, alice):
        a = schema.instantiate(PROGRAM, alice.address, _fields(), nonce="0" * 32)
        b = schema.instantiate(PROGRAM, alice.address, _fields(6), nonce="0" * 32)
        assert a.ref != b.ref

    def test_field_access(self, schema, alice):
        record = schema.instantiate(PROGRAM, alice.address, _fields(9))
        assert record["owner"] == alice.address
        assert record["amount"] == 9

    def test_fields_are_read_only(self, schema, alice):
        fields = _fields(9)
        record = schema.instantiate(PROGRAM, alice.address, fields)
        fields["amount"] = 10
        with pytest.raises(TypeError):
            record.data["amount"] = 10
        assert record["amount"] == 9

    def test_literal(self, schema, alice):
        record = schema.instantiate(PROGRAM, alice.address, _fields(9))
        literal = record.to_literal()
        assert literal.startswith(f"{{owner: {alice.address}, amount: 9u64, memo_set: false")

    def test_from_dict_detects_tampering(self, schema, alice):
        record = schema.instantiate(PROGRAM, alice.address, _fields(9))
        stored = record.to_dict()
        assert Record.from_dict(stored, schema) == record

        stored["data"]["amount"] = "10"
        with pytest.raises(RecordError):
            Record.from_dict(stored, schema)


# ─────────────────────────────────────────────────────────────
# Store
# ─────────────────────────────────────────────────────────────

class TestConsume:

    def test_consume_once(self, store, schema, alice):
        ref = store.create(schema, alice.address, _fields(), program_id=PROGRAM)
        record = store.consume(ref, by=alice.address)
        assert record.ref == ref
        assert store.is_spent(ref)

    def test_second_consume_is_already_spent(self, store, schema, alice):
        ref = store.create(schema, alice.address, _fields(), program_id=PROGRAM)
        store.consume(ref, by=alice.address)
        with pytest.raises(AlreadySpent):
            store.consume(ref, by=alice.address)

    def test_non_owner(self, store, schema, alice, bob):
        ref = store.create(schema, alice.address, _fields(), program_id=PROGRAM)
        with pytest.raises(NotOwner):
            store.consume(ref, by=bob.address)
        assert not store.is_spent(ref)

    def test_unknown_ref(self, store, alice):
        with pytest.raises(UnknownRecord):
            store.consume("rec1" + "0" * 64, by=alice.address)

    def test_spent_record_is_kept(self, store, schema, alice):
        ref = store.create(schema, alice.address, _fields(), program_id=PROGRAM)
        store.consume(ref, by=alice.address)
        assert store.get(ref) is not None
        assert len(store) == 1

    def test_release_undoes_consumption(self, store, schema, alice):
        ref = store.create(schema, alice.address, _fields(), program_id=PROGRAM)
        store.consume(ref, by=alice.address)
        store.release(ref)
        assert not store.is_spent(ref)
        store.consume(ref, by=alice.address)

    def test_unspent(self, store, schema, alice, bob):
        a1 = store.create(schema, alice.address, _fields(1), program_id=PROGRAM)
        a2 = store.create(schema, alice.address, _fields(2), program_id=PROGRAM)
        store.create(schema, bob.address, _fields(3), program_id=PROGRAM)
        store.consume(a1, by=alice.address)
        assert [r.ref for r in store.unspent(alice.address)] == [a2]


class TestCommit:

    def test_ref_committed_once(self, store, schema, alice):
        record = schema.instantiate(PROGRAM, alice.address, _fields())
        store.add(record)
        with pytest.raises(RecordError):
            store.add(record)

    def test_discarded_ref_never_committed(self, store, schema, alice):
        record = schema.instantiate(PROGRAM, alice.address, _fields())
        store.discard(record)
        with pytest.raises(RecordError):
            store.add(record)
        with pytest.raises(UnknownRecord):
            store.consume(record.ref, by=alice.address)

    def test_consume_yields_committed_fields(self, store, schema, alice):
        ref = store.create(schema, alice.address, _fields(5), program_id=PROGRAM)
        held = store.get(ref)
        with pytest.raises(TypeError):
            held.data["amount"] = 1_000_000
        assert store.consume(ref, by=alice.address)["amount"] == 5


class TestPersistence:

    def test_export_and_load(self, store, schema, alice):
        kept = store.create(schema, alice.address, _fields(1), program_id=PROGRAM)
        spent = store.create(schema, alice.address, _fields(2), program_id=PROGRAM)
        store.consume(spent, by=alice.address)

        restored = RecordStore()
        restored.load(store.export(), lambda program_id, name: schema)

        assert len(restored) == 2
        assert not restored.is_spent(kept)
        assert restored.is_spent(spent)
        with pytest.raises(AlreadySpent):
            restored.consume(spent, by=alice.address)

    def test_export_is_json_safe(self, store, schema, alice):
        store.create(schema, alice.address, _fields(2 ** 63), program_id=PROGRAM)
        entry = store.export()[0]
        assert entry["data"]["amount"] == str(2 ** 63)
        assert ADDRESS.check(entry["owner"])
