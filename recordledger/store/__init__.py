"""
recordledger Stores

- RecordStore: private, owned, spend-once records
- MappingStore: public key→value tables, written only by finalize logic
"""

from recordledger.store.mappings import MappingDeclaration, MappingStore, MappingView
from recordledger.store.records import RecordStore

__all__ = [
    "RecordStore",
    "MappingStore",
    "MappingView",
    "MappingDeclaration",
]
