"""Storage package for the contract collection."""

from storage.contract_store import ContractStore, InMemoryContractStore, JsonFileContractStore
from storage.sqlite_store import SQLiteContractStore
from storage.store_manager import create_contract_store

__all__ = [
    "ContractStore",
    "InMemoryContractStore",
    "JsonFileContractStore",
    "SQLiteContractStore",
    "create_contract_store",
]
