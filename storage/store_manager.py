"""Factory for building the configured contract store.

Reads backend selection and paths from the environment, the same way the
rest of the application is configured.
"""

import os
from typing import Optional

from loguru import logger

from storage.contract_store import ContractStore, InMemoryContractStore, JsonFileContractStore
from storage.sqlite_store import DEFAULT_COLLECTION, SQLiteContractStore
from tools.seed_contracts import seed_if_empty
from workflow.error_handling import WorkflowValidationError

SUPPORTED_BACKENDS = ("memory", "json", "sqlite")


def _resolve_path(path: Optional[str]) -> str:
    if path is None:
        path = os.getenv("CONTRACT_STORE_PATH", "contracts.db")
    # Accept SQLAlchemy-style URLs for convenience
    if path.startswith("sqlite:///"):
        path = path.replace("sqlite:///", "")
    return path


def create_contract_store(
    backend: Optional[str] = None,
    path: Optional[str] = None,
    collection: Optional[str] = None,
    timeout: Optional[float] = None,
    seed_demo: Optional[bool] = None,
) -> ContractStore:
    """Factory function to create a ContractStore with environment-based configuration.

    Args:
        backend: ``memory``, ``json`` or ``sqlite`` (uses CONTRACT_STORE_BACKEND if not provided)
        path: File path for file-backed stores (uses CONTRACT_STORE_PATH if not provided)
        collection: Collection name for SQLite (uses CONTRACT_COLLECTION if not provided)
        timeout: SQLite lock timeout in seconds (uses STORE_TIMEOUT_SECONDS if not provided)
        seed_demo: Seed demo contracts into an empty store (uses SEED_DEMO_CONTRACTS if not provided)

    Returns:
        Configured ContractStore instance

    Raises:
        WorkflowValidationError: If the backend name is unknown
    """
    backend = (backend or os.getenv("CONTRACT_STORE_BACKEND", "sqlite")).lower()
    if seed_demo is None:
        seed_demo = os.getenv("SEED_DEMO_CONTRACTS", "false").lower() == "true"

    if backend == "memory":
        store: ContractStore = InMemoryContractStore()
    elif backend == "json":
        store = JsonFileContractStore(_resolve_path(path))
    elif backend == "sqlite":
        store = SQLiteContractStore(
            db_path=_resolve_path(path),
            collection=collection or os.getenv("CONTRACT_COLLECTION", DEFAULT_COLLECTION),
            timeout=timeout if timeout is not None else float(os.getenv("STORE_TIMEOUT_SECONDS", "5")),
        )
    else:
        raise WorkflowValidationError(
            f"Unknown store backend '{backend}'. Expected one of: {', '.join(SUPPORTED_BACKENDS)}"
        )

    if seed_demo:
        seed_if_empty(store)

    logger.info(f"Contract store ready (backend={backend}, seed_demo={seed_demo})")
    return store
