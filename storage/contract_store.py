"""Persistence Store contract and lightweight implementations.

The workflow engine only ever reads the full contract collection and writes
it back whole. There is no row-level update primitive.
"""

import os
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from loguru import logger

from workflow.error_handling import StoreError, handle_errors
from workflow.models import Contract, decode_contracts, encode_contracts


@runtime_checkable
class ContractStore(Protocol):
    """Key-value store holding one ordered contract collection."""

    def load_all(self) -> List[Contract]:
        """Return the stored collection in insertion order, empty if nothing stored."""
        ...

    def save_all(self, contracts: Sequence[Contract]) -> None:
        """Overwrite the stored collection."""
        ...


class InMemoryContractStore:
    """Process-local store keeping the collection as an encoded JSON document.

    Every load decodes fresh records, so callers can mutate what they load
    without touching stored state until they save.
    """

    def __init__(self, contracts: Optional[Sequence[Contract]] = None):
        self._lock = threading.Lock()
        self._payload: Optional[bytes] = None
        if contracts:
            self._payload = encode_contracts(list(contracts))

    def load_all(self) -> List[Contract]:
        with self._lock:
            payload = self._payload
        if payload is None:
            return []
        return decode_contracts(payload)

    def save_all(self, contracts: Sequence[Contract]) -> None:
        payload = encode_contracts(list(contracts))
        with self._lock:
            self._payload = payload


class JsonFileContractStore:
    """Store backed by a single JSON document on disk."""

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"JsonFileContractStore initialized with path={self.path}")

    @handle_errors(StoreError)
    def load_all(self) -> List[Contract]:
        if not self.path.exists():
            return []
        payload = self.path.read_bytes()
        if not payload.strip():
            return []
        return decode_contracts(payload)

    @handle_errors(StoreError)
    def save_all(self, contracts: Sequence[Contract]) -> None:
        payload = encode_contracts(list(contracts))
        # Write to a sibling temp file and rename so readers never see a partial document
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Saved {len(contracts)} contracts to {self.path}")
