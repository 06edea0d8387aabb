"""
Registry stores.

A RegistryStore holds the principal -> IdentityRecord mapping and offers the
two atomic primitives the registry is built on:

- insert_if_absent: check-and-insert as one indivisible step
- update_if_present: read clock and replace the attestation fields as one
  indivisible step

Implementations must be:
- Linearizable per key (one total order over successful calls on a key)
- Non-blocking across keys beyond the short per-key critical section
- Snapshot-consistent on reads (never a record torn across two writes)
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .clock import Clock
from .errors import RegistryAlreadyBootstrappedError, RegistryNotBootstrappedError
from .journal import InMemoryJournal
from .records import IdentityRecord, JournalEntry, RegistryInfo

log = logging.getLogger(__name__)

DEFAULT_LOCK_STRIPES = 64


class RegistryStore(ABC):
    """Abstract interface for the registry mapping."""

    backend = "abstract"

    @abstractmethod
    def bootstrap(self, admin: str, created_at: int) -> RegistryInfo:
        """
        Create the registry. Allowed exactly once per store.

        Raises:
            RegistryAlreadyBootstrappedError: if the registry already exists
        """
        pass

    @abstractmethod
    def is_bootstrapped(self) -> bool:
        pass

    @abstractmethod
    def info(self) -> RegistryInfo:
        pass

    @abstractmethod
    def insert_if_absent(self, principal: str, record: IdentityRecord) -> bool:
        """
        Insert a record for a principal that has none.

        Returns:
            True if inserted, False if a record already existed (store unchanged)
        """
        pass

    @abstractmethod
    def update_if_present(self, principal: str, attester: str, clock: Clock) -> Optional[IdentityRecord]:
        """
        Stamp an attestation on an existing record.

        The clock is read inside the per-key critical section, so attested_at
        never decreases along a key's history.

        Returns:
            The new record, or None if the principal has no record (store unchanged)
        """
        pass

    @abstractmethod
    def get(self, principal: str) -> Optional[IdentityRecord]:
        pass

    @abstractmethod
    def count(self) -> int:
        pass

    @abstractmethod
    def journal_entries(self, principal: Optional[str] = None) -> List[JournalEntry]:
        """Journal entries in append order, optionally for one target only."""
        pass

    def close(self) -> None:
        return


class InMemoryRegistryStore(RegistryStore):
    """
    In-process store using striped locks.

    Each principal hashes onto one of `stripes` locks; mutations on keys
    that land on different stripes proceed in parallel.

    Not persistent across restarts. Use SQLiteRegistryStore for that.
    """

    backend = "memory"

    def __init__(self, stripes: int = DEFAULT_LOCK_STRIPES, journal: bool = True):
        self._records: Dict[str, IdentityRecord] = {}
        self._locks = [threading.Lock() for _ in range(max(1, stripes))]
        self._info: Optional[RegistryInfo] = None
        self._bootstrap_lock = threading.Lock()
        self._journal = InMemoryJournal() if journal else None

    def _lock_for(self, principal: str) -> threading.Lock:
        return self._locks[hash(principal) % len(self._locks)]

    def _require_bootstrapped(self) -> None:
        if self._info is None:
            raise RegistryNotBootstrappedError()

    def bootstrap(self, admin: str, created_at: int) -> RegistryInfo:
        with self._bootstrap_lock:
            if self._info is not None:
                raise RegistryAlreadyBootstrappedError(self._info.admin)
            self._info = RegistryInfo(admin=admin, created_at=created_at, backend=self.backend)
            log.debug("in-memory registry bootstrapped by %s", admin)
            return self.info()

    def is_bootstrapped(self) -> bool:
        return self._info is not None

    def info(self) -> RegistryInfo:
        self._require_bootstrapped()
        return RegistryInfo(
            admin=self._info.admin,
            created_at=self._info.created_at,
            records=len(self._records),
            backend=self.backend,
        )

    def insert_if_absent(self, principal: str, record: IdentityRecord) -> bool:
        self._require_bootstrapped()
        with self._lock_for(principal):
            if principal in self._records:
                return False
            self._records[principal] = record
            return True

    def update_if_present(self, principal: str, attester: str, clock: Clock) -> Optional[IdentityRecord]:
        self._require_bootstrapped()
        with self._lock_for(principal):
            current = self._records.get(principal)
            if current is None:
                return None
            updated = current.with_attestation(attester, clock.now())
            if self._journal is not None:
                self._journal.append(principal, attester, updated.attested_at)
            self._records[principal] = updated
            return updated

    def get(self, principal: str) -> Optional[IdentityRecord]:
        self._require_bootstrapped()
        return self._records.get(principal)

    def count(self) -> int:
        self._require_bootstrapped()
        return len(self._records)

    def journal_entries(self, principal: Optional[str] = None) -> List[JournalEntry]:
        self._require_bootstrapped()
        if self._journal is None:
            return []
        return self._journal.entries(principal)


def open_store(
    kind: str = "memory",
    path: Optional[str] = None,
    stripes: int = DEFAULT_LOCK_STRIPES,
    journal: bool = True
) -> RegistryStore:
    """
    Factory resolver for selecting the registry backend.

        - memory
        - sqlite (requires path)
    """
    if kind == "memory":
        return InMemoryRegistryStore(stripes=stripes, journal=journal)
    if kind == "sqlite":
        from .sqlite_store import SQLiteRegistryStore
        return SQLiteRegistryStore(path or "data/registry.db", journal=journal)
    raise ValueError(f"Unknown registry store: {kind}")
