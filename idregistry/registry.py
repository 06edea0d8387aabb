"""
Identity registry operations.

IdentityRegistry binds an injected RegistryStore and Clock and implements the
three operations of the registry:

    register(caller, name)   Absent -> Registered(unattested)
    attest(caller, target)   Registered(*) -> Registered(attested)
    lookup(target)           read-only snapshot

Attestation is permissionless: any valid caller may attest any registered
record, itself included, and the latest attestation replaces the previous
one. No operation retries; AlreadyExistsError and NotFoundError are final.
"""

import logging
from typing import List, Optional

from .clock import Clock, SystemClock
from .errors import AlreadyExistsError, NotFoundError
from .principals import normalize_caller, normalize_principal
from .records import IdentityRecord, JournalEntry, RegistryInfo
from .store import RegistryStore
from .util import now_epoch

log = logging.getLogger(__name__)


class IdentityRegistry:
    """Registry operations over an injected store and clock."""

    def __init__(self, store: RegistryStore, clock: Clock = None):
        self.store = store
        self.clock = clock or SystemClock()

    @classmethod
    def bootstrap(
        cls,
        store: RegistryStore,
        admin: str,
        clock: Clock = None,
        created_at: Optional[int] = None
    ) -> "IdentityRegistry":
        """
        One-time administrative creation of the registry.

        created_at defaults to wall time; the injected clock only stamps
        attestations.

        Raises:
            RegistryAlreadyBootstrappedError: if the store already holds a registry
        """
        registry = cls(store, clock)
        info = store.bootstrap(normalize_caller(admin), created_at if created_at is not None else now_epoch())
        log.info("registry bootstrapped admin=%s backend=%s", info.admin, info.backend)
        return registry

    def register(self, caller: str, name: str) -> IdentityRecord:
        """
        Register `name` under the caller's own key.

        Raises:
            AlreadyExistsError: if the caller already has a record
        """
        caller = normalize_caller(caller)
        if not isinstance(name, str):
            raise TypeError("name must be a string")
        record = IdentityRecord.unattested(name)
        if not self.store.insert_if_absent(caller, record):
            raise AlreadyExistsError(caller)
        log.debug("registered %s", caller)
        return record

    def attest(self, caller: str, target: str) -> IdentityRecord:
        """
        Attest the target's record, replacing any previous attestation.

        Raises:
            NotFoundError: if the target has no record
            ClockError: if no timestamp could be obtained (record unchanged)
        """
        caller = normalize_caller(caller)
        target = normalize_principal(target)
        updated = self.store.update_if_present(target, caller, self.clock)
        if updated is None:
            raise NotFoundError(target)
        log.debug("attested %s by %s at %d", target, caller, updated.attested_at)
        return updated

    def lookup(self, target: str) -> IdentityRecord:
        """
        Raises:
            NotFoundError: if the target has no record
        """
        target = normalize_principal(target)
        record = self.store.get(target)
        if record is None:
            raise NotFoundError(target)
        return record

    def history(self, target: str) -> List[JournalEntry]:
        """Journal entries for a registered target, oldest first."""
        target = normalize_principal(target)
        if self.store.get(target) is None:
            raise NotFoundError(target)
        return self.store.journal_entries(target)

    def journal(self) -> List[JournalEntry]:
        return self.store.journal_entries()

    def info(self) -> RegistryInfo:
        return self.store.info()
