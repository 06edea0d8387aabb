"""
Identity Attestation Registry

Any principal may register one identity claim under its own key; any
principal, itself included, may then attest that claim, replacing the
previous attestation.

    Absent -> Registered(unattested) -> Registered(attested) <-+
                                              |                |
                                              +-- attest ------+

Usage:
    from idregistry import IdentityRegistry, InMemoryRegistryStore, ManualClock

    registry = IdentityRegistry.bootstrap(InMemoryRegistryStore(), admin="0x1")
    registry.register("0xa11ce", "John Doe")
    registry.attest("0xb0b", "0xa11ce")

    record = registry.lookup("0xa11ce")
    record.verified      # True
    record.attested_by   # long form of 0xb0b
"""

__version__ = "1.0.0"

from .clock import Clock, SystemClock, FixedClock, ManualClock, FailingClock
from .errors import (
    RegistryError,
    AlreadyExistsError,
    NotFoundError,
    UnauthorizedError,
    InvalidPrincipalError,
    RegistryNotBootstrappedError,
    RegistryAlreadyBootstrappedError,
    ClockError,
)
from .journal import verify_chain
from .principals import (
    NULL_PRINCIPAL,
    normalize_principal,
    normalize_caller,
    derive_principal,
    short_principal,
)
from .records import IdentityRecord, RegistryInfo, JournalEntry
from .registry import IdentityRegistry
from .store import RegistryStore, InMemoryRegistryStore, open_store
from .sqlite_store import SQLiteRegistryStore


__all__ = [
    "__version__",

    # Clock
    "Clock",
    "SystemClock",
    "FixedClock",
    "ManualClock",
    "FailingClock",

    # Errors
    "RegistryError",
    "AlreadyExistsError",
    "NotFoundError",
    "UnauthorizedError",
    "InvalidPrincipalError",
    "RegistryNotBootstrappedError",
    "RegistryAlreadyBootstrappedError",
    "ClockError",

    # Principals
    "NULL_PRINCIPAL",
    "normalize_principal",
    "normalize_caller",
    "derive_principal",
    "short_principal",

    # Records
    "IdentityRecord",
    "RegistryInfo",
    "JournalEntry",
    "verify_chain",

    # Registry
    "IdentityRegistry",
    "RegistryStore",
    "InMemoryRegistryStore",
    "SQLiteRegistryStore",
    "open_store",
]
