"""
Registry data model.

IdentityRecord is immutable: every mutation builds a new record and swaps it
in whole, so a reader always holds a complete snapshot.
"""

from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, List, Optional

from .principals import NULL_PRINCIPAL


@dataclass(frozen=True)
class IdentityRecord:
    """One identity claim, registered once per principal."""
    name: str
    verified: bool = False
    attested_at: int = 0
    attested_by: str = NULL_PRINCIPAL

    @classmethod
    def unattested(cls, name: str) -> "IdentityRecord":
        return cls(name=name)

    def with_attestation(self, attester: str, attested_at: int) -> "IdentityRecord":
        """Return a copy carrying a new attestation (all three fields at once)."""
        return replace(self, verified=True, attested_at=attested_at, attested_by=attester)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_view(self) -> List[Any]:
        """Tuple shape of the get_identity view: [name, verified, "attested_at", attested_by]."""
        return [self.name, self.verified, str(self.attested_at), self.attested_by]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdentityRecord":
        return cls(
            name=data["name"],
            verified=bool(data.get("verified", False)),
            attested_at=int(data.get("attested_at", 0)),
            attested_by=data.get("attested_by") or NULL_PRINCIPAL,
        )


@dataclass(frozen=True)
class RegistryInfo:
    """Metadata written once by bootstrap."""
    admin: str
    created_at: int
    records: int = 0
    backend: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class JournalEntry:
    """One link of the append-only attestation journal."""
    seq: int
    target: str
    attester: str
    attested_at: int
    payload_hash: str
    prev_entry_hash: Optional[str]
    entry_hash: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
