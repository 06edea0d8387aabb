from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from idregistry.records import IdentityRecord, JournalEntry, RegistryInfo


class RegisterRequest(BaseModel):
    name: str


class IdentityView(BaseModel):
    principal: str
    name: str
    verified: bool
    attested_at: int
    attested_by: str

    @classmethod
    def of(cls, principal: str, record: IdentityRecord) -> "IdentityView":
        return cls(principal=principal, **record.to_dict())


class JournalEntryView(BaseModel):
    seq: int
    target: str
    attester: str
    attested_at: int
    payload_hash: str
    prev_entry_hash: Optional[str] = None
    entry_hash: str

    @classmethod
    def of(cls, entry: JournalEntry) -> "JournalEntryView":
        return cls(**entry.to_dict())


class JournalProof(BaseModel):
    entries: int
    head_entry_hash: Optional[str] = None
    valid: bool


class RegistryInfoView(BaseModel):
    admin: str
    created_at: int
    records: int
    backend: str
    journal: bool = True

    @classmethod
    def of(cls, info: RegistryInfo, journal: bool) -> "RegistryInfoView":
        return cls(journal=journal, **info.to_dict())


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str
    version: str
    bootstrapped: bool
    components: List[str] = Field(default_factory=list)
