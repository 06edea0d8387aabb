"""
Append-only attestation journal.

Each successful attestation appends one entry. Entries form a hash chain:

    payload_hash = sha256(canonical_json({seq, target, attester, attested_at}))
    entry_hash   = sha256(prev_entry_hash || payload_hash)

The journal is an audit trail next to the registry; lookups never read it.
"""

import threading
from typing import Iterable, List, Optional

from .records import JournalEntry
from .util import canonicalize, sha256_hex


def payload_hash(seq: int, target: str, attester: str, attested_at: int) -> str:
    return sha256_hex(canonicalize({
        "seq": seq,
        "target": target,
        "attester": attester,
        "attested_at": attested_at,
    }))


def chain_entry_hash(prev_entry_hash: Optional[str], payload_hash: str) -> str:
    """
    Compute the hash chain entry hash.
    
    Args:
        prev_entry_hash: Hash of the previous entry (or None for first)
        payload_hash: Hash of the current payload
        
    Returns:
        SHA-256 hash of the concatenated hashes
    """
    data = (prev_entry_hash or "").encode("utf-8") + payload_hash.encode("utf-8")
    return sha256_hex(data)


def build_entry(
    seq: int,
    prev_entry_hash: Optional[str],
    target: str,
    attester: str,
    attested_at: int
) -> JournalEntry:
    ph = payload_hash(seq, target, attester, attested_at)
    return JournalEntry(
        seq=seq,
        target=target,
        attester=attester,
        attested_at=attested_at,
        payload_hash=ph,
        prev_entry_hash=prev_entry_hash,
        entry_hash=chain_entry_hash(prev_entry_hash, ph),
    )


def verify_chain(entries: Iterable[JournalEntry]) -> Optional[int]:
    """
    Recompute the chain over a full, seq-ordered journal export.

    Returns:
        None if the chain is intact, otherwise the seq of the first bad entry
    """
    prev = None
    expected_seq = 1
    for entry in entries:
        if entry.seq != expected_seq or entry.prev_entry_hash != prev:
            return entry.seq
        ph = payload_hash(entry.seq, entry.target, entry.attester, entry.attested_at)
        if entry.payload_hash != ph or entry.entry_hash != chain_entry_hash(prev, ph):
            return entry.seq
        prev = entry.entry_hash
        expected_seq += 1
    return None


class InMemoryJournal:
    """Journal kept in process memory, used by InMemoryRegistryStore."""

    def __init__(self):
        self._entries: List[JournalEntry] = []
        self._lock = threading.Lock()

    def append(self, target: str, attester: str, attested_at: int) -> JournalEntry:
        with self._lock:
            prev = self._entries[-1].entry_hash if self._entries else None
            entry = build_entry(len(self._entries) + 1, prev, target, attester, attested_at)
            self._entries.append(entry)
            return entry

    def entries(self, target: Optional[str] = None) -> List[JournalEntry]:
        with self._lock:
            snapshot = list(self._entries)
        if target is None:
            return snapshot
        return [e for e in snapshot if e.target == target]
