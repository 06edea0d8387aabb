"""
Registry store contract tests.

Both backends run the same cases: check-and-insert and check-and-update are
single steps, failed calls leave the store unchanged, and nothing works
before bootstrap.
"""

import os
import shutil
import tempfile
import unittest

from idregistry.clock import FailingClock, ManualClock
from idregistry.errors import (
    ClockError,
    RegistryAlreadyBootstrappedError,
    RegistryNotBootstrappedError,
)
from idregistry.principals import NULL_PRINCIPAL, normalize_principal
from idregistry.records import IdentityRecord
from idregistry.sqlite_store import SQLiteRegistryStore
from idregistry.store import InMemoryRegistryStore, open_store

ADMIN = normalize_principal("0x1")
ALICE = normalize_principal("0xa11ce")
BOB = normalize_principal("0xb0b")


class StoreContract:
    """Cases shared by every RegistryStore implementation."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()
        self.clock = ManualClock(1000)

    def tearDown(self):
        self.store.close()

    def bootstrap(self):
        return self.store.bootstrap(ADMIN, 999)

    def test_operations_require_bootstrap(self):
        self.assertFalse(self.store.is_bootstrapped())
        with self.assertRaises(RegistryNotBootstrappedError):
            self.store.insert_if_absent(ALICE, IdentityRecord.unattested("A"))
        with self.assertRaises(RegistryNotBootstrappedError):
            self.store.update_if_present(ALICE, BOB, self.clock)
        with self.assertRaises(RegistryNotBootstrappedError):
            self.store.get(ALICE)
        with self.assertRaises(RegistryNotBootstrappedError):
            self.store.info()

    def test_bootstrap_once(self):
        info = self.bootstrap()
        self.assertEqual(info.admin, ADMIN)
        self.assertEqual(info.created_at, 999)
        self.assertEqual(info.records, 0)
        self.assertEqual(info.backend, self.store.backend)
        self.assertTrue(self.store.is_bootstrapped())
        with self.assertRaises(RegistryAlreadyBootstrappedError):
            self.store.bootstrap(BOB, 1000)
        self.assertEqual(self.store.info().admin, ADMIN)

    def test_insert_if_absent(self):
        self.bootstrap()
        self.assertTrue(self.store.insert_if_absent(ALICE, IdentityRecord.unattested("Alice")))
        self.assertFalse(self.store.insert_if_absent(ALICE, IdentityRecord.unattested("Mallory")))
        self.assertEqual(self.store.get(ALICE), IdentityRecord("Alice", False, 0, NULL_PRINCIPAL))
        self.assertEqual(self.store.count(), 1)

    def test_update_if_present(self):
        self.bootstrap()
        self.store.insert_if_absent(ALICE, IdentityRecord.unattested("Alice"))
        updated = self.store.update_if_present(ALICE, BOB, self.clock)
        self.assertEqual(updated, IdentityRecord("Alice", True, 1000, BOB))
        self.assertEqual(self.store.get(ALICE), updated)

    def test_update_missing_key_leaves_store_unchanged(self):
        self.bootstrap()
        self.assertIsNone(self.store.update_if_present(ALICE, BOB, self.clock))
        self.assertIsNone(self.store.get(ALICE))
        self.assertEqual(self.store.count(), 0)
        self.assertEqual(self.store.journal_entries(), [])

    def test_clock_failure_leaves_record_unchanged(self):
        self.bootstrap()
        self.store.insert_if_absent(ALICE, IdentityRecord.unattested("Alice"))
        with self.assertRaises(ClockError):
            self.store.update_if_present(ALICE, BOB, FailingClock())
        self.assertEqual(self.store.get(ALICE), IdentityRecord.unattested("Alice"))
        self.assertEqual(self.store.journal_entries(), [])

    def test_journal_records_each_attestation(self):
        self.bootstrap()
        self.store.insert_if_absent(ALICE, IdentityRecord.unattested("Alice"))
        self.store.insert_if_absent(BOB, IdentityRecord.unattested("Bob"))
        self.store.update_if_present(ALICE, BOB, self.clock)
        self.clock.advance(3)
        self.store.update_if_present(BOB, BOB, self.clock)
        self.store.update_if_present(ALICE, ALICE, self.clock)

        entries = self.store.journal_entries()
        self.assertEqual([e.seq for e in entries], [1, 2, 3])
        self.assertEqual([e.target for e in entries], [ALICE, BOB, ALICE])
        self.assertIsNone(entries[0].prev_entry_hash)
        self.assertEqual(entries[1].prev_entry_hash, entries[0].entry_hash)

        alice_entries = self.store.journal_entries(ALICE)
        self.assertEqual([(e.attester, e.attested_at) for e in alice_entries], [(BOB, 1000), (ALICE, 1003)])


class TestInMemoryRegistryStore(StoreContract, unittest.TestCase):

    def make_store(self):
        return InMemoryRegistryStore(stripes=4)

    def test_journal_can_be_disabled(self):
        store = InMemoryRegistryStore(journal=False)
        store.bootstrap(ADMIN, 1)
        store.insert_if_absent(ALICE, IdentityRecord.unattested("Alice"))
        store.update_if_present(ALICE, BOB, self.clock)
        self.assertEqual(store.journal_entries(), [])
        self.assertTrue(store.get(ALICE).verified)


class TestSQLiteRegistryStore(StoreContract, unittest.TestCase):

    def make_store(self):
        self.tmpdir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.tmpdir, True)
        return SQLiteRegistryStore(os.path.join(self.tmpdir, "nested", "registry.db"))

    def test_state_survives_reopen(self):
        self.bootstrap()
        self.store.insert_if_absent(ALICE, IdentityRecord.unattested("Alice"))
        self.store.update_if_present(ALICE, BOB, self.clock)
        self.store.close()

        reopened = SQLiteRegistryStore(str(self.store.path))
        self.addCleanup(reopened.close)
        self.assertTrue(reopened.is_bootstrapped())
        self.assertEqual(reopened.get(ALICE), IdentityRecord("Alice", True, 1000, BOB))
        self.assertEqual(len(reopened.journal_entries()), 1)

    def test_in_memory_path_rejected(self):
        with self.assertRaises(ValueError):
            SQLiteRegistryStore(":memory:")


class TestOpenStore(unittest.TestCase):

    def test_memory(self):
        self.assertIsInstance(open_store("memory"), InMemoryRegistryStore)

    def test_sqlite(self):
        tmpdir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, tmpdir, True)
        store = open_store("sqlite", path=os.path.join(tmpdir, "r.db"))
        self.addCleanup(store.close)
        self.assertIsInstance(store, SQLiteRegistryStore)

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            open_store("redis")


if __name__ == "__main__":
    unittest.main(verbosity=2)
