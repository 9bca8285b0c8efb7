"""Tests for the versioned document store."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from mockfirestore import MockFirestore

from kicktrack.core.store import DocumentStore
from kicktrack.errors import ConcurrencyError, NotFoundError
from tests.conftest import patch_mockfirestore


class DocumentStoreTestCase(unittest.TestCase):
    """Test case for DocumentStore."""

    def setUp(self) -> None:
        """Set up a store over an in-memory Firestore."""
        patch_mockfirestore()
        self.db = MockFirestore()
        self.store = DocumentStore("things", self.db, label="Thing")

    def test_create_starts_at_version_one(self) -> None:
        """Test that a created document is readable with version 1."""
        created = self.store.create("t1", {"name": "first"})
        self.assertEqual(created["version"], 1)
        self.assertEqual(self.store.load("t1"), {"name": "first", "version": 1})

    def test_save_bumps_version(self) -> None:
        """Test that each save increments the version."""
        self.store.create("t1", {"name": "first"})
        saved = self.store.save("t1", {"name": "second"}, expected_version=1)
        self.assertEqual(saved["version"], 2)
        saved = self.store.save("t1", {"name": "third"})
        self.assertEqual(saved["version"], 3)
        self.assertEqual(self.store.load("t1")["name"], "third")

    def test_stale_save_is_rejected(self) -> None:
        """Test that a save based on an old version raises ConcurrencyError."""
        self.store.create("t1", {"name": "first"})
        self.store.save("t1", {"name": "second"}, expected_version=1)

        with self.assertRaises(ConcurrencyError):
            self.store.save("t1", {"name": "lost"}, expected_version=1)
        self.assertEqual(self.store.load("t1")["name"], "second")

    def test_missing_documents(self) -> None:
        """Test that loading or saving a missing document raises NotFoundError."""
        with self.assertRaises(NotFoundError) as cm:
            self.store.load("nope")
        self.assertEqual(cm.exception.message, "Thing not found.")
        with self.assertRaises(NotFoundError):
            self.store.save("nope", {"name": "x"})

    def test_delete(self) -> None:
        """Test that a deleted document can no longer be loaded."""
        self.store.create("t1", {"name": "first"})
        self.store.delete("t1")
        with self.assertRaises(NotFoundError):
            self.store.load("t1")

    def test_new_ids_are_unique(self) -> None:
        """Test that allocated IDs differ."""
        self.assertNotEqual(self.store.new_id(), self.store.new_id())


class SubscribeTestCase(unittest.TestCase):
    """Test case for document watches."""

    def setUp(self) -> None:
        """Set up a store over a mocked client."""
        self.db = MagicMock()
        self.doc_ref = self.db.collection.return_value.document.return_value
        self.store = DocumentStore("things", self.db)

    def test_callback_receives_each_snapshot(self) -> None:
        """Test that every snapshot is pushed, then None once deleted."""
        received = []
        unsubscribe = self.store.subscribe("t1", received.append)

        self.db.collection.assert_called_with("things")
        self.db.collection.return_value.document.assert_called_with("t1")
        on_snapshot = self.doc_ref.on_snapshot.call_args[0][0]

        live = MagicMock(exists=True)
        live.to_dict.return_value = {"name": "first", "version": 1}
        gone = MagicMock(exists=False)
        on_snapshot([live], [], None)
        on_snapshot([gone], [], None)
        self.assertEqual(received, [{"name": "first", "version": 1}, None])

        unsubscribe()
        self.doc_ref.on_snapshot.return_value.unsubscribe.assert_called_once()
