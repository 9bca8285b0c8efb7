"""Thin document store over a Firestore collection."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from kicktrack.errors import ConcurrencyError, NotFoundError

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference


class DocumentStore:
    """Load, save and watch documents of a single collection.

    Every write bumps an integer ``version`` field. ``save`` compares it with
    the version the caller loaded and raises ``ConcurrencyError`` on mismatch,
    so a lost update between two scorekeepers is detected. The check and the
    write are not atomic; concurrent writers can still interleave between them.
    """

    def __init__(
        self, collection: str, db: Client | None = None, label: str = "Document"
    ) -> None:
        """Initialize the store."""
        self.collection = collection
        self.label = label
        self._db = db

    @property
    def db(self) -> Client:
        """Return the Firestore client, creating the default one on first use."""
        if self._db is None:
            self._db = firestore.client()
        return self._db

    def ref(self, doc_id: str) -> DocumentReference:
        """Return the reference of a document in this collection."""
        return self.db.collection(self.collection).document(doc_id)

    def new_id(self) -> str:
        """Allocate a fresh document ID."""
        return str(self.db.collection(self.collection).document().id)

    def load(self, doc_id: str) -> dict[str, Any]:
        """Fetch a document or raise ``NotFoundError``."""
        snapshot = cast("DocumentSnapshot", self.ref(doc_id).get())
        data = snapshot.to_dict() if snapshot.exists else None
        if data is None:
            raise NotFoundError(f"{self.label} not found.")
        return data

    def create(self, doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Write a brand new document at version 1."""
        payload = {**data, "version": 1}
        self.ref(doc_id).set(payload)
        return payload

    def save(
        self, doc_id: str, data: dict[str, Any], expected_version: int | None = None
    ) -> dict[str, Any]:
        """Overwrite a document, checking it was not modified since it was read."""
        ref = self.ref(doc_id)
        snapshot = cast("DocumentSnapshot", ref.get())
        if not snapshot.exists:
            raise NotFoundError(f"{self.label} not found.")
        current_version = (snapshot.to_dict() or {}).get("version", 0)
        if expected_version is not None and current_version != expected_version:
            raise ConcurrencyError(
                f"{self.label} {doc_id} changed (version {current_version}, "
                f"expected {expected_version})."
            )
        payload = {**data, "version": current_version + 1}
        ref.set(payload)
        return payload

    def delete(self, doc_id: str) -> None:
        """Delete a document."""
        self.ref(doc_id).delete()

    def subscribe(
        self, doc_id: str, callback: Callable[[dict[str, Any] | None], None]
    ) -> Callable[[], None]:
        """Push every written state of a document to ``callback``.

        The callback receives ``None`` once the document no longer exists.
        Returns a function that stops the watch.
        """

        def on_snapshot(doc_snapshots: list[Any], changes: Any, read_time: Any) -> None:
            for snapshot in doc_snapshots:
                callback(snapshot.to_dict() if snapshot.exists else None)

        watch = self.ref(doc_id).on_snapshot(on_snapshot)
        return cast("Callable[[], None]", watch.unsubscribe)
