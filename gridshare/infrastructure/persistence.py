"""
Persistence Adapter — Named Collections

The trading core reads and writes whole collections by key. An adapter
only has to move JSON text in and out of some durable medium; encoding,
date revival and cold-start tolerance live in the shared base class.

Guarantees:

- load() never fails on bad data. A missing, malformed or wrongly shaped
  document loads as an empty collection and is logged. The bootstrap
  seeder relies on "empty" meaning "uninitialized".
- save_many() is one logical commit: either every collection in the call
  is written or none is.
- Write failures raise PersistenceError. They are not swallowed, so the
  engine can keep its in-memory state consistent with what was stored.

DjangoCollectionStore additionally guards against lost updates between
processes: each row carries a version, and a write whose row moved on
since it was last read raises ConcurrentModification.
"""

import json
import logging

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from gridshare.domain.exceptions import ConcurrentModification, PersistenceError
from gridshare.infrastructure.codec import LISTING_CODEC, TRANSACTION_CODEC
from gridshare.models import StoredCollection

logger = logging.getLogger(__name__)

LISTINGS_KEY = "gridshare_listings"
TRANSACTIONS_KEY = "gridshare_transactions"

DEFAULT_CODECS = {
    LISTINGS_KEY: LISTING_CODEC,
    TRANSACTIONS_KEY: TRANSACTION_CODEC,
}


class CollectionStore:
    """Base adapter: subclasses provide _read and _write over raw JSON text."""

    def __init__(self, codecs=None):
        self.codecs = dict(codecs or DEFAULT_CODECS)

    def _codec(self, key):
        try:
            return self.codecs[key]
        except KeyError:
            raise ValueError(f"Unknown collection key: {key}")

    def load(self, key):
        codec = self._codec(key)
        raw = self._read(key)
        if not raw:
            return []

        try:
            document = json.loads(raw)
        except ValueError:
            logger.warning("Discarding malformed JSON in collection %s", key)
            return []

        if not isinstance(document, list):
            logger.warning(
                "Discarding collection %s: expected a list, got %s",
                key, type(document).__name__,
            )
            return []

        try:
            return [codec.load(item) for item in document]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Discarding collection %s: unreadable record (%s)", key, exc)
            return []

    def save(self, key, items):
        self.save_many({key: items})

    def save_many(self, collections):
        encoded = {}
        for key, items in collections.items():
            codec = self._codec(key)
            encoded[key] = json.dumps([codec.dump(item) for item in items])
        self._write(encoded)

    def _read(self, key):
        raise NotImplementedError

    def _write(self, encoded):
        raise NotImplementedError


class InMemoryCollectionStore(CollectionStore):
    """Keeps serialized documents in a dict. Used as a fake in tests."""

    def __init__(self, codecs=None, documents=None):
        super().__init__(codecs)
        self.documents = dict(documents or {})

    def _read(self, key):
        return self.documents.get(key)

    def _write(self, encoded):
        self.documents.update(encoded)


class DjangoCollectionStore(CollectionStore):
    """Stores each collection as a StoredCollection row."""

    def __init__(self, codecs=None, using=None):
        super().__init__(codecs)
        self.using = using
        # Version last seen per key; None means "never read, write blindly".
        self._versions = {}

    def _rows(self):
        manager = StoredCollection.objects
        return manager.using(self.using) if self.using else manager.all()

    def _read(self, key):
        row = self._rows().filter(key=key).first()
        self._versions[key] = row.version if row else 0
        return row.payload if row else None

    def _write(self, encoded):
        written = {}
        try:
            with transaction.atomic(using=self.using):
                for key, payload in encoded.items():
                    row, _ = self._rows().select_for_update().get_or_create(key=key)

                    expected = self._versions.get(key)
                    if expected is None:
                        expected = row.version

                    # Compare-and-swap: backends that ignore select_for_update()
                    # still refuse a write against a version that moved on.
                    updated = self._rows().filter(pk=row.pk, version=expected).update(
                        payload=payload,
                        version=F("version") + 1,
                        updated_at=timezone.now(),
                    )
                    if not updated:
                        actual = (
                            self._rows().filter(pk=row.pk)
                            .values_list("version", flat=True).first()
                        )
                        logger.warning(
                            "Concurrent write detected: key=%s expected=%s actual=%s",
                            key, expected, actual,
                        )
                        raise ConcurrentModification(key, expected, actual)
                    written[key] = expected + 1
        except DatabaseError as exc:
            logger.exception("Failed to write collections %s", ", ".join(encoded))
            raise PersistenceError(encoded.keys(), str(exc)) from exc

        self._versions.update(written)
