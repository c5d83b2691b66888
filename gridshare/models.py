"""
Persistence Models — Trading Collections (Django ORM)

The trading core persists two named collections, listings and
transactions, each as one JSON document. This model is the durable
key-value medium behind them: one row per collection key.

Key decisions:

- key is UNIQUE, so each collection has exactly one authoritative row.
- payload holds the serialized collection as JSON text. It is decoded
  by the persistence adapter, which tolerates corrupt content.
- version is bumped on every write. Writers compare it with the version
  they read to detect lost updates from other processes.
- updated_at gives traceability for the last write.
"""

from django.db import models


class StoredCollection(models.Model):
    """One persisted collection, addressed by key."""

    key = models.CharField(max_length=100, unique=True)

    payload = models.TextField(default="[]")

    version = models.PositiveIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"StoredCollection {self.key} v{self.version}"
