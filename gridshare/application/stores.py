"""
In-memory Listing Store and Transaction Ledger.

Both hold an immutable tuple ordered most recent first. Callers only get
read-only snapshots; the trading engine installs a new tuple after the
matching write has been committed to the persistence adapter.
"""


class ListingStore:
    def __init__(self, listings=()):
        self._listings = tuple(listings)

    def snapshot(self):
        return self._listings

    def find(self, listing_id):
        """Returns (index, listing), or (None, None) when the id is unknown."""
        for index, listing in enumerate(self._listings):
            if listing.id == listing_id:
                return index, listing
        return None, None

    def with_created(self, listing):
        return (listing,) + self._listings

    def with_replaced(self, index, listing):
        listings = list(self._listings)
        listings[index] = listing
        return tuple(listings)

    def _replace(self, listings):
        self._listings = tuple(listings)


class TransactionLedger:
    """Append-only: no update or delete operation exists."""

    def __init__(self, transactions=()):
        self._transactions = tuple(transactions)

    def snapshot(self):
        return self._transactions

    def with_entry(self, tx):
        return (tx,) + self._transactions

    def _replace(self, transactions):
        self._transactions = tuple(transactions)
