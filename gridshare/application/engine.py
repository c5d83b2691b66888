"""
Application Service — Trading Engine

Orchestrates the two mutating operations of the marketplace:

- create_listing: a seller offers a quantity of energy at a fixed price.
- purchase_energy: a buyer takes part or all of a listing's remaining
  quantity, which appends a confirmed transaction to the ledger.

Core guarantees:

- Validation first: every check runs against the current snapshot before
  anything is written, and the first failing check decides the error.
- All-or-nothing purchase: the decremented listing collection and the
  extended ledger are written through one save_many() call. The in-memory
  snapshots are replaced only after that call returns, so a failed write
  leaves the engine exactly as it was.
- Injected collaborators: persistence, identity, id/settlement references
  and the clock are passed in, which keeps the engine testable without a
  request or a database.

Calls are expected to run to completion one at a time within a process.
Cross-process lost updates are detected by the persistence adapter, not
here.
"""

import logging
import math
from dataclasses import replace
from datetime import datetime

from django.utils import timezone

from gridshare.application.references import RandomReferences
from gridshare.application.seeder import should_seed
from gridshare.application.stores import ListingStore, TransactionLedger
from gridshare.domain.entities import (
    EnergySource,
    Listing,
    ListingStatus,
    Transaction,
    TransactionStatus,
    round_price,
    round_quantity,
    settlement_total,
)
from gridshare.domain.exceptions import (
    InsufficientQuantity,
    InvalidAmount,
    ListingNotFound,
    ListingUnavailable,
    NotAuthenticated,
)
from gridshare.infrastructure.persistence import LISTINGS_KEY, TRANSACTIONS_KEY

logger = logging.getLogger(__name__)


def _aware(value):
    # Naive datetimes are read in the current Django time zone, as DRF does
    if isinstance(value, datetime) and timezone.is_naive(value):
        return timezone.make_aware(value)
    return value


class TradingEngine:
    def __init__(self, persistence, identity, references=None, clock=timezone.now, seeder=None):
        self.persistence = persistence
        self.identity = identity
        self.references = references or RandomReferences()
        self.clock = clock
        self.seeder = seeder
        self.listings = ListingStore()
        self.ledger = TransactionLedger()
        self._loading = True

    @property
    def is_loading(self):
        return self._loading

    def snapshot_listings(self):
        return self.listings.snapshot()

    def snapshot_transactions(self):
        return self.ledger.snapshot()

    def load(self):
        """
        Reads both collections and, when a seeder is configured and the
        store is cold, writes the bootstrap dataset first.
        """
        listings = self.persistence.load(LISTINGS_KEY)
        transactions = self.persistence.load(TRANSACTIONS_KEY)

        if self.seeder is not None and should_seed(listings, transactions):
            listings, transactions = self.seeder.seed(self.identity.current())
            self.persistence.save_many({
                LISTINGS_KEY: listings,
                TRANSACTIONS_KEY: transactions,
            })

        self.listings._replace(listings)
        self.ledger._replace(transactions)
        self._loading = False
        return self

    def reload(self):
        self._loading = True
        listings = self.persistence.load(LISTINGS_KEY)
        transactions = self.persistence.load(TRANSACTIONS_KEY)
        self.listings._replace(listings)
        self.ledger._replace(transactions)
        self._loading = False
        return self

    def _require_identity(self, operation):
        actor = self.identity.current()
        if actor is None:
            logger.warning("Rejected %s: no authenticated identity", operation)
            raise NotAuthenticated(operation)
        return actor

    def create_listing(self, spec):
        """
        Publishes a new listing for the current identity and returns it.

        The listing goes to the head of the store, so it is always the first
        entry of the next snapshot.
        """
        seller = self._require_identity("create a listing")

        now = self.clock()
        spec = replace(
            spec,
            available_from=_aware(spec.available_from or now),
            available_until=_aware(spec.available_until),
        )
        spec.validate()

        listing = Listing(
            id=self.references.listing_id(),
            seller_id=seller.id,
            seller_name=seller.name,
            energy_amount=round_quantity(spec.energy_amount),
            price_per_kwh=round_price(spec.price_per_kwh),
            available_from=spec.available_from,
            available_until=spec.available_until,
            energy_source=EnergySource(spec.energy_source),
            location=spec.location,
            status=ListingStatus.AVAILABLE,
            created_at=now,
        )

        next_listings = self.listings.with_created(listing)
        self.persistence.save(LISTINGS_KEY, next_listings)
        self.listings._replace(next_listings)

        logger.info(
            "Listing created: id=%s seller=%s amount=%s price=%s",
            listing.id, seller.id, listing.energy_amount, listing.price_per_kwh,
        )
        return listing

    def purchase_energy(self, listing_id, amount):
        """
        Buys ``amount`` kWh from a listing on behalf of the current identity.

        Returns nothing; callers re-read the snapshots to see the result.
        """
        buyer = self._require_identity("purchase energy")

        # Quantities are traded at 3-decimal resolution; anything that rounds to
        # nothing would be confirmed without reducing the listing.
        if not amount > 0 or not math.isfinite(amount) or round_quantity(amount) <= 0:
            logger.warning("Rejected purchase: listing=%s amount=%s", listing_id, amount)
            raise InvalidAmount(amount)
        amount = round_quantity(amount)

        index, listing = self.listings.find(listing_id)
        if listing is None:
            raise ListingNotFound(listing_id)

        if not listing.is_available:
            raise ListingUnavailable(listing_id, listing.status.value)

        if amount > listing.energy_amount:
            logger.warning(
                "Insufficient quantity: listing=%s requested=%s available=%s",
                listing_id, amount, listing.energy_amount,
            )
            raise InsufficientQuantity(listing_id, amount, listing.energy_amount)

        tx = Transaction(
            id=self.references.transaction_id(),
            listing_id=listing.id,
            buyer_id=buyer.id,
            buyer_name=buyer.name,
            seller_id=listing.seller_id,
            seller_name=listing.seller_name,
            energy_amount=float(amount),
            price_per_kwh=listing.price_per_kwh,
            total_amount=settlement_total(listing.price_per_kwh, amount),
            settlement=self.references.settlement(),
            status=TransactionStatus.CONFIRMED,
            timestamp=self.clock(),
            energy_source=listing.energy_source,
        )

        next_listings = self.listings.with_replaced(index, listing.after_purchase(amount))
        next_transactions = self.ledger.with_entry(tx)

        # Single logical commit; snapshots move only once it has succeeded
        self.persistence.save_many({
            LISTINGS_KEY: next_listings,
            TRANSACTIONS_KEY: next_transactions,
        })
        self.listings._replace(next_listings)
        self.ledger._replace(next_transactions)

        logger.info(
            "Purchase confirmed: tx=%s listing=%s buyer=%s amount=%s total=%s",
            tx.id, listing.id, buyer.id, tx.energy_amount, tx.total_amount,
        )
