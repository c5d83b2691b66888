"""
Bootstrap Seeder

Fills a cold store with a plausible marketplace so the first screen is
never empty: 8 open listings and 10 historical transactions. It is a
one-shot policy. It only runs when both collections are empty, so real
user data is never overwritten.
"""

import logging
import random
from datetime import timedelta

from django.utils import timezone

from gridshare.domain.entities import (
    EnergySource,
    Listing,
    ListingStatus,
    SettlementRef,
    Transaction,
    TransactionStatus,
    round_price,
    settlement_total,
)
from gridshare.application.references import BASE_BLOCK_NUMBER, RandomReferences

logger = logging.getLogger(__name__)

SEED_LISTING_COUNT = 8
SEED_TRANSACTION_COUNT = 10

SOURCES = [EnergySource.SOLAR, EnergySource.WIND, EnergySource.HYDRO, EnergySource.MIXED]
SELLER_NAMES = ["Sunny Solar Co.", "Windy Works", "Hydro Hub", "Green Mix"]
LOCATIONS = ["Brooklyn, NY", "Austin, TX", "Portland, OR", "Boulder, CO"]


def should_seed(listings, transactions):
    return not listings and not transactions


class BootstrapSeeder:
    def __init__(self, references=None, clock=timezone.now, rng=None):
        self.references = references or RandomReferences()
        self.clock = clock
        self.rng = rng or random.Random()

    def seed(self, buyer=None):
        """
        Builds the initial dataset.

        ``buyer`` is the identity present at first start, if any; historical
        purchases are attributed to it so personal statistics are populated.
        Returns (listings, transactions), both most recent first as stored.
        """
        now = self.clock()
        listings = [self._listing(i, now) for i in range(SEED_LISTING_COUNT)]
        transactions = [self._transaction(i, now, buyer) for i in range(SEED_TRANSACTION_COUNT)]
        logger.info(
            "Seeded %s listings and %s transactions", len(listings), len(transactions)
        )
        return listings, transactions

    def _listing(self, i, now):
        rng = self.rng
        created_at = now - timedelta(days=rng.randint(0, 4))
        return Listing(
            id=self.references.listing_id(),
            seller_id=f"prosumer_{i}",
            seller_name=SELLER_NAMES[i % len(SELLER_NAMES)],
            energy_amount=float(5 + round(rng.random() * 45)),
            price_per_kwh=round_price(0.10 + rng.random() * 0.12),
            available_from=created_at,
            available_until=created_at + timedelta(hours=48 + rng.randint(0, 47)),
            energy_source=SOURCES[i % len(SOURCES)],
            location=LOCATIONS[i % len(LOCATIONS)],
            status=ListingStatus.AVAILABLE,
            created_at=created_at,
        )

    def _transaction(self, i, now, buyer):
        rng = self.rng
        energy_amount = float(1 + round(rng.random() * 9))
        price = round_price(0.12 + rng.random() * 0.1)

        if rng.random() < 0.85:
            status = TransactionStatus.CONFIRMED
        elif rng.random() < 0.5:
            status = TransactionStatus.PENDING
        else:
            status = TransactionStatus.FAILED

        return Transaction(
            id=self.references.transaction_id(),
            buyer_id=buyer.id if buyer else f"buyer_{i}",
            buyer_name=buyer.name if buyer else "You",
            seller_id=f"seller_{i}",
            seller_name=SELLER_NAMES[i % len(SELLER_NAMES)],
            energy_amount=energy_amount,
            price_per_kwh=price,
            total_amount=settlement_total(price, energy_amount),
            settlement=SettlementRef(
                transaction_hash=self.references.settlement().transaction_hash,
                block_number=BASE_BLOCK_NUMBER + i,
            ),
            status=status,
            timestamp=now - timedelta(days=rng.randint(0, 19)),
            energy_source=SOURCES[i % len(SOURCES)],
        )
