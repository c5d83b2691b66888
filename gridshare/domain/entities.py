"""
Domain Entities — Energy Listings and Ledger Entries

Listings and transactions are immutable values. A purchase never edits a
listing in place: it produces a replacement listing and a brand-new
transaction, and the engine swaps both into the stores in one commit.

Transactions hold a denormalized copy of what they need from the listing
(seller, price, source), so later changes to the listing cannot alter
ledger history.

Rounding is a single contract expressed by the policy functions below:
prices and remaining quantities to 3 decimals, settlement totals to 2.
"""

import enum
import math
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from django.utils import timezone

from gridshare.domain.exceptions import InvalidSpec

PRICE_DECIMALS = 3
QUANTITY_DECIMALS = 3
TOTAL_DECIMALS = 2


def _round_half_up(value, decimals):
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_price(value):
    return _round_half_up(value, PRICE_DECIMALS)


def round_quantity(value):
    return _round_half_up(value, QUANTITY_DECIMALS)


def round_total(value):
    return _round_half_up(value, TOTAL_DECIMALS)


def settlement_total(price_per_kwh, energy_amount):
    """Amount owed for ``energy_amount`` kWh at ``price_per_kwh``, to the cent."""
    product = Decimal(str(price_per_kwh)) * Decimal(str(energy_amount))
    return _round_half_up(product, TOTAL_DECIMALS)


class EnergySource(str, enum.Enum):
    SOLAR = "solar"
    WIND = "wind"
    HYDRO = "hydro"
    MIXED = "mixed"


class ListingStatus(str, enum.Enum):
    AVAILABLE = "available"
    SOLD = "sold"
    EXPIRED = "expired"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class Identity:
    id: str
    name: str


@dataclass(frozen=True)
class SettlementRef:
    """Opaque link to an external settlement system. Not verified here."""

    transaction_hash: str
    block_number: int


@dataclass(frozen=True)
class ListingSpec:
    """Caller-supplied values for a new listing."""

    energy_amount: float
    price_per_kwh: float
    energy_source: EnergySource
    available_until: datetime
    location: str
    available_from: Optional[datetime] = None

    def validate(self):
        if not self.energy_amount > 0 or not math.isfinite(self.energy_amount):
            raise InvalidSpec("energy_amount", self.energy_amount, "must be greater than 0")
        if round_quantity(self.energy_amount) <= 0:
            raise InvalidSpec("energy_amount", self.energy_amount, "rounds to zero")
        if not self.price_per_kwh > 0 or not math.isfinite(self.price_per_kwh):
            raise InvalidSpec("price_per_kwh", self.price_per_kwh, "must be greater than 0")
        if round_price(self.price_per_kwh) <= 0:
            raise InvalidSpec("price_per_kwh", self.price_per_kwh, "rounds to zero")
        try:
            EnergySource(self.energy_source)
        except ValueError:
            raise InvalidSpec("energy_source", self.energy_source, "unknown energy source")
        for field in ("available_from", "available_until"):
            value = getattr(self, field)
            if value is not None and timezone.is_naive(value):
                raise InvalidSpec(field, value, "must be timezone-aware")
        if (
            self.available_from is not None
            and self.available_until <= self.available_from
        ):
            raise InvalidSpec(
                "available_until",
                self.available_until,
                "must be later than available_from",
            )


@dataclass(frozen=True)
class Listing:
    id: str
    seller_id: str
    seller_name: str
    energy_amount: float
    price_per_kwh: float
    available_from: datetime
    available_until: datetime
    energy_source: EnergySource
    location: str
    status: ListingStatus
    created_at: datetime

    @property
    def is_available(self):
        return self.status == ListingStatus.AVAILABLE

    def after_purchase(self, amount):
        """
        Returns the listing as it stands once ``amount`` kWh have been sold.

        The remainder is rounded to 3 decimals and never negative; a listing
        with nothing left becomes ``sold``.
        """
        remaining = round_quantity(self.energy_amount - amount)
        if remaining <= 0:
            return replace(self, energy_amount=0.0, status=ListingStatus.SOLD)
        return replace(self, energy_amount=remaining)


@dataclass(frozen=True)
class Transaction:
    id: str
    buyer_id: str
    buyer_name: str
    seller_id: str
    seller_name: str
    energy_amount: float
    price_per_kwh: float
    total_amount: float
    settlement: SettlementRef
    status: TransactionStatus
    timestamp: datetime
    energy_source: EnergySource
    # None for historical entries that predate listing tracking
    listing_id: Optional[str] = None
