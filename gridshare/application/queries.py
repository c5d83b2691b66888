"""Read-only views over listing and ledger snapshots."""

from collections import OrderedDict

from django.utils import timezone

from gridshare.domain.entities import (
    EnergySource,
    TransactionStatus,
    round_price,
    round_quantity,
    round_total,
)

SORT_KEYS = ("time", "price", "amount")
SUMMARY_MONTHS = 6


def search_listings(listings, term="", source=None, sort="time"):
    """
    Open listings matching ``term`` (seller name or location, any case) and
    ``source``, ordered by ``sort``:

    - ``time``: newest first
    - ``price``: cheapest first
    - ``amount``: largest remaining quantity first
    """
    if sort not in SORT_KEYS:
        raise ValueError(f"Unknown sort {sort!r}, expected one of {', '.join(SORT_KEYS)}")

    needle = (term or "").lower()
    wanted = EnergySource(source) if source else None

    matches = [
        listing for listing in listings
        if listing.is_available
        and (needle in listing.seller_name.lower() or needle in listing.location.lower())
        and (wanted is None or listing.energy_source == wanted)
    ]

    if sort == "price":
        return sorted(matches, key=lambda listing: listing.price_per_kwh)
    if sort == "amount":
        return sorted(matches, key=lambda listing: listing.energy_amount, reverse=True)
    return sorted(matches, key=lambda listing: listing.created_at, reverse=True)


def trading_summary(transactions, identity):
    spent = sum(tx.total_amount for tx in transactions if tx.buyer_id == identity.id)
    earned = sum(tx.total_amount for tx in transactions if tx.seller_id == identity.id)

    by_source = OrderedDict((source.value, 0.0) for source in EnergySource)
    for tx in transactions:
        by_source[tx.energy_source.value] += tx.energy_amount

    monthly = {}
    for tx in transactions:
        month = timezone.localtime(tx.timestamp).strftime("%Y-%m")
        spent_earned = monthly.setdefault(month, [0.0, 0.0])
        if tx.buyer_id == identity.id:
            spent_earned[0] += tx.total_amount
        if tx.seller_id == identity.id:
            spent_earned[1] += tx.total_amount

    count = len(transactions)
    confirmed = sum(1 for tx in transactions if tx.status == TransactionStatus.CONFIRMED)

    return {
        "total_spent": round_total(spent),
        "total_earned": round_total(earned),
        "energy_traded": round_quantity(sum(tx.energy_amount for tx in transactions)),
        "average_price": (
            round_price(sum(tx.price_per_kwh for tx in transactions) / count) if count else None
        ),
        "confirmed_rate": round(confirmed * 100 / count) if count else 0,
        "by_source": {key: round_quantity(value) for key, value in by_source.items()},
        # Last SUMMARY_MONTHS months with activity, oldest first
        "monthly": [
            {"month": month, "spent": round_total(paid), "earned": round_total(received)}
            for month, (paid, received) in sorted(monthly.items())[-SUMMARY_MONTHS:]
        ],
    }
