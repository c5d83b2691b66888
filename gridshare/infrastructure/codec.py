"""
JSON codecs for the persisted collections.

Records are stored as plain dicts with camelCase keys and ISO-8601
timestamps. Timestamps must be revived explicitly on the way back in,
otherwise they come back as strings and every comparison breaks.
"""

from django.utils.dateparse import parse_datetime

from gridshare.domain.entities import (
    EnergySource,
    Listing,
    ListingStatus,
    SettlementRef,
    Transaction,
    TransactionStatus,
)


def _dump_datetime(value):
    return value.isoformat()


def _load_datetime(raw):
    if not isinstance(raw, str):
        raise TypeError(f"expected an ISO-8601 string, got {type(raw).__name__}")
    value = parse_datetime(raw)
    if value is None:
        raise ValueError(f"not a datetime: {raw!r}")
    return value


def _load_number(raw):
    # bool is an int subclass but never a valid quantity
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise TypeError(f"expected a number, got {type(raw).__name__}")
    return float(raw)


def dump_listing(listing):
    return {
        "id": listing.id,
        "prosumerId": listing.seller_id,
        "prosumerName": listing.seller_name,
        "energyAmount": listing.energy_amount,
        "pricePerKwh": listing.price_per_kwh,
        "availableFrom": _dump_datetime(listing.available_from),
        "availableUntil": _dump_datetime(listing.available_until),
        "energySource": listing.energy_source.value,
        "location": listing.location,
        "status": listing.status.value,
        "createdAt": _dump_datetime(listing.created_at),
    }


def load_listing(raw):
    return Listing(
        id=str(raw["id"]),
        seller_id=str(raw["prosumerId"]),
        seller_name=str(raw["prosumerName"]),
        energy_amount=_load_number(raw["energyAmount"]),
        price_per_kwh=_load_number(raw["pricePerKwh"]),
        available_from=_load_datetime(raw["availableFrom"]),
        available_until=_load_datetime(raw["availableUntil"]),
        energy_source=EnergySource(raw["energySource"]),
        location=str(raw["location"]),
        status=ListingStatus(raw["status"]),
        created_at=_load_datetime(raw["createdAt"]),
    )


def dump_transaction(tx):
    return {
        "id": tx.id,
        "listingId": tx.listing_id,
        "buyerId": tx.buyer_id,
        "buyerName": tx.buyer_name,
        "sellerId": tx.seller_id,
        "sellerName": tx.seller_name,
        "energyAmount": tx.energy_amount,
        "pricePerKwh": tx.price_per_kwh,
        "totalAmount": tx.total_amount,
        "transactionHash": tx.settlement.transaction_hash,
        "blockNumber": tx.settlement.block_number,
        "status": tx.status.value,
        "timestamp": _dump_datetime(tx.timestamp),
        "energySource": tx.energy_source.value,
    }


def load_transaction(raw):
    listing_id = raw.get("listingId")
    return Transaction(
        id=str(raw["id"]),
        listing_id=None if listing_id is None else str(listing_id),
        buyer_id=str(raw["buyerId"]),
        buyer_name=str(raw["buyerName"]),
        seller_id=str(raw["sellerId"]),
        seller_name=str(raw["sellerName"]),
        energy_amount=_load_number(raw["energyAmount"]),
        price_per_kwh=_load_number(raw["pricePerKwh"]),
        total_amount=_load_number(raw["totalAmount"]),
        settlement=SettlementRef(
            transaction_hash=str(raw["transactionHash"]),
            block_number=int(raw["blockNumber"]),
        ),
        status=TransactionStatus(raw["status"]),
        timestamp=_load_datetime(raw["timestamp"]),
        energy_source=EnergySource(raw["energySource"]),
    )


class Codec:
    def __init__(self, dump, load):
        self.dump = dump
        self.load = load


LISTING_CODEC = Codec(dump_listing, load_listing)
TRANSACTION_CODEC = Codec(dump_transaction, load_transaction)
