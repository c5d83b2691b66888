"""
Reference generators for ids and settlement placeholders.

Business logic never calls a random source directly. It asks a generator,
so tests can swap in SequentialReferences and assert exact values.
"""

import itertools
import secrets
import uuid

from gridshare.domain.entities import SettlementRef

BASE_BLOCK_NUMBER = 1000


class RandomReferences:
    """Production generator: unique ids plus placeholder settlement data."""

    def listing_id(self):
        return f"listing_{uuid.uuid4().hex}"

    def transaction_id(self):
        return f"tx_{uuid.uuid4().hex}"

    def settlement(self):
        return SettlementRef(
            transaction_hash=secrets.token_hex(16),
            block_number=BASE_BLOCK_NUMBER + secrets.randbelow(10000),
        )


class SequentialReferences:
    """Deterministic generator: listing_1, tx_1, hash_0001 and so on."""

    def __init__(self, start=1):
        self._listings = itertools.count(start)
        self._transactions = itertools.count(start)
        self._blocks = itertools.count(start)

    def listing_id(self):
        return f"listing_{next(self._listings)}"

    def transaction_id(self):
        return f"tx_{next(self._transactions)}"

    def settlement(self):
        n = next(self._blocks)
        return SettlementRef(transaction_hash=f"hash_{n:04d}", block_number=BASE_BLOCK_NUMBER + n)
