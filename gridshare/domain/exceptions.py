class TradingError(Exception):
    """Base class for conditions raised by the trading engine."""


class NotAuthenticated(TradingError):
    """Raised when a mutating operation is attempted without a current identity."""

    def __init__(self, operation):
        self.operation = operation
        super().__init__(f"You must be logged in to {operation}.")


class InvalidSpec(TradingError):
    """Raised when a listing specification has a value outside its allowed range."""

    def __init__(self, field, value, reason):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


class InvalidAmount(TradingError):
    """Raised when a purchase requests a non-positive quantity."""

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Amount must be greater than 0, got {amount}")


class ListingNotFound(TradingError):
    """Raised when no listing with the given id exists."""

    def __init__(self, listing_id):
        self.listing_id = listing_id
        super().__init__(f"Listing {listing_id} not found")


class ListingUnavailable(TradingError):
    """Raised when a purchase targets a listing that is sold or expired."""

    def __init__(self, listing_id, status):
        self.listing_id = listing_id
        self.status = status
        super().__init__(f"Listing {listing_id} is not available (status={status})")


class InsufficientQuantity(TradingError):
    """Raised when a purchase requests more energy than the listing has left."""

    def __init__(self, listing_id, requested, available):
        self.listing_id = listing_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Listing {listing_id}: requested {requested}, available {available}"
        )


class PersistenceError(Exception):
    """Raised when the durable store cannot complete a write."""

    def __init__(self, keys, reason):
        self.keys = tuple(keys)
        self.reason = reason
        super().__init__(f"Could not persist {', '.join(self.keys)}: {reason}")


class ConcurrentModification(PersistenceError):
    """Raised when a collection was rewritten by another writer since it was read."""

    def __init__(self, key, expected_version, actual_version):
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            [key],
            f"expected version {expected_version}, found {actual_version}",
        )
