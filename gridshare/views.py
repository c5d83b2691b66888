"""
API Layer — Energy Marketplace Endpoints (Django REST Framework)

Thin controllers over the trading engine. Each view:

- coerces request data through a serializer,
- builds an engine bound to the requesting user,
- delegates to a single engine operation or query,
- maps domain exceptions to HTTP responses.

No business rules live here. The engine enforces every invariant and the
persistence adapter owns transactional guarantees.

Status mapping:

    NotAuthenticated            401
    InvalidSpec / InvalidAmount 400
    ListingNotFound             404
    ListingUnavailable          409
    ConcurrentModification      409 (another writer got there first, retry)
    InsufficientQuantity        422
    PersistenceError            503
"""

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from gridshare.application.queries import search_listings, trading_summary
from gridshare.domain.exceptions import (
    ConcurrentModification,
    InsufficientQuantity,
    InvalidAmount,
    InvalidSpec,
    ListingNotFound,
    ListingUnavailable,
    NotAuthenticated,
    PersistenceError,
)
from gridshare.serializers import (
    ListingQuerySerializer,
    ListingSerializer,
    ListingSpecSerializer,
    PurchaseSerializer,
    TransactionSerializer,
)
from gridshare.services import engine_for_request


def _error(exc, http_status):
    return Response({"error": str(exc)}, status=http_status)


class TradingAPIView(APIView):
    """
    Maps persistence failures for every endpoint, including the ones raised
    while the engine for the request is loaded or bootstrapped.
    """

    def handle_exception(self, exc):
        if isinstance(exc, ConcurrentModification):
            return _error(exc, status.HTTP_409_CONFLICT)
        if isinstance(exc, PersistenceError):
            return _error(exc, status.HTTP_503_SERVICE_UNAVAILABLE)
        return super().handle_exception(exc)


class ListingsView(TradingAPIView):
    """
    GET  /api/gridshare/listings/   all listings, or a marketplace search
                                    when q, source or sort is given
    POST /api/gridshare/listings/   publish a listing as the current user
    """

    def get(self, request):
        engine = engine_for_request(request)
        listings = engine.snapshot_listings()

        if any(param in request.query_params for param in ("q", "source", "sort")):
            query = ListingQuerySerializer(data=request.query_params)
            query.is_valid(raise_exception=True)
            listings = search_listings(
                listings,
                term=query.validated_data["q"],
                source=query.validated_data["source"],
                sort=query.validated_data["sort"],
            )

        return Response(ListingSerializer(listings, many=True).data)

    def post(self, request):
        payload = ListingSpecSerializer(data=request.data)
        if not payload.is_valid():
            return Response({"error": payload.errors}, status=status.HTTP_400_BAD_REQUEST)

        engine = engine_for_request(request)
        try:
            listing = engine.create_listing(payload.to_spec())
        except NotAuthenticated as exc:
            return _error(exc, status.HTTP_401_UNAUTHORIZED)
        except InvalidSpec as exc:
            return _error(exc, status.HTTP_400_BAD_REQUEST)

        return Response(ListingSerializer(listing).data, status=status.HTTP_201_CREATED)


class PurchaseView(TradingAPIView):
    """POST /api/gridshare/listings/<listing_id>/purchase/"""

    def post(self, request, listing_id):
        payload = PurchaseSerializer(data=request.data)
        if not payload.is_valid():
            return Response({"error": payload.errors}, status=status.HTTP_400_BAD_REQUEST)

        engine = engine_for_request(request)
        try:
            engine.purchase_energy(listing_id, payload.validated_data["amount"])
        except NotAuthenticated as exc:
            return _error(exc, status.HTTP_401_UNAUTHORIZED)
        except InvalidAmount as exc:
            return _error(exc, status.HTTP_400_BAD_REQUEST)
        except ListingNotFound as exc:
            return _error(exc, status.HTTP_404_NOT_FOUND)
        except ListingUnavailable as exc:
            return _error(exc, status.HTTP_409_CONFLICT)
        except InsufficientQuantity as exc:
            return _error(exc, status.HTTP_422_UNPROCESSABLE_ENTITY)

        return Response({"status": "confirmed"}, status=status.HTTP_200_OK)


class TransactionsView(TradingAPIView):
    """GET /api/gridshare/transactions/"""

    def get(self, request):
        engine = engine_for_request(request)
        return Response(TransactionSerializer(engine.snapshot_transactions(), many=True).data)


class SummaryView(TradingAPIView):
    """GET /api/gridshare/summary/  spending, earnings and volume for the current user."""

    def get(self, request):
        engine = engine_for_request(request)
        identity = engine.identity.current()
        if identity is None:
            return _error(NotAuthenticated("view a trading summary"), status.HTTP_401_UNAUTHORIZED)
        return Response(trading_summary(engine.snapshot_transactions(), identity))
