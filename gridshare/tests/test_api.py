from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from gridshare.domain.entities import EnergySource
from gridshare.domain.exceptions import ConcurrentModification, PersistenceError
from gridshare.infrastructure.persistence import (
    LISTINGS_KEY,
    TRANSACTIONS_KEY,
    DjangoCollectionStore,
)
from gridshare.models import StoredCollection
from gridshare.services import reset_bootstrap
from gridshare.tests.factories import make_listing


@override_settings(GRIDSHARE_SEED_ON_START=False)
class MarketplaceEndpointTest(TestCase):
    """
    Tests for the /api/gridshare/ endpoints.

    Each test runs inside a transaction that is rolled back automatically,
    ensuring full isolation between test cases.
    """

    def setUp(self):
        reset_bootstrap()
        users = get_user_model()
        self.seller = users.objects.create_user(
            username="sunny", first_name="Sunny", last_name="Solar", password="x",
        )
        self.buyer = users.objects.create_user(username="alex", password="x")
        self.client = APIClient()

    def create_listing(self, **overrides):
        payload = {
            "energy_amount": 10,
            "price_per_kwh": 0.15,
            "energy_source": "solar",
            "available_until": (timezone.now() + timedelta(hours=48)).isoformat(),
            "location": "Austin, TX",
        }
        payload.update(overrides)
        self.client.force_authenticate(user=self.seller)
        response = self.client.post("/api/gridshare/listings/", payload, format="json")
        self.client.force_authenticate(user=None)
        return response

    def purchase(self, listing_id, amount, user=None):
        self.client.force_authenticate(user=user or self.buyer)
        return self.client.post(
            f"/api/gridshare/listings/{listing_id}/purchase/",
            {"amount": amount},
            format="json",
        )

    def test_create_listing(self):
        response = self.create_listing(price_per_kwh=0.12345)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["seller_id"], str(self.seller.pk))
        self.assertEqual(response.data["seller_name"], "Sunny Solar")
        self.assertEqual(response.data["price_per_kwh"], 0.123)
        self.assertEqual(response.data["status"], "available")

        listings = DjangoCollectionStore().load(LISTINGS_KEY)
        self.assertEqual(listings[0].id, response.data["id"])

    def test_newest_listing_comes_first(self):
        self.create_listing(location="Austin, TX")
        second = self.create_listing(location="Boulder, CO")

        response = self.client.get("/api/gridshare/listings/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data[0]["id"], second.data["id"])

    def test_anonymous_create_returns_401(self):
        response = self.client.post("/api/gridshare/listings/", {
            "energy_amount": 10,
            "price_per_kwh": 0.15,
            "energy_source": "solar",
            "available_until": (timezone.now() + timedelta(hours=1)).isoformat(),
            "location": "Austin, TX",
        }, format="json")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(DjangoCollectionStore().load(LISTINGS_KEY), [])

    def test_invalid_spec_returns_400(self):
        response = self.create_listing(energy_amount=-5)
        self.assertEqual(response.status_code, 400)

    def test_inverted_window_returns_400(self):
        response = self.create_listing(
            available_from=timezone.now().isoformat(),
            available_until=(timezone.now() - timedelta(hours=1)).isoformat(),
        )
        self.assertEqual(response.status_code, 400)

    def test_missing_fields_returns_400(self):
        response = self.create_listing(location=None)
        self.assertEqual(response.status_code, 400)

    def test_unknown_source_returns_400(self):
        response = self.create_listing(energy_source="coal")
        self.assertEqual(response.status_code, 400)

    def test_full_purchase(self):
        listing_id = self.create_listing().data["id"]

        response = self.purchase(listing_id, 10)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "confirmed")

        listings = self.client.get("/api/gridshare/listings/").data
        self.assertEqual(listings[0]["energy_amount"], 0)
        self.assertEqual(listings[0]["status"], "sold")

        transactions = self.client.get("/api/gridshare/transactions/").data
        self.assertEqual(len(transactions), 1)
        self.assertEqual(transactions[0]["total_amount"], 1.5)
        self.assertEqual(transactions[0]["buyer_id"], str(self.buyer.pk))
        self.assertEqual(transactions[0]["seller_id"], str(self.seller.pk))
        self.assertEqual(transactions[0]["listing_id"], listing_id)

    def test_partial_purchases_accumulate(self):
        listing_id = self.create_listing().data["id"]

        self.purchase(listing_id, 4)
        self.purchase(listing_id, 3)

        listing = self.client.get("/api/gridshare/listings/").data[0]
        self.assertEqual(listing["energy_amount"], 3)
        self.assertEqual(listing["status"], "available")
        self.assertEqual(len(DjangoCollectionStore().load(TRANSACTIONS_KEY)), 2)

    def test_insufficient_quantity_rolls_back(self):
        """Requesting more energy than listed must fail without side effects."""
        listing_id = self.create_listing().data["id"]
        before = {row.key: row.payload for row in StoredCollection.objects.all()}

        response = self.purchase(listing_id, 11)

        self.assertEqual(response.status_code, 422)
        after = {row.key: row.payload for row in StoredCollection.objects.all()}
        self.assertEqual(after, before)

    def test_zero_amount_returns_400(self):
        listing_id = self.create_listing().data["id"]
        response = self.purchase(listing_id, 0)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(DjangoCollectionStore().load(TRANSACTIONS_KEY), [])

    def test_non_numeric_amount_returns_400(self):
        listing_id = self.create_listing().data["id"]
        response = self.purchase(listing_id, "lots")
        self.assertEqual(response.status_code, 400)

    def test_listing_not_found(self):
        response = self.purchase("listing_missing", 1)
        self.assertEqual(response.status_code, 404)

    def test_sold_listing_returns_409(self):
        listing_id = self.create_listing().data["id"]
        self.purchase(listing_id, 10)

        response = self.purchase(listing_id, 1)

        self.assertEqual(response.status_code, 409)

    def test_anonymous_purchase_returns_401(self):
        listing_id = self.create_listing().data["id"]
        response = self.client.post(
            f"/api/gridshare/listings/{listing_id}/purchase/", {"amount": 1}, format="json",
        )
        self.assertEqual(response.status_code, 401)

    def test_write_failure_returns_503(self):
        listing_id = self.create_listing().data["id"]

        def refuse(store, encoded):
            raise PersistenceError(encoded.keys(), "database is locked")

        with mock.patch.object(DjangoCollectionStore, "_write", refuse):
            response = self.purchase(listing_id, 1)

        self.assertEqual(response.status_code, 503)
        self.assertEqual(DjangoCollectionStore().load(TRANSACTIONS_KEY), [])

    def test_marketplace_search(self):
        store = DjangoCollectionStore()
        store.save(LISTINGS_KEY, [
            make_listing(id="wind", seller_name="Windy Works", energy_source=EnergySource.WIND, price_per_kwh=0.2),
            make_listing(id="solar", seller_name="Sunny Solar Co.", price_per_kwh=0.11),
        ])

        response = self.client.get("/api/gridshare/listings/", {"sort": "price"})
        self.assertEqual([l["id"] for l in response.data], ["solar", "wind"])

        response = self.client.get("/api/gridshare/listings/", {"q": "windy"})
        self.assertEqual([l["id"] for l in response.data], ["wind"])

    def test_marketplace_search_rejects_unknown_sort(self):
        response = self.client.get("/api/gridshare/listings/", {"sort": "distance"})
        self.assertEqual(response.status_code, 400)

    def test_summary(self):
        listing_id = self.create_listing().data["id"]
        self.purchase(listing_id, 4)

        response = self.client.get("/api/gridshare/summary/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total_spent"], 0.6)
        self.assertEqual(response.data["total_earned"], 0.0)

        self.client.force_authenticate(user=self.seller)
        response = self.client.get("/api/gridshare/summary/")
        self.assertEqual(response.data["total_earned"], 0.6)

    def test_anonymous_summary_returns_401(self):
        response = self.client.get("/api/gridshare/summary/")
        self.assertEqual(response.status_code, 401)


class BootstrapEndpointTest(TestCase):

    def setUp(self):
        reset_bootstrap()
        self.client = APIClient()

    @override_settings(GRIDSHARE_SEED_ON_START=True)
    def test_first_request_seeds_cold_store(self):
        listings = self.client.get("/api/gridshare/listings/").data
        transactions = self.client.get("/api/gridshare/transactions/").data

        self.assertEqual(len(listings), 8)
        self.assertEqual(len(transactions), 10)
        self.assertTrue(all(l["status"] == "available" for l in listings))
        self.assertTrue(
            all(tx["status"] in {"pending", "confirmed", "failed"} for tx in transactions)
        )

    @override_settings(GRIDSHARE_SEED_ON_START=True)
    def test_existing_data_is_not_reseeded(self):
        DjangoCollectionStore().save(LISTINGS_KEY, [make_listing()])

        listings = self.client.get("/api/gridshare/listings/").data

        self.assertEqual([l["id"] for l in listings], ["listing_a"])
        self.assertEqual(self.client.get("/api/gridshare/transactions/").data, [])

    @override_settings(GRIDSHARE_SEED_ON_START=False)
    def test_seeding_can_be_disabled(self):
        self.assertEqual(self.client.get("/api/gridshare/listings/").data, [])

    @override_settings(GRIDSHARE_SEED_ON_START=True)
    def test_failed_seed_write_returns_503_and_is_retried(self):
        def refuse(store, encoded):
            raise PersistenceError(encoded.keys(), "database is locked")

        with mock.patch.object(DjangoCollectionStore, "_write", refuse):
            response = self.client.get("/api/gridshare/listings/")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(StoredCollection.objects.count(), 0)

        response = self.client.get("/api/gridshare/listings/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 8)

    @override_settings(GRIDSHARE_SEED_ON_START=True)
    def test_seed_race_with_another_worker_returns_409(self):
        def lose_race(store, encoded):
            raise ConcurrentModification(LISTINGS_KEY, 0, 1)

        with mock.patch.object(DjangoCollectionStore, "_write", lose_race):
            response = self.client.get("/api/gridshare/transactions/")

        self.assertEqual(response.status_code, 409)
