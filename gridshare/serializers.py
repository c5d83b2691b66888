from rest_framework import serializers

from gridshare.application.queries import SORT_KEYS
from gridshare.domain.entities import EnergySource, ListingSpec

SOURCE_CHOICES = [source.value for source in EnergySource]


class ListingSpecSerializer(serializers.Serializer):
    """Type coercion only; value ranges are checked by the engine."""

    energy_amount = serializers.FloatField()
    price_per_kwh = serializers.FloatField()
    energy_source = serializers.ChoiceField(choices=SOURCE_CHOICES)
    available_from = serializers.DateTimeField(required=False, allow_null=True, default=None)
    available_until = serializers.DateTimeField()
    location = serializers.CharField(max_length=200)

    def to_spec(self):
        data = self.validated_data
        return ListingSpec(
            energy_amount=data["energy_amount"],
            price_per_kwh=data["price_per_kwh"],
            energy_source=EnergySource(data["energy_source"]),
            available_from=data["available_from"],
            available_until=data["available_until"],
            location=data["location"],
        )


class PurchaseSerializer(serializers.Serializer):
    amount = serializers.FloatField()


class ListingQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, default="")
    source = serializers.ChoiceField(choices=SOURCE_CHOICES, required=False, default=None)
    sort = serializers.ChoiceField(choices=SORT_KEYS, required=False, default="time")


class ListingSerializer(serializers.Serializer):
    id = serializers.CharField()
    seller_id = serializers.CharField()
    seller_name = serializers.CharField()
    energy_amount = serializers.FloatField()
    price_per_kwh = serializers.FloatField()
    available_from = serializers.DateTimeField()
    available_until = serializers.DateTimeField()
    energy_source = serializers.CharField(source="energy_source.value")
    location = serializers.CharField()
    status = serializers.CharField(source="status.value")
    created_at = serializers.DateTimeField()


class TransactionSerializer(serializers.Serializer):
    id = serializers.CharField()
    listing_id = serializers.CharField(allow_null=True)
    buyer_id = serializers.CharField()
    buyer_name = serializers.CharField()
    seller_id = serializers.CharField()
    seller_name = serializers.CharField()
    energy_amount = serializers.FloatField()
    price_per_kwh = serializers.FloatField()
    total_amount = serializers.FloatField()
    transaction_hash = serializers.CharField(source="settlement.transaction_hash")
    block_number = serializers.IntegerField(source="settlement.block_number")
    status = serializers.CharField(source="status.value")
    timestamp = serializers.DateTimeField()
    energy_source = serializers.CharField(source="energy_source.value")
