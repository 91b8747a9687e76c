from rest_framework import serializers
from responders.models import ResponderProfile
from accounts.serializers import UserSerializer


class ResponderProfileSerializer(serializers.ModelSerializer):
    """
    Full responder profile serializer
    """
    user = UserSerializer(read_only=True)

    class Meta:
        model = ResponderProfile
        fields = [
            "id",
            "user",
            "current_latitude",
            "current_longitude",
            "last_location_update",
            "offered_count",
            "accepted_count",
        ]
        read_only_fields = fields


class LocationUpdateSerializer(serializers.Serializer):
    """
    Serializer for updating responder GPS location.
    """
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
