from django.conf import settings
from rest_framework import serializers

from accounts.serializers import PublicProfileSerializer
from .models import DispatchRequest


class DispatchRequestSerializer(serializers.ModelSerializer):
    """Serializer for dispatch requests"""
    requester = PublicProfileSerializer(read_only=True)
    claimant = PublicProfileSerializer(read_only=True)
    state = serializers.CharField(read_only=True)
    candidate_count = serializers.SerializerMethodField()

    class Meta:
        model = DispatchRequest
        fields = ['id', 'requester', 'responder_class', 'parent', 'origin_latitude',
                  'origin_longitude', 'note', 'search_radius', 'claimant', 'claimed_at',
                  'rejection_count', 'candidate_count', 'resolved', 'resolved_at', 'state',
                  'created_at', 'updated_at']
        read_only_fields = fields

    def get_candidate_count(self, obj):
        return obj.offers.count()


class _RadiusField(serializers.FloatField):
    """Radius in meters; the upper bound is enforced by the geofence."""

    def __init__(self, **kwargs):
        kwargs.setdefault('min_value', 0)
        super().__init__(**kwargs)


class DispatchCreateSerializer(serializers.Serializer):
    """Serializer for broadcasting a new SOS"""
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    note = serializers.CharField(required=False, allow_blank=True, default='')
    radius = _RadiusField(required=False)

    def validate(self, data):
        data.setdefault('radius', settings.DISPATCH_DEFAULT_RADIUS_METERS)
        return data


class TransitCreateSerializer(serializers.Serializer):
    """Serializer for a doctor calling transit for a claimed SOS"""
    note = serializers.CharField(required=False, allow_blank=True, default='')
    radius = _RadiusField(required=False)
    latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)
    longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)

    def validate(self, data):
        if (data.get('latitude') is None) != (data.get('longitude') is None):
            raise serializers.ValidationError('Latitude and longitude must be provided together')
        return data


class EscalateSerializer(serializers.Serializer):
    """Serializer for widening the search radius"""
    radius = _RadiusField()
