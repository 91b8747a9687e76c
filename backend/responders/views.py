from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from responders.models import ResponderProfile
from responders.serializers import (
    ResponderProfileSerializer,
    LocationUpdateSerializer,
)

from responders import services
from services.dispatch_management.exceptions import ResponderNotFoundError


def get_responder_profile(user):
    """
    Raises:
        ResponderNotFoundError: user has no responder profile
    """
    try:
        return ResponderProfile.objects.get(user=user)
    except ResponderProfile.DoesNotExist:
        raise ResponderNotFoundError(f"No responder profile for user {user.id}")


# Utility: Ensure request.user is a doctor or transit service
def require_responder(user):
    if not user.is_responder:
        return False, Response({"error": "Only doctors and transit services allowed"}, status=403)
    try:
        return True, get_responder_profile(user)
    except ResponderNotFoundError as exc:
        return False, Response({"error": exc.error_code, "message": exc.message}, status=exc.http_status)


class ResponderProfileView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ok, profile = require_responder(request.user)
        if ok is False:
            return profile  # Response object

        serializer = ResponderProfileSerializer(profile, context={"request": request})
        return Response(serializer.data)


class ResponderLocationView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ok, profile = require_responder(request.user)
        if ok is False:
            return profile

        return Response({
            "latitude": profile.current_latitude,
            "longitude": profile.current_longitude,
            "last_updated": profile.last_location_update,
        })

    def post(self, request):
        ok, profile = require_responder(request.user)
        if ok is False:
            return profile

        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lat = serializer.validated_data["latitude"]
        lon = serializer.validated_data["longitude"]

        services.update_responder_location(profile, lat, lon)

        return Response({
            "message": "Location updated",
            "latitude": lat,
            "longitude": lon,
        })
