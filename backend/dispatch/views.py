import logging
from functools import wraps

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .serializers import (
    DispatchRequestSerializer,
    DispatchCreateSerializer,
    TransitCreateSerializer,
    EscalateSerializer,
)

# Import from services layer
from services import dispatch_management as dispatch_service
from services.dispatch_management import DispatchError

logger = logging.getLogger(__name__)


def dispatch_errors(view):
    """Translate engine errors into {"success": false, "error", "message"} responses."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except DispatchError as exc:
            logger.info("%s rejected for user %s: %s", view.__name__, request.user.id, exc.error_code)
            return Response(
                {'success': False, 'error': exc.error_code, 'message': exc.message},
                status=exc.http_status
            )
    return wrapper


def _result_response(result, status_code=status.HTTP_200_OK, **extra):
    payload = {
        'success': result.success,
        'message': result.message,
        'request': DispatchRequestSerializer(result.request).data if result.request else None,
    }
    payload.update(result.extra or {})
    payload.update(extra)
    return Response(payload, status=status_code)


# ==================== Requester APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
@dispatch_errors
def create_request(request):
    """Broadcast a new SOS to nearby doctors"""
    serializer = DispatchCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    result = dispatch_service.create_request(
        request.user,
        data['latitude'],
        data['longitude'],
        note=data['note'],
        radius=data['radius'],
    )
    return _result_response(result, status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@dispatch_errors
def escalate_request(request, request_id):
    """Widen the search radius of one of your requests"""
    serializer = EscalateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = dispatch_service.escalate_request(request.user, request_id, serializer.validated_data['radius'])
    return _result_response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@dispatch_errors
def resolve_request(request, request_id):
    """Mark one of your requests as resolved"""
    result = dispatch_service.resolve_request(request.user, request_id)
    return _result_response(result)


# ==================== Responder APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
@dispatch_errors
def claim_request(request, request_id):
    """Claim a request offered to you; returns the requester's contact details"""
    result = dispatch_service.claim_request(request.user, request_id)
    return _result_response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@dispatch_errors
def decline_request(request, request_id):
    """Decline a request offered to you"""
    result = dispatch_service.decline_request(request.user, request_id)
    return _result_response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@dispatch_errors
def create_transit_request(request, request_id):
    """Call transit services for an SOS you have claimed"""
    serializer = TransitCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    result = dispatch_service.create_transit_request(
        request.user,
        request_id,
        note=data['note'],
        radius=data.get('radius'),
        lat=data.get('latitude'),
        lon=data.get('longitude'),
    )
    return _result_response(result, status.HTTP_201_CREATED)


# ==================== Queries ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated])
@dispatch_errors
def request_history(request):
    """Requests you made or were offered, newest first"""
    requests = dispatch_service.request_history(request.user)
    return Response({
        'count': len(requests),
        'results': DispatchRequestSerializer(requests, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@dispatch_errors
def request_detail(request, request_id):
    dispatch_request = dispatch_service.get_request_for_user(request.user, request_id)
    return Response(DispatchRequestSerializer(dispatch_request).data)
