from django.urls import path
from . import views

app_name = 'dispatch'

urlpatterns = [
    # Requester APIs
    path('request/', views.create_request, name='create-request'),
    path('history/', views.request_history, name='request-history'),
    path('<uuid:request_id>/', views.request_detail, name='request-detail'),
    path('<uuid:request_id>/escalate/', views.escalate_request, name='escalate-request'),
    path('<uuid:request_id>/resolve/', views.resolve_request, name='resolve-request'),

    # Responder Actions
    path('<uuid:request_id>/claim/', views.claim_request, name='claim-request'),
    path('<uuid:request_id>/decline/', views.decline_request, name='decline-request'),
    path('<uuid:request_id>/transit/', views.create_transit_request, name='create-transit'),
]
