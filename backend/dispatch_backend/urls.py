from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),  # register, login, refresh, me, device, users

    # Responder APIs (profile, location)
    path('api/responder/', include('responders.urls')),

    # Dispatch endpoints (at /api/dispatch/)
    path('api/dispatch/', include('dispatch.urls')),  # SOS/transit lifecycle
]
