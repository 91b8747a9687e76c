from django.urls import path
from .views import ResponderProfileView, ResponderLocationView

urlpatterns = [
    path("profile/", ResponderProfileView.as_view(), name="responder-profile"),
    path("location/", ResponderLocationView.as_view(), name="responder-location"),
]
