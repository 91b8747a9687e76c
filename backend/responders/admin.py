from django.contrib import admin
from responders.models import ResponderProfile


@admin.register(ResponderProfile)
class ResponderProfileAdmin(admin.ModelAdmin):
    """Admin panel for managing Responder Profiles"""

    list_display = [
        "user",
        "current_latitude",
        "current_longitude",
        "offered_count",
        "accepted_count",
        "last_location_update",
    ]

    list_filter = [
        "user__role",
        "last_location_update",
    ]

    search_fields = [
        "user__email",
        "user__username",
    ]

    # Counters belong to the dispatch ledger
    readonly_fields = [
        "offered_count",
        "accepted_count",
        "last_location_update",
    ]

    ordering = ("user__email",)
