from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import User
from responders.models import ResponderProfile


class ResponderProfileInline(admin.StackedInline):
    model = ResponderProfile
    can_delete = False
    readonly_fields = ("offered_count", "accepted_count", "last_location_update")


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin panel for accounts; responders show their dispatch profile inline"""

    list_display = ("email", "username", "role", "phone_number", "has_device", "is_active")
    list_filter = ("role", "is_active", "date_joined")
    search_fields = ("email", "username", "phone_number", "designation")
    ordering = ("email",)

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Dispatch Info", {"fields": ("role", "phone_number", "designation", "device_id")}),
    )
    add_fieldsets = (
        (None, {
            "classes": ("wide",),
            "fields": ("email", "username", "role", "password1", "password2"),
        }),
    )

    @admin.display(boolean=True, description="Push")
    def has_device(self, obj):
        from realtime.gateway import has_device_handle
        return has_device_handle(obj.device_id)

    def get_inlines(self, request, obj):
        if obj is not None and obj.is_responder:
            return [ResponderProfileInline]
        return []
