"""Tells what to show in the Django admin interface for dispatch app"""

from django.contrib import admin
from .models import DispatchRequest, DispatchOffer


class DispatchOfferInline(admin.TabularInline):
    model = DispatchOffer
    extra = 0
    readonly_fields = ("responder", "offered_at", "declined_at")


@admin.register(DispatchRequest)
class DispatchRequestAdmin(admin.ModelAdmin):
    """Dispatch Request admin"""
    list_display = ['id', 'requester', 'responder_class', 'claimant', 'rejection_count', 'resolved', 'created_at']
    list_filter = ['responder_class', 'resolved', 'created_at']
    search_fields = ['requester__email', 'claimant__email', 'note']
    readonly_fields = ['created_at', 'updated_at', 'claimed_at', 'resolved_at']
    date_hierarchy = 'created_at'
    inlines = [DispatchOfferInline]


@admin.register(DispatchOffer)
class DispatchOfferAdmin(admin.ModelAdmin):
    list_display = ("request", "responder", "offered_at", "declined_at")
    list_filter = ("declined_at",)
    search_fields = ("request__id", "responder__email")
