import uuid

from django.db import models
from django.conf import settings

from accounts.models import Role


class RequestState(models.TextChoices):
    BROADCASTING = 'broadcasting', 'Broadcasting'
    CLAIMED = 'claimed', 'Claimed'
    EXHAUSTED = 'exhausted', 'Exhausted'
    RESOLVED = 'resolved', 'Resolved'


class DispatchRequest(models.Model):
    """
    An SOS (doctor) or transit request broadcast to nearby responders.

    Transit requests are derived from a claimed SOS: `parent` points at it
    and the requester is the claiming doctor.
    """

    RESPONDER_CLASS_CHOICES = [
        (Role.DOCTOR, 'Doctor'),
        (Role.TRANSIT, 'Transit Service'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    requester = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='dispatch_requests'
    )

    responder_class = models.CharField(max_length=10, choices=RESPONDER_CLASS_CHOICES)

    parent = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='derived_requests'
    )

    # Origin of the emergency
    origin_latitude = models.FloatField()
    origin_longitude = models.FloatField()
    note = models.TextField(blank=True, default='')
    search_radius = models.FloatField()

    # Set at most once, by a conditional update
    claimant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='claimed_requests'
    )
    claimed_at = models.DateTimeField(null=True, blank=True)

    rejection_count = models.PositiveIntegerField(default=0)

    resolved = models.BooleanField(default=False)
    resolved_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'dispatch_requests'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.get_responder_class_display()} request {self.id} - {self.requester} - {self.state}"

    def candidate_ids(self):
        """Responder ids in offer order."""
        return list(self.offers.order_by('id').values_list('responder_id', flat=True))

    @property
    def state(self) -> str:
        if self.resolved:
            return RequestState.RESOLVED
        if self.claimant_id is not None:
            return RequestState.CLAIMED
        if self.rejection_count and self.rejection_count >= self.offers.count():
            return RequestState.EXHAUSTED
        return RequestState.BROADCASTING


class DispatchOffer(models.Model):
    """One candidate of a request; the offers of a request form its candidate set."""

    request = models.ForeignKey(
        DispatchRequest,
        on_delete=models.CASCADE,
        related_name='offers'
    )

    responder = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='dispatch_offers'
    )

    offered_at = models.DateTimeField(auto_now_add=True)
    declined_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'dispatch_offers'
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(
                fields=['request', 'responder'],
                name='unique_request_responder'
            )
        ]

    def __str__(self):
        return f"Offer #{self.id} - Request {self.request_id} -> {self.responder}"
