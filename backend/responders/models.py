from django.db import models
from django.utils import timezone
from django.conf import settings

User = settings.AUTH_USER_MODEL


class ResponderProfile(models.Model):
    """Position and dispatch statistics of a doctor or transit service"""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='responder_profile')

    # Last reported position; null until the responder's first report
    current_latitude = models.FloatField(null=True, blank=True)
    current_longitude = models.FloatField(null=True, blank=True)
    last_location_update = models.DateTimeField(default=timezone.now)

    # Ledger counters, only ever changed with F() increments
    offered_count = models.PositiveIntegerField(default=0)
    accepted_count = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'responder_profiles'
        indexes = [
            models.Index(fields=['current_latitude', 'current_longitude'], name='responder_position_idx'),
        ]

    def __str__(self):
        return f"{self.user.email} ({self.user.role})"

    @property
    def has_position(self) -> bool:
        return self.current_latitude is not None and self.current_longitude is not None
