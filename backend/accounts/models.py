from django.db import models
from django.contrib.auth.models import AbstractUser


class Role(models.TextChoices):
    """Closed set of account kinds; doctors and transit services are responders."""
    CLIENT = 'client', 'Client'
    DOCTOR = 'doctor', 'Doctor'
    TRANSIT = 'transit', 'Transit Service'


RESPONDER_ROLES = (Role.DOCTOR, Role.TRANSIT)


class User(AbstractUser):
    """Extended user model; the email address is the identity key."""

    email = models.EmailField('email address', unique=True)

    # Role & basic info
    role = models.CharField(max_length=10, choices=Role.choices)
    phone_number = models.CharField(max_length=15, blank=True)
    designation = models.CharField(max_length=100, blank=True)

    # Push notification handle (FCM registration token)
    device_id = models.CharField(max_length=255, null=True, blank=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.email} ({self.get_role_display()})"

    @property
    def is_responder(self) -> bool:
        return self.role in RESPONDER_ROLES
