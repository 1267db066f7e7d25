"""
Django Signals

Only one job: every user gets a Profile (the row that holds
follower_count / following_count).

Counters are NOT maintained through signals. Signals do not fire on
QuerySet.update() / QuerySet.delete() / bulk_create(), so counting through
them silently drifts. Every counter change goes through counters.py,
called explicitly by the action that wrote the detail record.
"""

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Profile


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def ensure_profile(sender, instance, created, **kwargs):
    if created:
        Profile.objects.get_or_create(user=instance)
