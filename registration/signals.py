"""Django signals for cache invalidation."""

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from registration.cache import invalidate_blocked_dates
from registration.models import CalendarBlockout


@receiver([post_save, post_delete], sender=CalendarBlockout)
def invalidate_blocked_dates_cache(sender, instance, **kwargs):
    """Invalidate cached blocked-date ranges when a blockout is saved or deleted."""
    invalidate_blocked_dates()
