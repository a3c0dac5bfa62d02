from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Booking, Contract


@receiver(post_save, sender=Booking)
def ensure_contract(sender, instance, created, raw=False, **kwargs):
    # Fixtures load contracts explicitly.
    if created and not raw:
        Contract.objects.get_or_create(booking=instance)
