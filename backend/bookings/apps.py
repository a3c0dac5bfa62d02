from django.apps import AppConfig


class BookingsConfig(AppConfig):
    name = "bookings"
    verbose_name = "Venue bookings"

    def ready(self):
        from . import signals  # noqa: F401
