import django_filters

from bookings.models import Booking, Contract


class BookingAdminFilter(django_filters.FilterSet):
    date_from = django_filters.DateFilter(field_name="event_date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="event_date", lookup_expr="lte")
    status = django_filters.ChoiceFilter(field_name="payment_status", choices=Booking.PAYMENT_STATUSES)
    contract_status = django_filters.ChoiceFilter(field_name="contract__status", choices=Contract.STATUSES)
    hall = django_filters.CharFilter(field_name="hall")

    class Meta:
        model = Booking
        fields = ["date_from", "date_to", "status", "contract_status", "hall"]

    def __init__(self, data=None, *args, **kwargs):
        # `from` and `to` are reserved words, so accept them as aliases.
        if data is not None:
            data = data.copy()
            for alias, name in (("from", "date_from"), ("to", "date_to")):
                if alias in data and name not in data:
                    data[name] = data[alias]
        super().__init__(data, *args, **kwargs)
