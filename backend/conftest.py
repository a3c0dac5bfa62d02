import pytest

from bookings.services.payments import get_payment_gateway


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path
    return tmp_path


@pytest.fixture(autouse=True)
def reset_payment_gateway():
    get_payment_gateway.cache_clear()
    yield
    get_payment_gateway.cache_clear()
