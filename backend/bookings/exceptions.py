from rest_framework import status
from rest_framework.exceptions import APIException


class BookingError(APIException):
    """Base for errors raised by the booking services; DRF renders them as-is."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Booking request failed."
    default_code = "booking_error"


class ValidationError(BookingError):
    default_detail = "Invalid input."
    default_code = "invalid"


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Booking not found."
    default_code = "not_found"


class InvalidStateError(BookingError):
    default_detail = "Operation not allowed in the current state."
    default_code = "invalid_state"


class AuthenticationError(BookingError):
    default_detail = "Webhook signature verification failed."
    default_code = "invalid_signature"


class UpstreamError(BookingError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Upstream service failed, please retry."
    default_code = "upstream_error"


class ConflictError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Booking was modified concurrently, please retry."
    default_code = "conflict"
