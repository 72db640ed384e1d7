"""Error taxonomy shared by checkout, webhook and admin flows.

Services raise these; the API layer maps each one to an HTTP status.
"""


class BookingError(Exception):
    """Base class for all booking-flow errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict:
        return {"error": self.message}


class ValidationError(BookingError):
    """Missing or malformed input; never retried."""

    status_code = 400


class ConflictError(BookingError):
    """Requested table/time-slot is unavailable; the customer must re-select."""

    status_code = 409

    def __init__(
        self,
        message: str,
        status: str = "conflict",
        table_id: int | None = None,
        redirect: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.table_id = table_id
        self.redirect = redirect

    def to_body(self) -> dict:
        body = {"error": self.message, "status": self.status}
        if self.table_id is not None:
            body["table_id"] = self.table_id
        if self.redirect:
            body["redirect"] = self.redirect
        return body


class SignatureError(BookingError):
    """Webhook payload failed authenticity verification."""

    status_code = 400


class TransientStoreError(BookingError):
    """Booking Store unreachable or erroring; safe to retry."""

    status_code = 503


class PaymentGatewayError(BookingError):
    """The payment provider rejected or failed a request."""

    status_code = 502


class AuthorizationError(BookingError):
    """Admin credential missing or wrong."""

    status_code = 401


class PartialFulfillmentError(BookingError):
    """Payment succeeded but at least one requested table could not be booked."""

    status_code = 500

    def __init__(self, booking_ref: str, booked: list[int], unfulfilled: list[int]) -> None:
        super().__init__(
            f"partial fulfillment booking_ref={booking_ref} booked={booked} unfulfilled={unfulfilled}"
        )
        self.booking_ref = booking_ref
        self.booked = booked
        self.unfulfilled = unfulfilled
