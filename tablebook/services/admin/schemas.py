"""Admin request schemas; camelCase keys from the admin panel are accepted."""

from datetime import date

from pydantic import AliasChoices, BaseModel, Field, field_validator

from tablebook.common.timeslots import format_minutes, to_minutes


class ManualBookingRequest(BaseModel):
    """Staff-entered booking (phone, walk-in)."""

    table_id: int = Field(validation_alias=AliasChoices("table_id", "tableId"))
    booking_date: date = Field(validation_alias=AliasChoices("booking_date", "date"))
    start_time: str = Field(validation_alias=AliasChoices("start_time", "startTime"))
    end_time: str | None = Field(default=None, validation_alias=AliasChoices("end_time", "endTime"))
    tenant_id: str = Field(min_length=1, validation_alias=AliasChoices("tenant_id", "tenantId"))
    notes: str | None = None
    customer_email: str | None = Field(default=None, validation_alias=AliasChoices("customer_email", "customerEmail"))
    customer_name: str | None = Field(default=None, validation_alias=AliasChoices("customer_name", "customerName"))
    party_size: int | None = Field(default=None, ge=1, validation_alias=AliasChoices("party_size", "partySize"))
    payment_amount_minor: int | None = Field(
        default=None, gt=0, validation_alias=AliasChoices("payment_amount_minor", "paymentAmountMinor")
    )

    @field_validator("start_time", "end_time")
    @classmethod
    def _valid_time(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return format_minutes(to_minutes(value))


class DeleteBookingRequest(BaseModel):
    booking_id: int = Field(validation_alias=AliasChoices("booking_id", "bookingId"))
    tenant_id: str = Field(min_length=1, validation_alias=AliasChoices("tenant_id", "tenantId"))
