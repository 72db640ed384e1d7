"""Request/response schemas for checkout creation."""

from datetime import date

from pydantic import AliasChoices, BaseModel, Field, field_validator

from tablebook.common.timeslots import format_minutes, to_minutes


class CheckoutRequest(BaseModel):
    """Booking facts submitted by the table picker."""

    table_ids: list[int] = Field(min_length=1)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    booking_date: date
    booking_time: str
    total_amount_minor: int = Field(gt=0, validation_alias=AliasChoices("total_amount_minor", "total_pence"))
    customer_name: str | None = None
    party_size: int | None = Field(default=None, ge=1)
    tenant_id: str = Field(min_length=1)
    booking_ref: str = Field(min_length=1)
    receive_offers: bool = False

    @field_validator("booking_time")
    @classmethod
    def _valid_time(cls, value: str) -> str:
        return format_minutes(to_minutes(value))

    @field_validator("table_ids")
    @classmethod
    def _distinct_tables(cls, value: list[int]) -> list[int]:
        return list(dict.fromkeys(value))


class CheckoutResponse(BaseModel):
    url: str
