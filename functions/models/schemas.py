"""
Request models for the HTTP functions.

Each model mirrors one form of the web app. Field names are snake_case in
Python and camelCase on the wire and in Firestore.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    def to_document(self, **overrides) -> dict:
        """Dumps the model with Firestore (camelCase) field names."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        data.update(overrides)
        return data


class OwnerRegistration(CamelModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    mobile_number: str = Field(..., min_length=10, max_length=10)
    address: str = Field(..., min_length=1)
    upi_id: str = Field(..., min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class OwnerProfileUpdate(CamelModel):
    name: str = Field(..., min_length=1)
    mobile_number: str = Field(..., min_length=10, max_length=10)
    address: str = Field(..., min_length=1)
    upi_id: str = Field(..., min_length=1)


class TenantCreate(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    room: str = Field(..., min_length=1)
    rent_amount: float = Field(..., ge=0)
    extra_expenses: float = Field(default=0, ge=0)


class TenantUpdate(TenantCreate):
    tenant_id: str = Field(..., min_length=1)
    created_at: date

    @field_validator("created_at")
    @classmethod
    def registration_date_in_range(cls, value: date) -> date:
        if value > date.today() or value < date(1900, 1, 1):
            raise ValueError("Registration date must be between 1900-01-01 and today")
        return value

    def to_document(self, **overrides) -> dict:
        data = self.model_dump(by_alias=True, exclude={"tenant_id"})
        # Firestore stores datetimes, not bare dates.
        data["createdAt"] = datetime.combine(self.created_at, time.min, tzinfo=timezone.utc)
        data.update(overrides)
        return data


class TenantReference(CamelModel):
    tenant_id: str = Field(..., min_length=1)


class PaymentRecord(TenantReference):
    amount: float = Field(..., gt=0)
    message_id: Optional[str] = None
    discrepancy_reason: Optional[str] = None


class PaymentRejection(TenantReference):
    message_id: str = Field(..., min_length=1)
    rejection_reason: str = Field(..., min_length=10)


class RoomCodeLogin(CamelModel):
    room_code: str = Field(..., min_length=1)


class TenantOnboarding(RoomCodeLogin):
    full_name: str = Field(..., min_length=1)
    email: EmailStr


class PaymentClaim(RoomCodeLogin):
    amount: float = Field(..., gt=0)
