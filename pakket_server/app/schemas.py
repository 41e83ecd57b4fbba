"""Request and response models of the HTTP API."""

from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from .utils import parse_decimal


def _require_decimal(value, field_name: str):
    if value is None:
        return value
    value = str(value).strip()
    if parse_decimal(value) is None:
        raise ValueError(f"{field_name} must be a number")
    return value


def _as_utc(value: datetime) -> datetime:
    # stored timestamps are naive UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class PackageNumberRequest(BaseModel):
    destination: str
    transport_type: str


class PackageNumberOut(BaseModel):
    package_number: str
    expires_at: UtcDatetime


class PackageIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    package_number: str = Field(min_length=3)
    transport_type: str
    destination: str
    weight: str
    calculated_price: str
    manual_price: Optional[str] = None

    package_content: Optional[str] = None
    package_value: Optional[str] = None

    payment_cash: bool = False
    payment_pin: bool = False
    payment_account: bool = False

    sender_first_name: str = Field(min_length=1)
    sender_last_name: str = Field(min_length=1)
    sender_address: str = Field(min_length=1)
    sender_city: str = Field(min_length=1)
    sender_mobile: str = Field(min_length=1)
    sender_country: Optional[str] = None
    sender_phone: Optional[str] = None
    sender_email: Optional[str] = None

    receiver_first_name: str = Field(min_length=1)
    receiver_last_name: str = Field(min_length=1)
    receiver_address: str = Field(min_length=1)
    receiver_city: str = Field(min_length=1)
    receiver_mobile: str = Field(min_length=1)
    receiver_country: Optional[str] = None
    receiver_phone: Optional[str] = None
    receiver_email: Optional[str] = None

    @field_validator("package_number", mode="before")
    @classmethod
    def _normalize_number(cls, value):
        return str(value).strip().upper()

    @field_validator("weight", "calculated_price", mode="before")
    @classmethod
    def _check_required_decimal(cls, value, info):
        return _require_decimal(value, info.field_name)

    @field_validator("manual_price", mode="before")
    @classmethod
    def _check_manual_price(cls, value):
        if value is None or str(value).strip() == "":
            return None
        return _require_decimal(value, "manual_price")


class PackageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    package_number: str
    transport_type: str
    destination: str
    weight: str
    calculated_price: str
    manual_price: Optional[str] = None
    final_price: str
    package_content: Optional[str] = None
    package_value: Optional[str] = None
    payment_cash: bool
    payment_pin: bool
    payment_account: bool
    sender_first_name: str
    sender_last_name: str
    sender_address: str
    sender_city: str
    sender_mobile: str
    sender_country: Optional[str] = None
    sender_phone: Optional[str] = None
    sender_email: Optional[str] = None
    receiver_first_name: str
    receiver_last_name: str
    receiver_address: str
    receiver_city: str
    receiver_mobile: str
    receiver_country: Optional[str] = None
    receiver_phone: Optional[str] = None
    receiver_email: Optional[str] = None
    user_id: Optional[str] = None
    status: str
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class StatusUpdate(BaseModel):
    status: str


class PriceUpdate(BaseModel):
    manual_price: Optional[str] = None

    @field_validator("manual_price", mode="before")
    @classmethod
    def _check_manual_price(cls, value):
        if value is None or str(value).strip() == "":
            return None
        return _require_decimal(value, "manual_price")
