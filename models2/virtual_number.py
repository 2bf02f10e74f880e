# models/virtual_number.py
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum
import uuid

from utils.utils import utcnow

class NumberStatus(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    RELEASED = "released"

class VirtualNumber(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="_id")
    phone_number: str = Field(..., description="E.164 format phone number")
    owner_id: str
    country_code: str = "US"
    area_code: str = "000"
    city: Optional[str] = None
    region: Optional[str] = None

    status: NumberStatus = NumberStatus.AVAILABLE.value

    # Billing and features (rates in cents)
    monthly_rate: int = 0
    setup_fee: int = 0
    features: List[str] = ["VOICE", "SMS"]

    # Set when the number arrived through a porting request
    porting_request_id: Optional[str] = None
    activated_date: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True
        use_enum_values = True

def _default_business_hours() -> Dict[str, Dict[str, Any]]:
    weekday = {"open": "09:00", "close": "17:00", "enabled": True}
    weekend = {"open": "10:00", "close": "14:00", "enabled": False}
    return {
        "monday": dict(weekday),
        "tuesday": dict(weekday),
        "wednesday": dict(weekday),
        "thursday": dict(weekday),
        "friday": dict(weekday),
        "saturday": dict(weekend),
        "sunday": dict(weekend),
    }

class NumberConfiguration(BaseModel):
    """Routing configuration of a platform number. Defaults are what a newly ported number gets."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="_id")
    number_id: str

    call_forwarding_enabled: bool = False
    forward_to: Optional[str] = None
    forwarding_timeout: int = 30

    voicemail_enabled: bool = True
    max_voicemail_duration: int = 180
    transcription_enabled: bool = False

    timezone: str = "UTC"
    business_hours_schedule: Dict[str, Dict[str, Any]] = Field(default_factory=_default_business_hours)
    holidays: List[str] = []

    email_notifications: bool = True
    call_notifications: bool = True
    sms_notifications: bool = True
    notification_channels: List[str] = ["email"]

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True
