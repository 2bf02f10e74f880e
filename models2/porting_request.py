# models/porting_request.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum
import uuid

from utils.utils import utcnow

class PortingStatus(str, Enum):
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    APPROVED = "approved"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

class DocumentType(str, Enum):
    BILL = "bill"
    AUTHORIZATION = "authorization"
    IDENTIFICATION = "identification"
    OTHER = "other"

# A porting request in one of these statuses blocks new requests for its number
ACTIVE_STATUSES = frozenset({
    PortingStatus.SUBMITTED.value,
    PortingStatus.PROCESSING.value,
    PortingStatus.APPROVED.value,
})
CANCELLABLE_STATUSES = frozenset({
    PortingStatus.SUBMITTED.value,
    PortingStatus.PROCESSING.value,
})
# Completion (and its number activation) is accepted once per request
COMPLETABLE_STATUSES = frozenset(
    status.value for status in PortingStatus if status is not PortingStatus.COMPLETED
)

SYSTEM_ACTOR = "system"

def _new_id() -> str:
    return str(uuid.uuid4())

class BillingAddress(BaseModel):
    street: str
    city: str
    state: str
    zip_code: str = Field(..., alias="zipCode")
    country: str = "US"

    class Config:
        populate_by_name = True

class PortingStatusUpdate(BaseModel):
    """One audit entry. Stored embedded in its porting request, oldest first."""
    id: str = Field(default_factory=_new_id)
    porting_request_id: str
    status: PortingStatus
    message: str
    updated_by: str
    timestamp: datetime = Field(default_factory=utcnow)

    class Config:
        use_enum_values = True

class PortingDocument(BaseModel):
    id: str = Field(default_factory=_new_id, alias="_id")
    porting_request_id: str
    type: DocumentType
    filename: str
    url: str
    uploaded_at: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True
        use_enum_values = True

    def to_response(self) -> dict:
        return self.model_dump(mode="json")

class PortingRequest(BaseModel):
    id: str = Field(default_factory=_new_id, alias="_id")
    user_id: str

    # Number being ported and the account holding it
    current_number: str = Field(..., description="E.164 format phone number")
    current_carrier: str
    account_number: str
    pin: str
    authorized_name: str
    billing_address: BillingAddress

    status: PortingStatus = PortingStatus.SUBMITTED.value
    notes: Optional[str] = None

    estimated_completion: datetime
    actual_completion: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # History is stored embedded (oldest first); documents are attached on reads
    status_history: List[PortingStatusUpdate] = []
    documents: List[PortingDocument] = []

    class Config:
        populate_by_name = True
        use_enum_values = True

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def to_response(self) -> dict:
        """JSON-ready view for API responses. The carrier PIN is never returned."""
        data = self.model_dump(mode="json", exclude={"pin"})
        # Newest first for display
        data["status_history"] = list(reversed(data["status_history"]))
        return data

class PortingRequestCreate(BaseModel):
    user_id: str
    current_number: str
    current_carrier: str
    account_number: str
    pin: str
    authorized_name: str
    billing_address: BillingAddress
    notes: Optional[str] = None

class PortingValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = []
    warnings: List[str] = []

class PortingProgress(BaseModel):
    current_step: str
    completed_steps: List[str]
    remaining_steps: List[str]
    estimated_completion: datetime
    last_update: datetime
