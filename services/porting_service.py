# services/porting_service.py
"""
Porting engine: creation with duplicate protection, the status state machine
and the side effects each transition triggers.

The service keeps no state between calls. Every status change goes through
the porting model, which writes the status and its history entry in one
atomic document update.
"""
import logging
from typing import Any, Dict, List, Optional

from models2.porting_request import (
    CANCELLABLE_STATUSES,
    COMPLETABLE_STATUSES,
    SYSTEM_ACTOR,
    BillingAddress,
    DocumentType,
    PortingDocument,
    PortingProgress,
    PortingRequest,
    PortingRequestCreate,
    PortingStatus,
    PortingStatusUpdate,
    PortingValidationResult,
)
from services.carrier_policy import CarrierPolicyTable, PortingEstimator
from utils.errors import (
    ActivationError,
    ConflictError,
    IllegalTransitionError,
    InvalidStatusError,
    NotFoundError,
    PortingError,
    ValidationError,
)
from utils.validation import NOTES_MAX_LENGTH, normalize_porting_payload, validate_porting_request

logger = logging.getLogger(__name__)

PORTING_STEPS = (
    'Request Submitted',
    'Documentation Review',
    'Carrier Approval',
    'Processing',
    'Completed',
)

# Display position only; says nothing about which transitions are legal
STATUS_TO_STEP = {
    PortingStatus.SUBMITTED.value: 0,
    PortingStatus.PROCESSING.value: 1,
    PortingStatus.APPROVED.value: 2,
    PortingStatus.COMPLETED.value: 4,
    PortingStatus.FAILED.value: 1,  # parked at the review step
    PortingStatus.CANCELLED.value: 0,
}

SUBMITTED_MESSAGE = 'Porting request submitted and under review'
CARRIER_INITIATED_MESSAGE = 'Porting approved and initiated with carrier'
CARRIER_INITIATION_FAILED_MESSAGE = 'Porting approved; carrier initiation failed'
ACTIVATION_FAILED_MESSAGE = 'Failed to activate ported number in system'


def parse_status(value: Any) -> PortingStatus:
    """Accept a status in any letter case; reject anything outside the closed set."""
    if isinstance(value, PortingStatus):
        return value
    try:
        return PortingStatus(str(value).strip().lower())
    except ValueError:
        valid = ', '.join(status.value for status in PortingStatus)
        raise InvalidStatusError(f"Invalid status '{value}'. Must be one of: {valid}")


def parse_document_type(value: Any) -> DocumentType:
    if isinstance(value, DocumentType):
        return value
    try:
        return DocumentType(str(value).strip().lower())
    except ValueError:
        valid = ', '.join(doc_type.value for doc_type in DocumentType)
        raise ValidationError(f"Invalid document type. Must be one of: {valid}")


class PortingService:

    def __init__(self, porting_model, number_model, activation_service, carrier_service,
                 policy_provider=None, estimator: Optional[PortingEstimator] = None):
        self.porting_model = porting_model
        self.number_model = number_model
        self.activation_service = activation_service
        self.carrier_service = carrier_service
        self.policy_provider = policy_provider or CarrierPolicyTable()
        self.estimator = estimator or PortingEstimator(self.policy_provider)

    # ------------------------------------------------------------------ #
    # Creation
    # ------------------------------------------------------------------ #

    def validate_porting_request(self, data: Optional[Dict[str, Any]]) -> PortingValidationResult:
        """Check porting data without persisting anything."""
        return validate_porting_request(data, self.number_model, self.policy_provider)

    def initiate_porting(self, data: Dict[str, Any]) -> PortingRequest:
        """Validate, guard against a concurrent attempt, and persist a new porting request."""
        payload = normalize_porting_payload(data)

        try:
            validation = self.validate_porting_request(data)
            errors = list(validation.errors)
            if not payload['user_id']:
                errors.insert(0, "User id is required")
            if errors:
                raise ValidationError(f"Porting validation failed: {', '.join(errors)}", errors)

            existing = self.porting_model.find_by_current_number(payload['current_number'])
            if existing and existing.is_active:
                raise ConflictError(
                    f"Active porting request already exists for number {payload['current_number']}"
                )

            fields = PortingRequestCreate(
                **{**payload, 'billing_address': BillingAddress(**payload['billing_address'])}
            )
            estimate = self.estimator.estimate_completion(fields.current_carrier, fields.current_number)

            porting_request = self.porting_model.create(
                PortingRequest(
                    **fields.model_dump(exclude={'billing_address'}),
                    billing_address=fields.billing_address,
                    estimated_completion=estimate.estimated_completion,
                ),
                SUBMITTED_MESSAGE,
                SYSTEM_ACTOR
            )

        except PortingError as e:
            logger.error(
                f"Failed to initiate porting request for user {payload['user_id']} "
                f"and number {payload['current_number']}: {e.message}"
            )
            raise

        logger.info(
            f"Porting request initiated: {porting_request.id} for user {porting_request.user_id}, "
            f"number {porting_request.current_number}, carrier {porting_request.current_carrier}, "
            f"estimated completion {porting_request.estimated_completion.isoformat()} "
            f"({estimate.estimated_days} days; factors: {estimate.factors or 'none'})"
        )
        return porting_request

    # ------------------------------------------------------------------ #
    # State machine
    # ------------------------------------------------------------------ #

    def update_porting_status(self, request_id: str, status: Any, message: str, updated_by: str) -> PortingRequest:
        """
        Move a porting request to a new status and run that status's side effects.

        approved   -> carrier initiation, then stored directly as processing
                      with both history entries; a carrier failure is recorded
                      in the system entry
        completed  -> number activation, once; on failure the request is
                      reverted to failed and ActivationError is raised
        cancelled  -> only from submitted or processing
        submitted  -> never; it is only set at creation
        """
        target = parse_status(status)
        if not message or not str(message).strip():
            raise ValidationError("A status message is required")
        if not updated_by or not str(updated_by).strip():
            raise ValidationError("updated_by is required")

        try:
            if target is PortingStatus.SUBMITTED:
                raise IllegalTransitionError("Status submitted is only set when a porting request is created")
            elif target is PortingStatus.APPROVED:
                porting_request = self._approve_and_start_processing(request_id, message, updated_by)
            elif target is PortingStatus.COMPLETED:
                porting_request = self._complete(request_id, message, updated_by)
            elif target is PortingStatus.CANCELLED:
                porting_request = self.porting_model.update_status(
                    request_id, target.value, message, updated_by,
                    allowed_from=CANCELLABLE_STATUSES
                )
                logger.info(f"Porting request cancelled: {request_id} ({porting_request.current_number})")
            else:
                porting_request = self.porting_model.update_status(request_id, target.value, message, updated_by)
                if target is PortingStatus.FAILED:
                    logger.warning(
                        f"Porting request failed: {request_id} ({porting_request.current_number}, "
                        f"carrier {porting_request.current_carrier})"
                    )

        except PortingError as e:
            logger.error(f"Failed to update porting status of {request_id} to {target.value}: {e.message}")
            raise

        logger.info(f"Porting status updated: {request_id} -> {porting_request.status} by {updated_by}: {message}")
        return porting_request

    def _approve_and_start_processing(self, request_id: str, message: str, updated_by: str) -> PortingRequest:
        porting_request = self._get_request(request_id)

        result = self.carrier_service.initiate_port(porting_request)
        if result.get("success"):
            processing_message = CARRIER_INITIATED_MESSAGE
        else:
            error = result.get('error', 'Unknown error')
            logger.error(f"Carrier initiation failed for porting request {request_id}: {error}")
            processing_message = f"{CARRIER_INITIATION_FAILED_MESSAGE}: {error}"

        # Approval is momentary: both entries land in the same write
        try:
            return self.porting_model.apply_transitions(request_id, [
                (PortingStatus.APPROVED.value, message, updated_by),
                (PortingStatus.PROCESSING.value, processing_message, SYSTEM_ACTOR),
            ])
        except PortingError as e:
            if result.get("submitted"):
                logger.error(
                    f"Carrier porting order {result.get('carrier_reference')} was submitted for request "
                    f"{request_id} but the approval was not recorded: {e.message}"
                )
            raise

    def _complete(self, request_id: str, message: str, updated_by: str) -> PortingRequest:
        # A completed port is never activated twice
        porting_request = self.porting_model.update_status(
            request_id, PortingStatus.COMPLETED.value, message, updated_by,
            allowed_from=COMPLETABLE_STATUSES
        )

        try:
            self.activation_service.activate_ported_number(porting_request)
        except ActivationError:
            self.porting_model.update_status(
                request_id, PortingStatus.FAILED.value, ACTIVATION_FAILED_MESSAGE, SYSTEM_ACTOR
            )
            logger.warning(f"Porting request {request_id} reverted to failed after activation failure")
            raise

        return porting_request

    def cancel_porting_request(self, request_id: str, reason: str, cancelled_by: str) -> PortingRequest:
        porting_request = self._get_request(request_id)
        if porting_request.status not in CANCELLABLE_STATUSES:
            raise IllegalTransitionError(f"Cannot cancel porting request in status: {porting_request.status}")

        return self.update_porting_status(
            request_id,
            PortingStatus.CANCELLED,
            f"Cancelled: {reason}",
            cancelled_by
        )

    def get_porting_progress(self, request_id: str) -> PortingProgress:
        porting_request = self._get_request(request_id)
        index = STATUS_TO_STEP.get(porting_request.status, 0)

        return PortingProgress(
            current_step=PORTING_STEPS[index],
            completed_steps=list(PORTING_STEPS[:index]),
            remaining_steps=list(PORTING_STEPS[index + 1:]),
            estimated_completion=porting_request.estimated_completion,
            last_update=porting_request.updated_at,
        )

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def _get_request(self, request_id: str) -> PortingRequest:
        porting_request = self.porting_model.find_by_id(request_id)
        if not porting_request:
            raise NotFoundError(f"Porting request not found: {request_id}")
        return porting_request

    def get_porting_request(self, request_id: str) -> PortingRequest:
        """Porting request with all of its documents and its full history."""
        porting_request = self.porting_model.find_by_id_with_details(request_id)
        if not porting_request:
            raise NotFoundError(f"Porting request not found: {request_id}")
        return porting_request

    def get_user_porting_requests(self, user_id: str, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        return {
            'requests': self.porting_model.find_by_user_id(user_id, limit, offset),
            'total': self.porting_model.count_by_user_id(user_id),
        }

    def list_by_status(self, status: Any, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        value = parse_status(status).value
        return {
            'requests': self.porting_model.find_by_status(value, limit, offset),
            'total': self.porting_model.count_by_status(value),
        }

    def search(self, query: str, filters: Optional[Dict[str, Any]] = None,
               limit: int = 50, offset: int = 0) -> List[PortingRequest]:
        filters = {key: value for key, value in (filters or {}).items() if value}
        if filters.get('status'):
            filters['status'] = parse_status(filters['status']).value
        return self.porting_model.search(query, filters, limit, offset)

    def list_requiring_attention(self) -> List[PortingRequest]:
        return self.porting_model.get_requests_requiring_attention()

    def get_status_history(self, request_id: str) -> List[PortingStatusUpdate]:
        return self.porting_model.get_status_history(request_id)

    def update_notes(self, request_id: str, notes: Optional[str]) -> PortingRequest:
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("Notes must be a string")
        notes = notes.strip() if notes else None
        if notes and len(notes) > NOTES_MAX_LENGTH:
            raise ValidationError(f"Notes must be at most {NOTES_MAX_LENGTH} characters")
        return self.porting_model.update_notes(request_id, notes)

    # ------------------------------------------------------------------ #
    # Documents
    # ------------------------------------------------------------------ #

    def add_document(self, request_id: str, document_type: Any, filename: str, url: str) -> PortingDocument:
        """Attach a document. Allowed in any status, including after completion."""
        doc_type = parse_document_type(document_type)
        if not filename or not url:
            raise ValidationError("filename and url are required")
        self._get_request(request_id)

        document = self.porting_model.add_document(PortingDocument(
            porting_request_id=request_id,
            type=doc_type.value,
            filename=filename,
            url=url,
        ))
        logger.info(f"Document {document.id} ({doc_type.value}) added to porting request {request_id}")
        return document

    def list_documents(self, request_id: str) -> List[PortingDocument]:
        self._get_request(request_id)
        return self.porting_model.get_documents(request_id)

    def delete_document(self, document_id: str) -> None:
        if not self.porting_model.delete_document(document_id):
            raise NotFoundError(f"Porting document not found: {document_id}")
        logger.info(f"Porting document deleted: {document_id}")
