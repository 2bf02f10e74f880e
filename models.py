"""
Database models for the number porting service
"""
import re
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from models2.porting_request import (
    ACTIVE_STATUSES,
    SYSTEM_ACTOR,
    PortingDocument,
    PortingRequest,
    PortingStatus,
    PortingStatusUpdate,
)
from models2.virtual_number import NumberConfiguration, NumberStatus, VirtualNumber
from utils.errors import ConflictError, IllegalTransitionError, NotFoundError
from utils.utils import utcnow

# Detail views show the whole history, list views only the latest entries
LIST_HISTORY_LIMIT = 5

# (status, message, updated_by)
Transition = Tuple[str, str, str]


class PortingRequestModel:
    """Model for handling porting requests, their documents and status history"""

    def __init__(self, db):
        self.requests = db.porting_requests
        self.documents = db.porting_documents

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def _hydrate(self, doc, history_limit=None, with_documents=False) -> PortingRequest:
        if history_limit is not None:
            doc['status_history'] = doc.get('status_history', [])[-history_limit:]
        if with_documents:
            doc['documents'] = list(self.documents.find(
                {'porting_request_id': doc['_id']}
            ).sort('uploaded_at', -1))
        return PortingRequest.model_validate(doc)

    def find_by_id(self, request_id: str) -> Optional[PortingRequest]:
        """Get porting request by ID"""
        doc = self.requests.find_one({'_id': request_id})
        return self._hydrate(doc) if doc else None

    def find_by_id_with_details(self, request_id: str) -> Optional[PortingRequest]:
        """Get porting request by ID with all documents and the full status history"""
        doc = self.requests.find_one({'_id': request_id})
        return self._hydrate(doc, with_documents=True) if doc else None

    def find_by_current_number(self, current_number: str) -> Optional[PortingRequest]:
        """Get the most recent porting request for an external number"""
        doc = self.requests.find_one(
            {'current_number': current_number},
            sort=[('created_at', -1)]
        )
        return self._hydrate(doc) if doc else None

    def _find_many(self, query, sort, limit=None, offset=0) -> List[PortingRequest]:
        cursor = self.requests.find(query).sort(sort)
        if offset:
            cursor = cursor.skip(offset)
        if limit:
            cursor = cursor.limit(limit)
        return [
            self._hydrate(doc, history_limit=LIST_HISTORY_LIMIT, with_documents=True)
            for doc in cursor
        ]

    def find_by_user_id(self, user_id: str, limit=50, offset=0) -> List[PortingRequest]:
        """Get porting requests for a user, newest first"""
        return self._find_many({'user_id': user_id}, [('created_at', -1)], limit, offset)

    def count_by_user_id(self, user_id: str) -> int:
        return self.requests.count_documents({'user_id': user_id})

    def find_by_status(self, status: str, limit=50, offset=0) -> List[PortingRequest]:
        """Get porting requests in a status, oldest first for processing"""
        return self._find_many({'status': status}, [('created_at', 1)], limit, offset)

    def count_by_status(self, status: str) -> int:
        return self.requests.count_documents({'status': status})

    def get_requests_requiring_attention(self, now: Optional[datetime] = None) -> List[PortingRequest]:
        """Failed requests, and processing requests past their estimated completion"""
        now = now or utcnow()
        query = {
            '$or': [
                {
                    'status': PortingStatus.PROCESSING.value,
                    'estimated_completion': {'$lt': now},
                },
                {'status': PortingStatus.FAILED.value},
            ]
        }
        return self._find_many(query, [('estimated_completion', 1)])

    def search(self, query: str, filters: Optional[Dict[str, str]] = None, limit=50, offset=0) -> List[PortingRequest]:
        """Case-insensitive search over number, carrier, holder name and account number"""
        filters = filters or {}
        pattern = {'$regex': re.escape(query or ''), '$options': 'i'}
        conditions = [{
            '$or': [
                {'current_number': pattern},
                {'current_carrier': pattern},
                {'authorized_name': pattern},
                {'account_number': pattern},
            ]
        }]

        if filters.get('user_id'):
            conditions.append({'user_id': filters['user_id']})
        if filters.get('status'):
            conditions.append({'status': filters['status']})
        if filters.get('carrier'):
            conditions.append({
                'current_carrier': {'$regex': re.escape(filters['carrier']), '$options': 'i'}
            })

        return self._find_many({'$and': conditions}, [('created_at', -1)], limit, offset)

    def get_status_history(self, request_id: str) -> List[PortingStatusUpdate]:
        """Get the full status history, newest first"""
        doc = self.requests.find_one({'_id': request_id}, {'status_history': 1})
        if not doc:
            raise NotFoundError(f"Porting request not found: {request_id}")
        history = [PortingStatusUpdate.model_validate(entry) for entry in doc.get('status_history', [])]
        history.reverse()
        return history

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def _history_entry(self, request_id: str, status: str, message: str,
                       updated_by: str, timestamp: datetime) -> dict:
        return PortingStatusUpdate(
            porting_request_id=request_id,
            status=status,
            message=message,
            updated_by=updated_by,
            timestamp=timestamp,
        ).model_dump()

    def create(self, porting_request: PortingRequest, message: str,
               updated_by: str = SYSTEM_ACTOR) -> PortingRequest:
        """
        Insert a new porting request together with its first history entry.

        The active_number field carries the sparse unique index that keeps a
        second active request for the same number out, even under a race.
        """
        now = utcnow()
        porting_request.status = PortingStatus.SUBMITTED.value
        porting_request.created_at = now
        porting_request.updated_at = now
        porting_request.status_history = [
            PortingStatusUpdate(
                porting_request_id=porting_request.id,
                status=PortingStatus.SUBMITTED.value,
                message=message,
                updated_by=updated_by,
                timestamp=now,
            )
        ]

        doc = porting_request.model_dump(by_alias=True, exclude={'documents'})
        doc['active_number'] = porting_request.current_number

        try:
            self.requests.insert_one(doc)
        except DuplicateKeyError:
            raise ConflictError(
                f"Active porting request already exists for number {porting_request.current_number}"
            )
        return porting_request

    def update_status(self, request_id: str, status: str, message: str, updated_by: str,
                      allowed_from=None) -> PortingRequest:
        """Change the status and append its history entry in one write"""
        return self.apply_transitions(request_id, [(status, message, updated_by)], allowed_from)

    def apply_transitions(self, request_id: str, transitions: List[Transition],
                          allowed_from=None) -> PortingRequest:
        """
        Apply one or more consecutive status transitions as a single atomic
        document update. The request ends in the last transition's status and
        gains one history entry per transition, in order.

        The write only lands if the status is still the one read here, so a
        concurrent transition on the same request makes this one fail with
        ConflictError instead of interleaving. When allowed_from is given, the
        current status must be one of those values.
        """
        if not transitions:
            raise ValueError("At least one transition is required")

        current = self.requests.find_one({'_id': request_id}, {'status_history': 0})
        if not current:
            raise NotFoundError(f"Porting request not found: {request_id}")

        current_status = current['status']
        target_status = transitions[-1][0]
        if allowed_from is not None and current_status not in allowed_from:
            raise IllegalTransitionError(
                f"Cannot move porting request to {target_status} in status: {current_status}"
            )

        now = utcnow()
        entries = [
            self._history_entry(request_id, status, message, updated_by, now)
            for status, message, updated_by in transitions
        ]
        update = {
            '$set': {'status': target_status, 'updated_at': now},
            '$push': {'status_history': {'$each': entries}},
        }
        if target_status == PortingStatus.COMPLETED.value:
            update['$set']['actual_completion'] = now
        elif current_status == PortingStatus.COMPLETED.value:
            update['$set']['actual_completion'] = None

        if target_status in ACTIVE_STATUSES:
            update['$set']['active_number'] = current['current_number']
        else:
            update['$unset'] = {'active_number': ''}

        try:
            doc = self.requests.find_one_and_update(
                {'_id': request_id, 'status': current_status},
                update,
                return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            raise ConflictError(
                f"Active porting request already exists for number {current['current_number']}"
            )

        if doc is None:
            raise ConflictError(
                f"Porting request {request_id} changed status concurrently; reload and retry"
            )
        return self._hydrate(doc)

    def update_notes(self, request_id: str, notes: Optional[str]) -> PortingRequest:
        """Replace the operator notes of a porting request"""
        doc = self.requests.find_one_and_update(
            {'_id': request_id},
            {'$set': {'notes': notes, 'updated_at': utcnow()}},
            return_document=ReturnDocument.AFTER
        )
        if doc is None:
            raise NotFoundError(f"Porting request not found: {request_id}")
        return self._hydrate(doc)

    # ------------------------------------------------------------------ #
    # Documents
    # ------------------------------------------------------------------ #

    def add_document(self, document: PortingDocument) -> PortingDocument:
        self.documents.insert_one(document.model_dump(by_alias=True))
        return document

    def get_documents(self, request_id: str) -> List[PortingDocument]:
        """Documents of a porting request, newest first"""
        cursor = self.documents.find({'porting_request_id': request_id}).sort('uploaded_at', -1)
        return [PortingDocument.model_validate(doc) for doc in cursor]

    def delete_document(self, document_id: str) -> bool:
        result = self.documents.delete_one({'_id': document_id})
        return result.deleted_count > 0


class VirtualNumberModel:
    """Model for handling platform-owned numbers"""

    def __init__(self, db):
        self.numbers = db.virtual_numbers

    def find_by_phone_number(self, phone_number: str) -> Optional[VirtualNumber]:
        doc = self.numbers.find_one({'phone_number': phone_number})
        return VirtualNumber.model_validate(doc) if doc else None

    def create(self, number: VirtualNumber) -> VirtualNumber:
        try:
            self.numbers.insert_one(number.model_dump(by_alias=True))
        except DuplicateKeyError:
            raise ConflictError(f"Number already exists in system: {number.phone_number}")
        return number

    def update_status(self, number_id: str, status: str) -> VirtualNumber:
        now = utcnow()
        update = {'status': status, 'updated_at': now}
        if status == NumberStatus.ACTIVE.value:
            update['activated_date'] = now
        doc = self.numbers.find_one_and_update(
            {'_id': number_id},
            {'$set': update},
            return_document=ReturnDocument.AFTER
        )
        if doc is None:
            raise NotFoundError(f"Virtual number not found: {number_id}")
        return VirtualNumber.model_validate(doc)

    def delete(self, number_id: str) -> bool:
        return self.numbers.delete_one({'_id': number_id}).deleted_count > 0


class NumberConfigurationModel:
    """Model for handling routing configurations of platform numbers"""

    def __init__(self, db):
        self.configurations = db.number_configurations

    def create_default_configuration(self, number_id: str) -> NumberConfiguration:
        configuration = NumberConfiguration(number_id=number_id)
        try:
            self.configurations.insert_one(configuration.model_dump(by_alias=True))
        except DuplicateKeyError:
            raise ConflictError(f"Number {number_id} already has a configuration")
        return configuration

    def find_by_number_id(self, number_id: str) -> Optional[NumberConfiguration]:
        doc = self.configurations.find_one({'number_id': number_id})
        return NumberConfiguration.model_validate(doc) if doc else None

    def delete_by_number_id(self, number_id: str) -> bool:
        return self.configurations.delete_one({'number_id': number_id}).deleted_count > 0
