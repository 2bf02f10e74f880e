"""
Tests for the MongoDB-backed porting store.
"""
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from models import LIST_HISTORY_LIMIT
from models2.porting_request import (
    CANCELLABLE_STATUSES,
    BillingAddress,
    PortingDocument,
    PortingRequest,
    PortingStatus,
)
from models2.virtual_number import NumberStatus, VirtualNumber
from utils.errors import ConflictError, IllegalTransitionError, NotFoundError
from utils.utils import utcnow


def _request(number="+12025551234", user_id="user-1", carrier="Verizon", **overrides):
    fields = dict(
        user_id=user_id,
        current_number=number,
        current_carrier=carrier,
        account_number="123456789",
        pin="1234",
        authorized_name="Jane Doe",
        billing_address=BillingAddress(street="1 Main St", city="Springfield", state="IL", zip_code="62701"),
        estimated_completion=utcnow() + timedelta(days=3),
    )
    fields.update(overrides)
    return PortingRequest(**fields)


class TestCreate:
    """Tests for inserting porting requests."""

    def test_create_stores_first_history_entry(self, porting_model):
        created = porting_model.create(_request(), "Porting request submitted and under review")

        stored = porting_model.find_by_id(created.id)
        assert stored.status == PortingStatus.SUBMITTED.value
        assert len(stored.status_history) == 1
        assert stored.status_history[0].status == "submitted"
        assert stored.status_history[0].updated_by == "system"

    def test_active_number_index_blocks_second_active_request(self, porting_model):
        porting_model.create(_request(), "first")

        with pytest.raises(ConflictError):
            porting_model.create(_request(user_id="user-2"), "second")

    def test_terminal_request_frees_the_number(self, porting_model):
        first = porting_model.create(_request(), "first")
        porting_model.update_status(first.id, "cancelled", "Cancelled: changed mind", "user-1")

        second = porting_model.create(_request(), "second")

        assert porting_model.find_by_current_number("+12025551234").id == second.id

    def test_billing_address_round_trips(self, porting_model):
        created = porting_model.create(_request(), "first")

        stored = porting_model.find_by_id(created.id)
        assert stored.billing_address.zip_code == "62701"
        assert stored.billing_address.country == "US"


class TestTransitions:
    """Tests for atomic status writes."""

    def test_update_status_appends_one_entry(self, porting_model):
        created = porting_model.create(_request(), "submitted")

        updated = porting_model.update_status(created.id, "processing", "Docs reviewed", "op-1")

        assert updated.status == "processing"
        assert [entry.status for entry in updated.status_history] == ["submitted", "processing"]

    def test_apply_transitions_is_one_write(self, porting_model):
        created = porting_model.create(_request(), "submitted")

        updated = porting_model.apply_transitions(created.id, [
            ("approved", "Looks good", "op-1"),
            ("processing", "Porting approved and initiated with carrier", "system"),
        ])

        assert updated.status == "processing"
        history = updated.status_history
        assert [(entry.status, entry.updated_by) for entry in history[1:]] == [
            ("approved", "op-1"),
            ("processing", "system"),
        ]
        assert history[1].timestamp == history[2].timestamp

    def test_allowed_from_rejects_and_leaves_status(self, porting_model):
        created = porting_model.create(_request(), "submitted")
        porting_model.update_status(created.id, "completed", "done", "op-1")

        with pytest.raises(IllegalTransitionError):
            porting_model.update_status(created.id, "cancelled", "Cancelled: x", "op-1",
                                        allowed_from=CANCELLABLE_STATUSES)

        stored = porting_model.find_by_id(created.id)
        assert stored.status == "completed"
        assert len(stored.status_history) == 2

    def test_concurrent_change_raises_conflict(self, porting_model):
        created = porting_model.create(_request(), "submitted")
        collection = porting_model.requests

        def find_one_then_race(*args, **kwargs):
            doc = collection.find_one(*args, **kwargs)
            # Another writer moves the request right after it was read
            collection.update_one({'_id': created.id}, {'$set': {'status': 'failed'}})
            return doc

        porting_model.requests = MagicMock(wraps=collection)
        porting_model.requests.find_one.side_effect = find_one_then_race

        with pytest.raises(ConflictError):
            porting_model.update_status(created.id, "processing", "review", "op-1")

        stored = collection.find_one({'_id': created.id})
        assert stored['status'] == "failed"
        assert len(stored['status_history']) == 1

    def test_missing_request(self, porting_model):
        with pytest.raises(NotFoundError):
            porting_model.update_status("missing", "failed", "x", "op-1")

    def test_actual_completion_follows_completed(self, porting_model):
        created = porting_model.create(_request(), "submitted")

        completed = porting_model.update_status(created.id, "completed", "done", "op-1")
        assert completed.actual_completion is not None

        failed = porting_model.update_status(created.id, "failed", "activation failed", "system")
        assert failed.actual_completion is None


class TestQueries:
    """Tests for reads and listings."""

    def test_find_by_current_number_returns_most_recent(self, porting_model):
        old = porting_model.create(_request(), "first")
        porting_model.requests.update_one({"_id": old.id}, {"$set": {"created_at": datetime(2024, 1, 1)}})
        porting_model.update_status(old.id, "failed", "rejected", "op-1")
        new = porting_model.create(_request(), "second")

        assert porting_model.find_by_current_number("+12025551234").id == new.id

    def test_find_by_user_id_paginates_newest_first(self, porting_model):
        for index in range(3):
            porting_model.create(_request(number=f"+1202555000{index}"), "submitted")

        page = porting_model.find_by_user_id("user-1", limit=2, offset=0)

        assert len(page) == 2
        assert page[0].created_at >= page[1].created_at
        assert porting_model.count_by_user_id("user-1") == 3

    def test_list_views_truncate_history(self, porting_model):
        created = porting_model.create(_request(), "submitted")
        for index in range(LIST_HISTORY_LIMIT + 2):
            porting_model.update_status(created.id, "processing", f"step {index}", "op-1")

        listed = porting_model.find_by_user_id("user-1")[0]
        detailed = porting_model.find_by_id_with_details(created.id)

        assert len(listed.status_history) == LIST_HISTORY_LIMIT
        assert len(detailed.status_history) == LIST_HISTORY_LIMIT + 3
        assert listed.status_history[-1].message == f"step {LIST_HISTORY_LIMIT + 1}"

    def test_find_by_status_and_count(self, porting_model):
        first = porting_model.create(_request(number="+12025550001"), "submitted")
        porting_model.create(_request(number="+12025550002"), "submitted")
        porting_model.update_status(first.id, "failed", "rejected", "op-1")

        submitted = porting_model.find_by_status("submitted")

        assert [request.current_number for request in submitted] == ["+12025550002"]
        assert porting_model.count_by_status("failed") == 1

    def test_requests_requiring_attention(self, porting_model):
        overdue = porting_model.create(
            _request(number="+12025550001", estimated_completion=datetime(2024, 1, 1)), "submitted"
        )
        porting_model.update_status(overdue.id, "processing", "review", "op-1")
        on_time = porting_model.create(_request(number="+12025550002"), "submitted")
        porting_model.update_status(on_time.id, "processing", "review", "op-1")
        failed = porting_model.create(_request(number="+12025550003"), "submitted")
        porting_model.update_status(failed.id, "failed", "rejected", "op-1")

        ids = {request.id for request in porting_model.get_requests_requiring_attention()}

        assert ids == {overdue.id, failed.id}

    def test_search_is_case_insensitive_and_filtered(self, porting_model):
        porting_model.create(_request(number="+12025550001", carrier="Verizon"), "submitted")
        porting_model.create(_request(number="+12025550002", carrier="T-Mobile", user_id="user-2"), "submitted")

        assert len(porting_model.search("verizon")) == 1
        assert len(porting_model.search("jane")) == 2
        assert len(porting_model.search("jane", {"user_id": "user-2"})) == 1
        assert len(porting_model.search("jane", {"carrier": "mobile"})) == 1
        assert porting_model.search("+1202") != []

    def test_status_history_newest_first(self, porting_model):
        created = porting_model.create(_request(), "submitted")
        porting_model.update_status(created.id, "processing", "review", "op-1")

        history = porting_model.get_status_history(created.id)

        assert [entry.status for entry in history] == ["processing", "submitted"]

    def test_status_history_of_missing_request(self, porting_model):
        with pytest.raises(NotFoundError):
            porting_model.get_status_history("missing")

    def test_update_notes_keeps_history(self, porting_model):
        created = porting_model.create(_request(), "submitted")

        updated = porting_model.update_notes(created.id, "Customer called")

        assert updated.notes == "Customer called"
        assert len(updated.status_history) == 1


class TestDocuments:
    """Tests for porting documents."""

    def test_add_list_delete(self, porting_model):
        created = porting_model.create(_request(), "submitted")
        bill = porting_model.add_document(PortingDocument(
            porting_request_id=created.id, type="bill", filename="bill.pdf", url="https://files/bill.pdf",
            uploaded_at=datetime(2024, 1, 1),
        ))
        auth = porting_model.add_document(PortingDocument(
            porting_request_id=created.id, type="authorization", filename="loa.pdf", url="https://files/loa.pdf",
            uploaded_at=datetime(2024, 1, 2),
        ))

        assert [document.id for document in porting_model.get_documents(created.id)] == [auth.id, bill.id]
        assert len(porting_model.find_by_id_with_details(created.id).documents) == 2

        assert porting_model.delete_document(bill.id) is True
        assert porting_model.delete_document(bill.id) is False
        assert [document.id for document in porting_model.get_documents(created.id)] == [auth.id]


class TestVirtualNumbers:
    """Tests for the number registry store."""

    def test_create_activate_delete(self, number_model):
        number = number_model.create(VirtualNumber(phone_number="+12025551234", owner_id="user-1"))

        activated = number_model.update_status(number.id, NumberStatus.ACTIVE.value)

        assert activated.status == "active"
        assert activated.activated_date is not None
        assert number_model.find_by_phone_number("+12025551234").id == number.id
        assert number_model.delete(number.id) is True
        assert number_model.find_by_phone_number("+12025551234") is None

    def test_duplicate_phone_number(self, number_model):
        number_model.create(VirtualNumber(phone_number="+12025551234", owner_id="user-1"))

        with pytest.raises(ConflictError):
            number_model.create(VirtualNumber(phone_number="+12025551234", owner_id="user-2"))

    def test_default_configuration(self, configuration_model):
        configuration = configuration_model.create_default_configuration("number-1")

        stored = configuration_model.find_by_number_id("number-1")
        assert stored.id == configuration.id
        assert stored.voicemail_enabled is True
        assert stored.max_voicemail_duration == 180
        assert stored.business_hours_schedule["monday"]["enabled"] is True
        assert stored.business_hours_schedule["sunday"]["enabled"] is False
