"""Tests for the travel request lifecycle service.

Covers:
- Create: owner/requester derived from the actor, status forced, date rules
- Update: allow-listed fields, end date re-validation, all-or-nothing
- Approve / cancel: state and actor columns, one event per transition
- Listing scope: admins see everything, users only their own
- Optimistic locking via expected version
"""
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from app.events.dispatcher import EventDispatcher
from app.events.types import RequestApproved, RequestCancelled, RequestCreated
from app.exceptions import Conflict, NotFound, ValidationFailed
from app.models.travel_request import TravelRequest, TravelRequestStatus
from app.repositories.filters import TravelRequestFilters
from app.schemas.travel_request import TravelRequestCreate, TravelRequestUpdate
from app.services import travel_request_service as service
from app.services.travel_request_service import local_today
from tests.conftest import make_admin, make_user, make_travel_request


def _payload(destination="Lisbon", start_in=10, end_in=15, **extra):
    today = local_today()
    return TravelRequestCreate(
        destination=destination,
        start_date=today + timedelta(days=start_in),
        end_date=today + timedelta(days=end_in),
        **extra,
    )


def _stored(db, request_id) -> TravelRequest:
    db.expire_all()
    return db.query(TravelRequest).filter(TravelRequest.id == request_id).one()


class TestCreate:
    def test_round_trip(self, db, recorded_events):
        actor = make_user(db, name="Maria Silva")
        created = service.create(db, actor, _payload(notes="Client visit"))

        fetched = service.get_by_id(db, created.id)
        assert fetched.status == TravelRequestStatus.requested
        assert fetched.requester_name == "Maria Silva"
        assert fetched.user_id == actor.user_id
        assert fetched.approved_by is None
        assert fetched.cancelled_by is None
        assert fetched.notes == "Client visit"
        assert fetched.version == 1

    def test_emits_created_event(self, db, recorded_events):
        actor = make_user(db)
        created = service.create(db, actor, _payload())

        assert len(recorded_events) == 1
        event = recorded_events[0]
        assert isinstance(event, RequestCreated)
        assert event.request_id == created.id
        assert event.travel_request["status"] == "requested"
        assert event.travel_request["user"]["email"] == actor.email

    def test_client_cannot_choose_owner_or_status(self, db):
        actor = make_user(db, name="Actor")
        other = make_user(db, name="Other")
        payload = TravelRequestCreate.model_validate({
            "destination": "Berlin",
            "start_date": (local_today() + timedelta(days=3)).isoformat(),
            "end_date": (local_today() + timedelta(days=4)).isoformat(),
            "status": "approved",
            "user_id": other.user_id,
            "requester_name": "Someone Else",
            "approved_by": other.user_id,
        })
        created = service.create(db, actor, payload)
        assert created.user_id == actor.user_id
        assert created.requester_name == "Actor"
        assert created.status == TravelRequestStatus.requested
        assert created.approved_by is None

    def test_requester_name_is_not_resynced(self, db):
        actor = make_user(db, name="Old Name")
        created = service.create(db, actor, _payload())
        actor.name = "New Name"
        db.commit()
        assert _stored(db, created.id).requester_name == "Old Name"

    def test_start_today_is_allowed(self, db):
        actor = make_user(db)
        created = service.create(db, actor, _payload(start_in=0, end_in=1))
        assert created.start_date == local_today()

    def test_start_in_the_past(self, db, recorded_events):
        actor = make_user(db)
        with pytest.raises(ValidationFailed) as exc:
            service.create(db, actor, _payload(start_in=-1, end_in=3))
        assert "start_date" in exc.value.errors
        assert db.query(TravelRequest).count() == 0
        assert recorded_events == []

    @pytest.mark.parametrize("end_in", [10, 9])
    def test_end_must_be_after_start(self, db, end_in):
        actor = make_user(db)
        with pytest.raises(ValidationFailed) as exc:
            service.create(db, actor, _payload(start_in=10, end_in=end_in))
        assert list(exc.value.errors) == ["end_date"]

    def test_blank_destination(self, db):
        actor = make_user(db)
        with pytest.raises(ValidationFailed) as exc:
            service.create(db, actor, _payload(destination="   "))
        assert "destination" in exc.value.errors


class TestGetById:
    def test_unknown_id(self, db):
        with pytest.raises(NotFound):
            service.get_by_id(db, "00000000-0000-0000-0000-000000000000")

    def test_soft_deleted_is_not_found(self, db):
        owner = make_user(db)
        travel_request = make_travel_request(db, owner)
        service.delete(db, travel_request)
        with pytest.raises(NotFound):
            service.get_by_id(db, travel_request.id)


class TestUpdate:
    def test_updates_allowed_fields(self, db):
        owner = make_user(db)
        travel_request = make_travel_request(db, owner)
        updated = service.update(db, travel_request, TravelRequestUpdate(destination="Porto", notes=None))
        assert updated.destination == "Porto"
        assert updated.notes is None
        assert updated.version == 2

    def test_privileged_fields_are_ignored(self, db):
        owner = make_user(db)
        other = make_user(db, name="Other")
        travel_request = make_travel_request(db, owner)
        payload = TravelRequestUpdate.model_validate({
            "destination": "Madrid",
            "status": "approved",
            "user_id": other.user_id,
            "approved_by": other.user_id,
            "cancelled_by": other.user_id,
        })
        updated = service.update(db, travel_request, payload)
        assert updated.destination == "Madrid"
        assert updated.status == TravelRequestStatus.requested
        assert updated.user_id == owner.user_id
        assert updated.approved_by is None
        assert updated.cancelled_by is None

    def test_end_before_stored_start_fails_and_writes_nothing(self, db):
        owner = make_user(db)
        today = local_today()
        travel_request = make_travel_request(
            db, owner, start_date=today + timedelta(days=10), end_date=today + timedelta(days=12),
        )

        with pytest.raises(ValidationFailed) as exc:
            service.update(db, travel_request, TravelRequestUpdate(
                destination="Should not stick",
                end_date=today + timedelta(days=5),
            ))
        assert list(exc.value.errors) == ["end_date"]

        stored = _stored(db, travel_request.id)
        assert stored.start_date == today + timedelta(days=10)
        assert stored.end_date == today + timedelta(days=12)
        assert stored.destination == "Lisbon"
        assert stored.version == 1

    def test_end_checked_against_new_start(self, db):
        owner = make_user(db)
        today = local_today()
        travel_request = make_travel_request(
            db, owner, start_date=today + timedelta(days=10), end_date=today + timedelta(days=12),
        )
        updated = service.update(db, travel_request, TravelRequestUpdate(
            start_date=today + timedelta(days=2),
            end_date=today + timedelta(days=5),
        ))
        assert updated.start_date == today + timedelta(days=2)
        assert updated.end_date == today + timedelta(days=5)

    def test_start_only_change_past_stored_end_fails(self, db):
        owner = make_user(db)
        today = local_today()
        travel_request = make_travel_request(
            db, owner, start_date=today + timedelta(days=10), end_date=today + timedelta(days=12),
        )
        with pytest.raises(ValidationFailed) as exc:
            service.update(db, travel_request, TravelRequestUpdate(start_date=today + timedelta(days=20)))
        assert "end_date" in exc.value.errors
        assert _stored(db, travel_request.id).start_date == today + timedelta(days=10)

    def test_new_start_in_the_past(self, db):
        owner = make_user(db)
        travel_request = make_travel_request(db, owner)
        with pytest.raises(ValidationFailed) as exc:
            service.update(db, travel_request, TravelRequestUpdate(start_date=local_today() - timedelta(days=1)))
        assert "start_date" in exc.value.errors

    def test_stored_past_start_does_not_block_other_edits(self, db):
        owner = make_user(db)
        today = local_today()
        travel_request = make_travel_request(
            db, owner, start_date=today - timedelta(days=3), end_date=today + timedelta(days=3),
        )
        updated = service.update(db, travel_request, TravelRequestUpdate(end_date=today + timedelta(days=4)))
        assert updated.end_date == today + timedelta(days=4)

    def test_empty_payload_is_a_no_op(self, db):
        owner = make_user(db)
        travel_request = make_travel_request(db, owner)
        updated = service.update(db, travel_request, TravelRequestUpdate())
        assert updated.version == 1

    def test_stale_version_conflicts(self, db):
        owner = make_user(db)
        travel_request = make_travel_request(db, owner)
        service.update(db, travel_request, TravelRequestUpdate(destination="Porto", version=1))
        with pytest.raises(Conflict):
            service.update(db, travel_request, TravelRequestUpdate(destination="Faro", version=1))
        assert _stored(db, travel_request.id).destination == "Porto"


class TestApproveCancel:
    def test_approve(self, db, recorded_events):
        owner = make_user(db)
        admin = make_admin(db)
        travel_request = make_travel_request(db, owner)

        approved = service.approve(db, travel_request, admin)
        assert approved.status == TravelRequestStatus.approved
        assert approved.approved_by == admin.user_id

        approvals = [e for e in recorded_events if isinstance(e, RequestApproved)]
        assert len(approvals) == 1
        assert approvals[0].request_id == travel_request.id
        assert approvals[0].travel_request["approver"]["id"] == admin.user_id

    def test_cancel_with_reason(self, db, recorded_events):
        owner = make_user(db)
        travel_request = make_travel_request(db, owner)

        cancelled = service.cancel(db, travel_request, owner, reason="Trip postponed")
        assert cancelled.status == TravelRequestStatus.cancelled
        assert cancelled.cancelled_by == owner.user_id
        assert cancelled.cancelled_reason == "Trip postponed"
        assert [type(e) for e in recorded_events] == [RequestCancelled]

    def test_cancel_without_reason(self, db):
        owner = make_user(db)
        travel_request = make_travel_request(db, owner)
        cancelled = service.cancel(db, travel_request, owner)
        assert cancelled.cancelled_reason is None

    def test_stale_version_blocks_approval(self, db, recorded_events):
        owner = make_user(db)
        admin = make_admin(db)
        travel_request = make_travel_request(db, owner)
        with pytest.raises(Conflict):
            service.approve(db, travel_request, admin, expected_version=7)
        assert _stored(db, travel_request.id).status == TravelRequestStatus.requested
        assert recorded_events == []

    def test_events_go_to_the_given_dispatcher(self, db, recorded_events):
        owner = make_user(db)
        admin = make_admin(db)
        travel_request = make_travel_request(db, owner)
        local = EventDispatcher()
        seen = []
        local.subscribe(RequestApproved, seen.append)

        service.approve(db, travel_request, admin, events=local)
        assert len(seen) == 1
        assert recorded_events == []

    def test_failing_listener_does_not_undo_the_write(self, db):
        owner = make_user(db)
        admin = make_admin(db)
        travel_request = make_travel_request(db, owner)
        local = EventDispatcher()

        def _boom(event):
            raise RuntimeError("mail server down")

        local.subscribe(RequestApproved, _boom)
        approved = service.approve(db, travel_request, admin, events=local)
        assert approved.status == TravelRequestStatus.approved
        assert _stored(db, travel_request.id).status == TravelRequestStatus.approved


class TestDelete:
    def test_delete_is_soft_and_silent(self, db, recorded_events):
        owner = make_user(db)
        travel_request = make_travel_request(db, owner)
        assert service.delete(db, travel_request) is True
        assert _stored(db, travel_request.id).deleted_at is not None
        assert recorded_events == []


class TestListFor:
    def test_user_sees_only_own(self, db):
        alice = make_user(db, name="Alice")
        bob = make_user(db, name="Bob")
        mine = {make_travel_request(db, alice).id for _ in range(2)}
        for _ in range(3):
            make_travel_request(db, bob)

        page = service.list_for(db, alice)
        assert {item.id for item in page.items} == mine
        assert page.total == 2

    def test_admin_sees_all_non_deleted(self, db):
        alice = make_user(db, name="Alice")
        bob = make_user(db, name="Bob")
        admin = make_admin(db)
        make_travel_request(db, alice)
        make_travel_request(db, bob)
        service.delete(db, make_travel_request(db, bob))

        assert service.list_for(db, admin).total == 2

    def test_admin_filters(self, db):
        alice = make_user(db, name="Alice")
        admin = make_admin(db)
        approved = make_travel_request(db, alice, status=TravelRequestStatus.approved)
        make_travel_request(db, alice)

        page = service.list_for(db, admin, TravelRequestFilters(status=TravelRequestStatus.approved))
        assert [item.id for item in page.items] == [approved.id]

    def test_per_page_defaults_and_cap(self, db):
        alice = make_user(db)
        assert service.list_for(db, alice).per_page == 15
        assert service.list_for(db, alice, per_page=1000).per_page == 100


class TestConcurrentWrites:
    """Two requests loaded the same version before either wrote."""

    @pytest.fixture
    def other_db(self, db_engine):
        session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
        try:
            yield session
        finally:
            session.close()

    def test_second_writer_with_same_version_conflicts(self, db, other_db):
        owner = make_user(db)
        travel_request = make_travel_request(db, owner)
        mine = service.get_by_id(db, travel_request.id)
        theirs = service.get_by_id(other_db, travel_request.id)

        service.update(db, mine, TravelRequestUpdate(destination="Porto", version=1))
        with pytest.raises(Conflict):
            service.update(other_db, theirs, TravelRequestUpdate(destination="Faro", version=1))

        stored = _stored(db, travel_request.id)
        assert stored.destination == "Porto"
        assert stored.version == 2

    def test_stale_approval_writes_nothing_and_emits_nothing(self, db, other_db, recorded_events):
        owner = make_user(db)
        admin = make_admin(db)
        travel_request = make_travel_request(db, owner)
        admin_view = service.get_by_id(other_db, travel_request.id)

        service.cancel(db, service.get_by_id(db, travel_request.id), owner, reason="Plans changed")
        recorded_events.clear()

        with pytest.raises(Conflict):
            service.approve(other_db, admin_view, admin)
        assert recorded_events == []

        stored = _stored(db, travel_request.id)
        assert stored.status == TravelRequestStatus.cancelled
        assert stored.approved_by is None
        assert stored.version == 2
