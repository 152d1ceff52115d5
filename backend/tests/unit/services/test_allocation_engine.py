"""
Unit Tests for the Allocation Engine
Tests for: register / cancel / decide, capacity under concurrency, retries
"""
import asyncio

import pytest
from sqlalchemy import select, func

from defensehub.core.exceptions import (
    AlreadyRegisteredError,
    CapacityExceededError,
    NotRegisteredError,
    TopicNotOpenError,
    NotTopicSupervisorError,
    CancellationNotAllowedError,
    InvalidTransitionError,
    StaleWriteError,
)
from defensehub.models.defense_session import DefenseSession, SessionType, SessionStatus
from defensehub.models.registration import Registration, ProjectRegistrationStatus, TOPIC_DERIVED_FIELDS
from defensehub.models.topic import Topic, TopicStatus
from defensehub.services.allocation_engine import AllocationEngine
from defensehub.services.topic_catalog import OCCUPYING_STATUSES


@pytest.fixture
def engine_under_test():
    return AllocationEngine(max_retries=5, retry_base_delay=0.001)


async def bound_count(db, topic: Topic) -> int:
    result = await db.execute(
        select(func.count(Registration.id)).where(
            Registration.session_id == topic.session_id,
            Registration.project_title == topic.title,
            Registration.supervisor_id == topic.supervisor_id,
            Registration.project_registration_status.in_(OCCUPYING_STATUSES),
        )
    )
    return result.scalar()


class TestRegister:
    """Binding a registration to a topic"""

    @pytest.mark.asyncio
    async def test_register_copies_topic_fields(self, db_session, make_topic, make_registration, engine_under_test):
        """Test that registering copies the topic description and marks it pending"""
        topic = await make_topic(max_students=2)
        registration = await make_registration()

        result = await engine_under_test.register(db_session, registration.id, topic.id)

        assert result.topic_id == topic.id
        assert result.project_title == topic.title
        assert result.summary == topic.summary
        assert result.objectives == topic.objectives
        assert result.expected_results == topic.expected_results
        assert result.supervisor_id == topic.supervisor_id
        assert result.supervisor_name == topic.supervisor_name
        assert result.project_registration_status == ProjectRegistrationStatus.pending

        await db_session.refresh(topic)
        assert topic.status == TopicStatus.approved

    @pytest.mark.asyncio
    async def test_last_slot_marks_topic_taken(self, db_session, make_topic, make_registration, engine_under_test):
        topic = await make_topic(max_students=2)
        first = await make_registration()
        second = await make_registration()

        await engine_under_test.register(db_session, first.id, topic.id)
        await engine_under_test.register(db_session, second.id, topic.id)

        await db_session.refresh(topic)
        assert topic.status == TopicStatus.taken
        assert await bound_count(db_session, topic) == 2

    @pytest.mark.asyncio
    async def test_register_twice_fails(self, db_session, make_topic, make_registration, engine_under_test):
        """Test that a second register without cancelling first is refused"""
        topic = await make_topic(max_students=3)
        other = await make_topic(max_students=3)
        registration = await make_registration()
        registration_id, topic_id, other_id = registration.id, topic.id, other.id
        await engine_under_test.register(db_session, registration_id, topic_id)

        with pytest.raises(AlreadyRegisteredError):
            await engine_under_test.register(db_session, registration_id, other_id)

        with pytest.raises(AlreadyRegisteredError):
            await engine_under_test.register(db_session, registration_id, topic_id)

    @pytest.mark.asyncio
    async def test_draft_topic_is_not_open(self, db_session, make_topic, make_registration, engine_under_test):
        topic = await make_topic(status=TopicStatus.draft)
        registration = await make_registration()

        with pytest.raises(TopicNotOpenError):
            await engine_under_test.register(db_session, registration.id, topic.id)

    @pytest.mark.asyncio
    async def test_topic_from_other_session_is_not_open(self, db_session, make_topic, make_registration, engine_under_test):
        other_session = DefenseSession(
            name="Other", session_type=SessionType.graduation, status=SessionStatus.ongoing
        )
        db_session.add(other_session)
        await db_session.commit()

        topic = await make_topic(session=other_session)
        registration = await make_registration()

        with pytest.raises(TopicNotOpenError):
            await engine_under_test.register(db_session, registration.id, topic.id)

    @pytest.mark.asyncio
    async def test_duplicate_topic_records_share_capacity(self, db_session, make_topic, make_registration, engine_under_test):
        """Test that re-imported copies of one topic count as one offering"""
        original = await make_topic(max_students=1, title="Smart Campus Parking")
        reimported = await make_topic(max_students=1, title="Smart Campus Parking")
        first = await make_registration()
        second = await make_registration()

        await engine_under_test.register(db_session, first.id, original.id)

        with pytest.raises(CapacityExceededError):
            await engine_under_test.register(db_session, second.id, reimported.id)

        await db_session.refresh(original)
        await db_session.refresh(reimported)
        assert original.status == TopicStatus.taken
        assert reimported.status == TopicStatus.taken


class TestSingleSlotScenario:
    """maxStudents=1: A takes it, B is refused, A leaves, B gets it"""

    @pytest.mark.asyncio
    async def test_single_slot_round_trip(self, db_session, make_topic, make_registration, engine_under_test):
        topic = await make_topic(max_students=1)
        student_a = await make_registration()
        student_b = await make_registration()
        # a failed unit rolls the session back and expires loaded objects
        topic_id, a_id, b_id = topic.id, student_a.id, student_b.id

        await engine_under_test.register(db_session, a_id, topic_id)
        await db_session.refresh(topic)
        assert topic.status == TopicStatus.taken

        with pytest.raises(CapacityExceededError) as exc_info:
            await engine_under_test.register(db_session, b_id, topic_id)
        assert exc_info.value.code == "CAPACITY_EXCEEDED"

        await engine_under_test.cancel(db_session, a_id)
        await db_session.refresh(topic)
        assert topic.status == TopicStatus.approved

        result = await engine_under_test.register(db_session, b_id, topic_id)
        assert result.project_registration_status == ProjectRegistrationStatus.pending
        await db_session.refresh(topic)
        assert topic.status == TopicStatus.taken


class TestCancel:
    """Releasing a binding"""

    @pytest.mark.asyncio
    async def test_cancel_without_topic_fails(self, db_session, make_registration, engine_under_test):
        registration = await make_registration()

        with pytest.raises(NotRegisteredError):
            await engine_under_test.cancel(db_session, registration.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_students", [1, 2])
    async def test_cancel_restores_previous_state(self, db_session, make_topic, make_registration, engine_under_test, max_students):
        """Test that cancel(register(topic, reg)) restores both records"""
        topic = await make_topic(max_students=max_students)
        registration = await make_registration()
        before_fields = {f: getattr(registration, f) for f in TOPIC_DERIVED_FIELDS}
        before_status = registration.project_registration_status
        before_topic_status = topic.status

        await engine_under_test.register(db_session, registration.id, topic.id)
        result = await engine_under_test.cancel(db_session, registration.id)

        assert {f: getattr(result, f) for f in TOPIC_DERIVED_FIELDS} == before_fields
        assert result.project_registration_status == before_status
        await db_session.refresh(topic)
        assert topic.status == before_topic_status

    @pytest.mark.asyncio
    async def test_cancel_approved_respects_caller_policy(self, db_session, make_topic, make_registration, engine_under_test):
        topic = await make_topic()
        registration = await make_registration()
        await engine_under_test.register(db_session, registration.id, topic.id)
        registration_id = registration.id
        await engine_under_test.decide(db_session, registration_id, topic.supervisor_id, approve=True)

        with pytest.raises(CancellationNotAllowedError):
            await engine_under_test.cancel(db_session, registration_id, allow_approved=False)

        result = await engine_under_test.cancel(db_session, registration_id, allow_approved=True)
        assert result.topic_id is None
        assert result.project_registration_status is None


class TestDecide:
    """Supervisor confirmation of pending registrations"""

    @pytest.mark.asyncio
    async def test_approve(self, db_session, make_topic, make_registration, engine_under_test):
        topic = await make_topic()
        registration = await make_registration()
        await engine_under_test.register(db_session, registration.id, topic.id)

        result = await engine_under_test.decide(db_session, registration.id, topic.supervisor_id, approve=True)

        assert result.project_registration_status == ProjectRegistrationStatus.approved
        assert result.topic_id == topic.id

    @pytest.mark.asyncio
    async def test_reject_releases_topic(self, db_session, make_topic, make_registration, engine_under_test):
        """Test that rejection clears the binding and re-opens a full topic"""
        topic = await make_topic(max_students=1)
        registration = await make_registration()
        await engine_under_test.register(db_session, registration.id, topic.id)

        result = await engine_under_test.decide(db_session, registration.id, topic.supervisor_id, approve=False)

        assert result.project_registration_status == ProjectRegistrationStatus.rejected
        assert result.topic_id is None
        assert result.project_title is None
        await db_session.refresh(topic)
        assert topic.status == TopicStatus.approved
        assert await bound_count(db_session, topic) == 0

    @pytest.mark.asyncio
    async def test_rejected_student_can_register_again(self, db_session, make_topic, make_registration, engine_under_test):
        topic = await make_topic(max_students=1)
        registration = await make_registration()
        await engine_under_test.register(db_session, registration.id, topic.id)
        await engine_under_test.decide(db_session, registration.id, topic.supervisor_id, approve=False)

        result = await engine_under_test.register(db_session, registration.id, topic.id)
        assert result.project_registration_status == ProjectRegistrationStatus.pending

    @pytest.mark.asyncio
    async def test_cancel_after_rejection_clears_status(self, db_session, make_topic, make_registration, engine_under_test):
        """Test that cancelling a re-registration leaves no status, not the earlier rejection"""
        rejected_topic = await make_topic()
        second_topic = await make_topic()
        registration = await make_registration()
        registration_id = registration.id
        await engine_under_test.register(db_session, registration_id, rejected_topic.id)
        rejected = await engine_under_test.decide(db_session, registration_id, rejected_topic.supervisor_id, approve=False)
        assert rejected.project_registration_status == ProjectRegistrationStatus.rejected

        await engine_under_test.register(db_session, registration_id, second_topic.id)
        result = await engine_under_test.cancel(db_session, registration_id)

        assert result.project_registration_status is None
        assert {f: getattr(result, f) for f in TOPIC_DERIVED_FIELDS} == {f: None for f in TOPIC_DERIVED_FIELDS}
        await db_session.refresh(second_topic)
        assert second_topic.status == TopicStatus.approved

    @pytest.mark.asyncio
    async def test_only_bound_supervisor_decides(self, db_session, make_topic, make_registration, engine_under_test):
        topic = await make_topic()
        registration = await make_registration()
        await engine_under_test.register(db_session, registration.id, topic.id)

        with pytest.raises(NotTopicSupervisorError):
            await engine_under_test.decide(db_session, registration.id, "someone-else", approve=True)

    @pytest.mark.asyncio
    async def test_decide_twice_is_invalid(self, db_session, make_topic, make_registration, engine_under_test):
        topic = await make_topic()
        registration = await make_registration()
        await engine_under_test.register(db_session, registration.id, topic.id)
        await engine_under_test.decide(db_session, registration.id, topic.supervisor_id, approve=True)

        with pytest.raises(InvalidTransitionError):
            await engine_under_test.decide(db_session, registration.id, topic.supervisor_id, approve=True)


class TestRetries:
    """Version-guard conflicts are retried, then reported"""

    @pytest.mark.asyncio
    async def test_conflict_is_retried(self, db_session, make_topic, make_registration, monkeypatch):
        engine = AllocationEngine(max_retries=3, retry_base_delay=0.001)
        topic = await make_topic()
        registration = await make_registration()

        original = engine._guarded_update
        calls = {"n": 0}

        async def flaky(db, model, obj, **values):
            calls["n"] += 1
            if calls["n"] == 1:
                raise StaleWriteError(model.__name__, obj.id)
            await original(db, model, obj, **values)

        monkeypatch.setattr(engine, "_guarded_update", flaky)

        result = await engine.register(db_session, registration.id, topic.id)

        assert result.project_registration_status == ProjectRegistrationStatus.pending
        assert calls["n"] > 1

    @pytest.mark.asyncio
    async def test_register_reports_capacity_after_retry_budget(self, db_session, make_topic, make_registration, monkeypatch):
        engine = AllocationEngine(max_retries=2, retry_base_delay=0.001)
        topic = await make_topic()
        registration = await make_registration()

        async def always_stale(db, model, obj, **values):
            raise StaleWriteError(model.__name__, obj.id)

        monkeypatch.setattr(engine, "_guarded_update", always_stale)
        registration_id = registration.id

        with pytest.raises(CapacityExceededError):
            await engine.register(db_session, registration_id, topic.id)

        fresh = await db_session.get(Registration, registration_id)
        await db_session.refresh(fresh)
        assert fresh.topic_id is None
        assert fresh.project_registration_status is None

    @pytest.mark.asyncio
    async def test_cancel_reports_stale_write_after_retry_budget(self, db_session, make_topic, make_registration, monkeypatch):
        engine = AllocationEngine(max_retries=2, retry_base_delay=0.001)
        topic = await make_topic()
        registration = await make_registration()
        await engine.register(db_session, registration.id, topic.id)

        async def always_stale(db, model, obj, **values):
            raise StaleWriteError(model.__name__, obj.id)

        monkeypatch.setattr(engine, "_guarded_update", always_stale)

        with pytest.raises(StaleWriteError):
            await engine.cancel(db_session, registration.id)


class TestConcurrency:
    """Racing registrations against the shared store"""

    @pytest.mark.asyncio
    async def test_racers_never_exceed_capacity(self, session_factory, db_session, make_topic, make_registration):
        """Test that exactly max_students of N concurrent registrations win"""
        max_students = 3
        racers = max_students + 5
        topic = await make_topic(max_students=max_students)
        registrations = [await make_registration() for _ in range(racers)]

        engine = AllocationEngine(max_retries=50, retry_base_delay=0.005)

        async def race(registration_id: str):
            async with session_factory() as session:
                return await engine.register(session, registration_id, topic.id)

        results = await asyncio.gather(
            *(race(r.id) for r in registrations),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, Registration)]
        losers = [r for r in results if isinstance(r, CapacityExceededError)]
        assert len(winners) == max_students
        assert len(losers) == racers - max_students

        async with session_factory() as session:
            assert await bound_count(session, topic) == max_students
            stored = await session.get(Topic, topic.id)
            assert stored.status == TopicStatus.taken

    @pytest.mark.asyncio
    async def test_cancel_and_register_race(self, session_factory, db_session, make_topic, make_registration):
        """Test that a release racing with new registrations keeps the count consistent"""
        topic = await make_topic(max_students=1)
        holder = await make_registration()
        contenders = [await make_registration() for _ in range(4)]

        engine = AllocationEngine(max_retries=50, retry_base_delay=0.005)
        await engine.register(db_session, holder.id, topic.id)

        async def cancel_holder():
            async with session_factory() as session:
                return await engine.cancel(session, holder.id)

        async def contend(registration_id: str):
            async with session_factory() as session:
                return await engine.register(session, registration_id, topic.id)

        await asyncio.gather(
            cancel_holder(),
            *(contend(r.id) for r in contenders),
            return_exceptions=True,
        )

        async with session_factory() as session:
            assert await bound_count(session, topic) <= 1
