"""
Allocation Engine - binds registrations to topics

Every operation here is one atomic unit of work against the store:

1. re-read the registration and every topic record sharing the target's
   identity key (row locks on PostgreSQL)
2. recompute occupancy from the registration ledger
3. write the registration and the topic records with a version guard
   (``UPDATE ... WHERE version = :seen``)
4. commit

A guard that matches no row means another writer committed in between; the
unit is rolled back and retried from step 1 with a short back-off. Nothing is
written unless the whole unit commits, so an abandoned call either fully
applies or leaves no trace.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError
from typing import Any, Awaitable, Callable, Dict, List, Optional
import asyncio
import random

from defensehub.core.config import settings
from defensehub.core.exceptions import (
    DefenseHubError,
    RegistrationNotFoundError,
    TopicNotFoundError,
    AlreadyRegisteredError,
    CapacityExceededError,
    NotRegisteredError,
    TopicNotOpenError,
    NotTopicSupervisorError,
    CancellationNotAllowedError,
    StaleWriteError,
    InvalidTransitionError,
)
from defensehub.core.logging_config import logger
from defensehub.core.types import utcnow
from defensehub.models.topic import Topic, TopicStatus
from defensehub.models.registration import (
    Registration,
    ProjectRegistrationStatus,
    TOPIC_DERIVED_FIELDS,
)
from defensehub.services.topic_catalog import TopicKey, occupancy_query, siblings_query

# Errors that mean "someone else committed first" and are safe to retry
RETRYABLE_ERRORS = (StaleWriteError, OperationalError)


class AllocationEngine:
    """Capacity-safe topic registration, cancellation and supervisor decisions"""

    def __init__(self, max_retries: Optional[int] = None, retry_base_delay: Optional[float] = None):
        self.max_retries = max_retries if max_retries is not None else settings.ALLOCATION_MAX_RETRIES
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.ALLOCATION_RETRY_BASE_DELAY
        )

    # ==================== PUBLIC OPERATIONS ====================

    async def register(
        self,
        db: AsyncSession,
        registration_id: str,
        topic_id: str,
    ) -> Registration:
        """
        Bind a registration to a topic.

        Raises:
            AlreadyRegisteredError: a topic is already bound
            CapacityExceededError: the topic key is full, or the retry budget ran out
            TopicNotOpenError: topic is still a draft or belongs to another session
        """
        try:
            return await self._run_atomic(
                db,
                "register",
                registration_id,
                topic_id,
                lambda: self._register_once(db, registration_id, topic_id),
            )
        except StaleWriteError:
            raise CapacityExceededError(topic_id)

    async def cancel(
        self,
        db: AsyncSession,
        registration_id: str,
        allow_approved: bool = True,
    ) -> Registration:
        """
        Release the topic bound to a registration.

        ``allow_approved`` is the caller's policy for registrations the
        supervisor already confirmed; the engine itself only requires that a
        topic is bound.
        """
        return await self._run_atomic(
            db,
            "cancel",
            registration_id,
            None,
            lambda: self._cancel_once(db, registration_id, allow_approved),
        )

    async def decide(
        self,
        db: AsyncSession,
        registration_id: str,
        supervisor_id: str,
        approve: bool,
    ) -> Registration:
        """
        Supervisor confirmation of a pending registration.

        Approval moves the allocation track to ``approved``. Rejection releases
        the topic exactly like a cancellation but leaves the track at ``rejected``
        so the student can see why and choose again.
        """
        return await self._run_atomic(
            db,
            "approve" if approve else "reject",
            registration_id,
            None,
            lambda: self._decide_once(db, registration_id, supervisor_id, approve),
        )

    # ==================== UNITS OF WORK ====================

    async def _register_once(self, db: AsyncSession, registration_id: str, topic_id: str) -> Registration:
        registration = await self._load_registration(db, registration_id)
        if registration.has_topic:
            raise AlreadyRegisteredError(registration.id, registration.topic_id)

        topic = await self._load_topic(db, topic_id)
        if topic.session_id != registration.session_id:
            raise TopicNotOpenError(topic.id, "topic belongs to another defense session")
        if topic.status == TopicStatus.draft:
            raise TopicNotOpenError(topic.id, "topic has not been approved yet")

        siblings = await self._load_siblings(db, topic.identity_key)
        occupied = await self._occupancy(db, topic.identity_key)
        if occupied >= topic.max_students:
            raise CapacityExceededError(topic.id, topic.max_students)

        await self._guarded_update(
            db,
            Registration,
            registration,
            topic_id=topic.id,
            project_title=topic.title,
            summary=topic.summary,
            objectives=topic.objectives,
            expected_results=topic.expected_results,
            supervisor_id=topic.supervisor_id,
            supervisor_name=topic.supervisor_name,
            project_registration_status=ProjectRegistrationStatus.pending,
        )

        now_full = occupied + 1 >= topic.max_students
        for sibling in siblings:
            changes: Dict[str, Any] = {}
            if now_full and sibling.status == TopicStatus.approved:
                changes["status"] = TopicStatus.taken
            # Bumped even without a status change so racing writers on the same key collide
            await self._guarded_update(db, Topic, sibling, **changes)

        return registration

    async def _cancel_once(self, db: AsyncSession, registration_id: str, allow_approved: bool) -> Registration:
        registration = await self._load_registration(db, registration_id)
        if not registration.has_topic:
            raise NotRegisteredError(registration.id)
        if not allow_approved and registration.project_registration_status == ProjectRegistrationStatus.approved:
            raise CancellationNotAllowedError(registration.id)

        await self._release(db, registration, None)
        return registration

    async def _decide_once(
        self,
        db: AsyncSession,
        registration_id: str,
        supervisor_id: str,
        approve: bool,
    ) -> Registration:
        registration = await self._load_registration(db, registration_id)
        if not registration.has_topic:
            raise NotRegisteredError(registration.id)
        if registration.supervisor_id != supervisor_id:
            raise NotTopicSupervisorError(registration.id, supervisor_id)

        target = ProjectRegistrationStatus.approved if approve else ProjectRegistrationStatus.rejected
        current = registration.project_registration_status
        if current != ProjectRegistrationStatus.pending:
            raise InvalidTransitionError(
                "project_registration",
                current.value if current else None,
                target.value,
            )

        if approve:
            await self._guarded_update(db, Registration, registration, project_registration_status=target)
        else:
            await self._release(db, registration, target)
        return registration

    async def _release(
        self,
        db: AsyncSession,
        registration: Registration,
        new_status: Optional[ProjectRegistrationStatus],
    ) -> None:
        """Clear the topic binding and re-open a full topic key"""
        key: TopicKey = (registration.session_id, registration.project_title, registration.supervisor_id)
        siblings = await self._load_siblings(db, key)

        cleared = {field: None for field in TOPIC_DERIVED_FIELDS}
        await self._guarded_update(
            db,
            Registration,
            registration,
            project_registration_status=new_status,
            **cleared,
        )

        # Releasing one binding from a full key always frees exactly one slot
        for sibling in siblings:
            changes: Dict[str, Any] = {}
            if sibling.status == TopicStatus.taken:
                changes["status"] = TopicStatus.approved
            await self._guarded_update(db, Topic, sibling, **changes)

    # ==================== TRANSACTION PLUMBING ====================

    async def _run_atomic(
        self,
        db: AsyncSession,
        action: str,
        registration_id: str,
        topic_id: Optional[str],
        unit: Callable[[], Awaitable[Registration]],
    ) -> Registration:
        attempts = max(1, self.max_retries)
        for attempt in range(1, attempts + 1):
            try:
                registration = await unit()
                await db.commit()
            except RETRYABLE_ERRORS as e:
                await db.rollback()
                if attempt >= attempts:
                    logger.log_allocation_event(
                        action, "stale", registration_id, topic_id, attempt=attempt,
                        error_type=type(e).__name__,
                    )
                    if isinstance(e, StaleWriteError):
                        raise
                    raise StaleWriteError("Registration", registration_id) from e
                logger.log_allocation_event(action, "retry", registration_id, topic_id, attempt=attempt)
                await asyncio.sleep(self._backoff(attempt))
                continue
            except DefenseHubError as e:
                await db.rollback()
                logger.log_allocation_event(
                    action, e.code.lower(), registration_id, topic_id, attempt=attempt,
                )
                raise
            except Exception:
                await db.rollback()
                raise

            # Confirmed read-back: callers only ever see committed state
            await db.refresh(registration)
            logger.log_allocation_event(
                action, "success", registration_id, registration.topic_id or topic_id, attempt=attempt,
                status=registration.project_registration_status.value
                if registration.project_registration_status else None,
            )
            return registration

        raise StaleWriteError("Registration", registration_id)

    def _backoff(self, attempt: int) -> float:
        return self.retry_base_delay * attempt + random.uniform(0, self.retry_base_delay)

    async def _load_registration(self, db: AsyncSession, registration_id: str) -> Registration:
        result = await db.execute(
            select(Registration)
            .where(Registration.id == registration_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        registration = result.scalar_one_or_none()
        if registration is None:
            raise RegistrationNotFoundError(registration_id)
        return registration

    async def _load_topic(self, db: AsyncSession, topic_id: str) -> Topic:
        result = await db.execute(
            select(Topic)
            .where(Topic.id == topic_id)
            .execution_options(populate_existing=True)
        )
        topic = result.scalar_one_or_none()
        if topic is None:
            raise TopicNotFoundError(topic_id)
        return topic

    async def _load_siblings(self, db: AsyncSession, key: TopicKey) -> List[Topic]:
        result = await db.execute(
            siblings_query(key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _occupancy(self, db: AsyncSession, key: TopicKey) -> int:
        result = await db.execute(occupancy_query(key))
        return result.scalar() or 0

    async def _guarded_update(self, db: AsyncSession, model, obj, **values) -> None:
        """UPDATE one row only if nobody changed it since we read it"""
        result = await db.execute(
            update(model)
            .where(model.id == obj.id, model.version == obj.version)
            .values(version=obj.version + 1, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleWriteError(model.__name__, obj.id)


allocation_engine = AllocationEngine()
