"""
Topic Catalog - supervisor-proposed topics and their live occupancy

Occupancy is never cached on the topic record: it is recomputed from the
registration ledger by identity key (session_id, title, supervisor_id) every
time it is needed, so duplicate topic records from repeated imports are
counted as one offering.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import List, Tuple
import logging

from defensehub.core.exceptions import (
    TopicNotFoundError,
    DefenseSessionNotFoundError,
    ValidationError,
)
from defensehub.models.defense_session import DefenseSession
from defensehub.models.topic import Topic, TopicStatus
from defensehub.models.registration import Registration, ProjectRegistrationStatus
from defensehub.schemas.topic import TopicCreate

logger = logging.getLogger(__name__)

TopicKey = Tuple[str, str, str]

# Allocation statuses that hold a slot
OCCUPYING_STATUSES = (ProjectRegistrationStatus.pending, ProjectRegistrationStatus.approved)


def occupancy_query(key: TopicKey):
    """COUNT of registrations currently bound to the topic identity key"""
    session_id, title, supervisor_id = key
    return (
        select(func.count(Registration.id))
        .where(
            Registration.session_id == session_id,
            Registration.project_title == title,
            Registration.supervisor_id == supervisor_id,
            Registration.project_registration_status.in_(OCCUPYING_STATUSES),
        )
    )


def siblings_query(key: TopicKey):
    """All topic records sharing the identity key, in a stable order"""
    session_id, title, supervisor_id = key
    return (
        select(Topic)
        .where(
            Topic.session_id == session_id,
            Topic.title == title,
            Topic.supervisor_id == supervisor_id,
        )
        .order_by(Topic.created_at, Topic.id)
    )


class TopicCatalog:
    """Topic proposal, approval and browsing"""

    async def create_topic(self, db: AsyncSession, data: TopicCreate) -> Topic:
        """Create a topic in ``draft`` status"""
        session = await db.get(DefenseSession, data.session_id)
        if session is None:
            raise DefenseSessionNotFoundError(data.session_id)

        topic = Topic(**data.model_dump(), status=TopicStatus.draft)
        db.add(topic)
        await db.commit()
        await db.refresh(topic)

        logger.info(f"Topic proposed: '{topic.title}' by {topic.supervisor_name} (session {topic.session_id})")
        return topic

    async def get_topic(self, db: AsyncSession, topic_id: str) -> Topic:
        topic = await db.get(Topic, topic_id)
        if topic is None:
            raise TopicNotFoundError(topic_id)
        return topic

    async def approve_topic(self, db: AsyncSession, topic_id: str) -> Topic:
        """Administrative approval: draft -> approved"""
        topic = await self.get_topic(db, topic_id)
        if topic.status != TopicStatus.draft:
            raise ValidationError(f"Only draft topics can be approved (status is '{topic.status.value}')", field="status")

        topic.status = TopicStatus.approved
        topic.version = topic.version + 1
        await db.commit()
        await db.refresh(topic)

        logger.info(f"Topic approved: '{topic.title}' ({topic.id})")
        return topic

    async def occupancy(self, db: AsyncSession, key: TopicKey) -> int:
        result = await db.execute(occupancy_query(key))
        return result.scalar() or 0

    async def list_available_topics(self, db: AsyncSession, session_id: str) -> List[Tuple[Topic, int]]:
        """
        Topics students may still register for in a session.

        Returns one (topic, occupancy) pair per identity key, the oldest record
        standing for the offering. A topic qualifies when it is ``approved``,
        or ``taken`` while occupancy shows room again.
        """
        result = await db.execute(
            select(Topic)
            .where(
                Topic.session_id == session_id,
                Topic.status.in_((TopicStatus.approved, TopicStatus.taken)),
            )
            .order_by(Topic.created_at, Topic.id)
        )
        topics = list(result.scalars().all())

        available: List[Tuple[Topic, int]] = []
        seen = set()
        for topic in topics:
            if topic.identity_key in seen:
                continue
            seen.add(topic.identity_key)

            occupied = await self.occupancy(db, topic.identity_key)
            if occupied < topic.max_students:
                available.append((topic, occupied))

        return available


topic_catalog = TopicCatalog()
