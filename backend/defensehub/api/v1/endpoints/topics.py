"""
Project Topic API
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from defensehub.core.database import get_db
from defensehub.schemas.topic import TopicCreate, TopicResponse
from defensehub.services.topic_catalog import topic_catalog

router = APIRouter(prefix="/topics", tags=["Topics"])


@router.post("", response_model=TopicResponse, status_code=201)
async def propose_topic(data: TopicCreate, db: AsyncSession = Depends(get_db)):
    """Supervisor proposes a topic (starts as draft)"""
    return await topic_catalog.create_topic(db, data)


@router.get("/{topic_id}", response_model=TopicResponse)
async def get_topic(topic_id: str, db: AsyncSession = Depends(get_db)):
    return await topic_catalog.get_topic(db, topic_id)


@router.post("/{topic_id}/approve", response_model=TopicResponse)
async def approve_topic(topic_id: str, db: AsyncSession = Depends(get_db)):
    """Administrative approval: draft -> approved"""
    return await topic_catalog.approve_topic(db, topic_id)
