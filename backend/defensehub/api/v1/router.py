from fastapi import APIRouter
from defensehub.api.v1.endpoints import sessions, topics, registrations, submissions, rubrics, evaluations, settings, health

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(sessions.router)
api_router.include_router(topics.router)
api_router.include_router(registrations.router)
api_router.include_router(submissions.router)
api_router.include_router(rubrics.router)
api_router.include_router(evaluations.router)
api_router.include_router(settings.router)
