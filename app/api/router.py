from fastapi import APIRouter

from app.api.routes import assignments
from app.api.routes import dashboard
from app.api.routes import interviews
from app.api.routes import processing

api_router = APIRouter()
api_router.include_router(assignments.router)
api_router.include_router(interviews.router)
api_router.include_router(processing.router)
api_router.include_router(dashboard.router)
