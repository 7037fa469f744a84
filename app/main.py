import logging

from fastapi import FastAPI

from app.api.errors import register_exception_handlers
from app.api.router import api_router
from app.core.config import settings
from app.jobs.scheduler import start_scheduler
from app.middleware.logging import RequestLoggingMiddleware
from app.services.event_bus import event_bus


def _configure_logging() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    for noisy in ("apscheduler", "apscheduler.scheduler", "apscheduler.executors.default"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    _configure_logging()
    application = FastAPI(title=settings.app_name, version="0.1.0", docs_url="/docs", redoc_url="/redoc")
    application.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(application)
    application.include_router(api_router)

    @application.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "environment": settings.environment,
            "scheduler": bool(getattr(application.state, "scheduler", None)),
            "event_bus": "redis" if event_bus.uses_redis else "local",
        }

    @application.on_event("startup")
    async def _start_jobs() -> None:
        application.state.scheduler = start_scheduler() if settings.enable_scheduler else None

    @application.on_event("shutdown")
    async def _stop_jobs() -> None:
        scheduler = getattr(application.state, "scheduler", None)
        if scheduler:
            scheduler.shutdown(wait=False)
        await event_bus.close()

    return application


app = create_app()
