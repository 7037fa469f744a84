from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import PipelineError

logger = logging.getLogger("sp.request")


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "pipeline_error",
            extra={"path": request.url.path, "code": exc.code, "error_message": exc.message},
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail()})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PipelineError, pipeline_error_handler)
