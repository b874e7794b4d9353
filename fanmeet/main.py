from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from fanmeet.api.v1.deps import lifecycle_error_status
from fanmeet.api.v1.router import api_router
from fanmeet.core.config import settings
from fanmeet.core.logging import configure_logging
from fanmeet.services.meeting_lifecycle import MeetingLifecycleError

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, default_response_class=ORJSONResponse, version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.api_prefix)

Instrumentator().instrument(app).expose(app)


@app.exception_handler(MeetingLifecycleError)
async def meeting_lifecycle_error_handler(request: Request, exc: MeetingLifecycleError) -> ORJSONResponse:
    status_code = lifecycle_error_status(exc)
    logger.info("%s %s rejected with %s: %s", request.method, request.url.path, status_code, exc)
    return ORJSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "env": settings.app_env}
