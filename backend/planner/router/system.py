from fastapi import APIRouter, Request

from planner.core.config import APP_VERSION, ENVIRONMENT
from planner.models.common import APIResponse

router = APIRouter(tags=["System"])


@router.get("/", response_model=APIResponse)
def root():
    return APIResponse(code=0, msg="ok", data={"msg": "Trip Timeline API. See /docs."})


@router.get("/health", response_model=APIResponse)
def health_check(request: Request):
    return APIResponse(
        code=0,
        msg="ok",
        data={
            "status": "healthy",
            "service": "trip_timeline-server",
            "version": APP_VERSION,
            "environment": ENVIRONMENT,
            "store": type(request.app.state.store).__name__,
        },
    )
