"""Health endpoint."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...health import get_health_status
from ...services.context import StoreContext
from ..dependencies import get_context

router = APIRouter(tags=["Health"])


@router.get("/health")
def health(context: StoreContext = Depends(get_context)) -> JSONResponse:
    status = get_health_status(context)
    return JSONResponse(status, status_code=200 if status["status"] == "healthy" else 503)
