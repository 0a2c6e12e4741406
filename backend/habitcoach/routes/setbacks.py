"""
Setback Routes - Endpoints for detected habit setbacks
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from habitcoach.core.dependencies import get_caller_context
from habitcoach.core.exceptions import HabitCoachException
from habitcoach.models.context import CallerContext
from habitcoach.models.setback import ResolutionStatus, UpdateSetbackRequest
from habitcoach.services.habits import setbacks as setback_service
from .errors import to_http_exception

router = APIRouter(prefix="/setbacks", tags=["setbacks"])


@router.post("/detect")
async def detect_setbacks(ctx: CallerContext = Depends(get_caller_context)):
    """Run setback detection for the caller now"""
    try:
        detected = setback_service.detect_setbacks(ctx.caller_id)
        return {"status": "success", "detected": detected, "count": len(detected)}
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Unexpected error: {str(e)}")


@router.get("")
async def list_setbacks(status: Optional[ResolutionStatus] = None,
                        ctx: CallerContext = Depends(get_caller_context)):
    """Get the caller's setbacks"""
    try:
        setbacks = setback_service.list_setbacks(ctx, status.value if status else None)
        return {"status": "success", "setbacks": setbacks}
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.patch("/{setback_id}")
async def update_setback(setback_id: str, request: UpdateSetbackRequest,
                         ctx: CallerContext = Depends(get_caller_context)):
    """Move a setback to in_progress or resolved"""
    try:
        return setback_service.update_setback_status(ctx, setback_id, request.resolution_status.value)
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Unexpected error: {str(e)}")
