"""
Schedule Routes - Endpoints for the unified calendar/task timeline
"""
from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from habitcoach.core.dependencies import get_caller_context
from habitcoach.core.exceptions import HabitCoachException
from habitcoach.models.context import CallerContext
from habitcoach.models.schedule import CreateUnifiedItemRequest, MoveItemRequest, SourceType
from habitcoach.services import schedule as schedule_service
from habitcoach.utils.timezone import get_app_tz
from .errors import to_http_exception

router = APIRouter(prefix="/schedule", tags=["schedule"])


@router.get("")
async def list_items(user_id: Optional[str] = None, start: Optional[datetime] = None,
                     end: Optional[datetime] = None, ctx: CallerContext = Depends(get_caller_context)):
    """Get the merged timeline, ordered by date"""
    try:
        items = schedule_service.list_items(ctx, user_id=user_id, start=start, end=end)
        return {"status": "success", "items": items}
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/statistics")
async def get_statistics(user_id: Optional[str] = None, start: Optional[datetime] = None,
                         end: Optional[datetime] = None, ctx: CallerContext = Depends(get_caller_context)):
    """Counts of total, completed, overdue, due-soon and AI-generated items"""
    try:
        items = schedule_service.list_items(ctx, user_id=user_id, start=start, end=end)
        return {"status": "success", "statistics": schedule_service.get_statistics(items)}
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/day")
async def get_events_for_date(day: date, user_id: Optional[str] = None,
                              ctx: CallerContext = Depends(get_caller_context)):
    """Get the items of one calendar day"""
    try:
        tz = get_app_tz()
        start = tz.localize(datetime.combine(day, time.min))
        end = start + timedelta(days=1)
        items = schedule_service.list_items(ctx, user_id=user_id, start=start, end=end)
        return {
            "status": "success",
            "date": str(day),
            "items": schedule_service.get_events_for_date(items, day),
        }
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/items")
async def create_item(request: CreateUnifiedItemRequest, ctx: CallerContext = Depends(get_caller_context)):
    """Create a task, a calendar event, or both"""
    try:
        return schedule_service.create_unified_item(ctx, request)
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Unexpected error: {str(e)}")


@router.post("/items/{item_id}/move")
async def move_item(item_id: str, request: MoveItemRequest, ctx: CallerContext = Depends(get_caller_context)):
    """Move a task or calendar event to a new date"""
    try:
        return schedule_service.move_item(
            ctx,
            item_id,
            request.source_type,
            request.new_date,
            expected_version=request.expected_version
        )
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Unexpected error: {str(e)}")


@router.post("/items/{item_id}/complete")
async def complete_item(item_id: str, source_type: SourceType, ctx: CallerContext = Depends(get_caller_context)):
    """Mark a task or calendar event completed"""
    try:
        item = schedule_service.complete_item(ctx, item_id, source_type)
        return {"status": "success", "item": item}
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Unexpected error: {str(e)}")


@router.delete("/items/{item_id}")
async def delete_item(item_id: str, source_type: SourceType, ctx: CallerContext = Depends(get_caller_context)):
    """Hard-delete a task or calendar event"""
    try:
        deleted = schedule_service.delete_unified_item(ctx, item_id, source_type)
        return {"status": "success", "deleted": deleted}
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Unexpected error: {str(e)}")
