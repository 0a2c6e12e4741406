"""
Habit Routes - Endpoints for habit formation
"""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from habitcoach.core.dependencies import get_caller_context
from habitcoach.core.exceptions import HabitCoachException
from habitcoach.models.context import CallerContext
from habitcoach.models.habit import (
    CreateHabitRequest,
    HabitCompletionInput,
    HabitStatus,
    LevelUpRequest
)
from habitcoach.services import habits as habit_service
from .errors import to_http_exception

router = APIRouter(prefix="/habits", tags=["habits"])


@router.post("")
async def create_habit(request: CreateHabitRequest, ctx: CallerContext = Depends(get_caller_context)):
    """Create a new habit"""
    try:
        return habit_service.create_habit(ctx, request)
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Unexpected error: {str(e)}")


@router.get("")
async def list_habits(status: Optional[HabitStatus] = None, ctx: CallerContext = Depends(get_caller_context)):
    """Get the caller's habits with phase information"""
    try:
        return habit_service.list_habits(ctx, status.value if status else None)
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/analytics")
async def get_habit_analytics(ctx: CallerContext = Depends(get_caller_context)):
    """Summary numbers across the caller's habits"""
    try:
        return habit_service.get_habit_analytics(ctx)
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{habit_id}")
async def get_habit(habit_id: str, ctx: CallerContext = Depends(get_caller_context)):
    """Get one habit"""
    try:
        return habit_service.get_habit(ctx, habit_id)
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{habit_id}/phase")
async def get_habit_phase(habit_id: str, ctx: CallerContext = Depends(get_caller_context)):
    """Get the neuroplasticity phase of a habit"""
    try:
        habit = habit_service.get_habit(ctx, habit_id)
        return habit["phase"]
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{habit_id}/completions")
async def record_completion(habit_id: str, request: HabitCompletionInput, background_tasks: BackgroundTasks,
                            ctx: CallerContext = Depends(get_caller_context)):
    """Record a completion; setback detection runs after the response is sent"""
    try:
        return habit_service.record_completion(ctx, habit_id, request, run_in_background=background_tasks.add_task)
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Unexpected error: {str(e)}")


@router.get("/{habit_id}/completions")
async def list_completions(habit_id: str, ctx: CallerContext = Depends(get_caller_context)):
    """Get the completion history of a habit"""
    try:
        return {"status": "success", "completions": habit_service.list_completions(ctx, habit_id)}
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{habit_id}/reset")
async def reset_habit(habit_id: str, ctx: CallerContext = Depends(get_caller_context)):
    """Restart a habit from zero repetitions, keeping its history"""
    try:
        return habit_service.reset_habit(ctx, habit_id)
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Unexpected error: {str(e)}")


@router.post("/{habit_id}/level-up")
async def level_up_habit(habit_id: str, request: LevelUpRequest, ctx: CallerContext = Depends(get_caller_context)):
    """Advance a habit one difficulty step after the user confirmed"""
    try:
        return habit_service.level_up_habit(ctx, habit_id, request.new_commitment)
    except HabitCoachException as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Unexpected error: {str(e)}")
