"""
Setback detection and management
Flags missed streaks, declining quality and low consistency on active habits
"""
from datetime import datetime
from typing import Optional, Dict, Any, List
import logging

from habitcoach.core.constants import (
    DECLINING_QUALITY_DROP,
    DECLINING_QUALITY_RECENT_COUNT,
    LOW_CONSISTENCY_HIGH_RATIO,
    MISSED_STREAK_HIGH_FACTOR,
    MISSED_STREAK_MEDIUM_FACTOR,
)
from habitcoach.core.exceptions import SetbackNotFoundError
from habitcoach.models.context import CallerContext
from habitcoach.models.setback import (
    UNRESOLVED_STATUSES,
    ResolutionStatus,
    SetbackSeverity,
    SetbackType,
)
from habitcoach.services.notifications.service import NotificationService
from habitcoach.utils.timezone import parse_timestamp, to_iso, utc_now
from . import repository
from .service import get_period_days

logger = logging.getLogger(__name__)


def _days_since(reference: datetime, now: datetime) -> int:
    return int((now - reference).total_seconds() // 86400)


def _mean(values: List[float]) -> float:
    return sum(values) / len(values)


def evaluate_habit_setbacks(habit: Dict[str, Any], completions: List[Dict[str, Any]],
                            now: datetime) -> List[Dict[str, Any]]:
    """
    Evaluate the setback rules for one habit

    Args:
        habit: Active habit dict
        completions: The habit's completions, oldest first
        now: Evaluation instant

    Returns:
        List of candidate setbacks (setback_type, severity, context), not yet persisted
    """
    candidates = []
    period = get_period_days(habit.get("frequency"))
    base_context = {
        "habit_title": habit.get("title"),
        "previous_streak": habit.get("streak_current") or 0,
        "success_rate": habit.get("success_rate") or 0,
    }

    # Missed streak, measured from the last completion or from creation
    timestamps = [parse_timestamp(c.get("completed_at")) for c in completions]
    timestamps = [t for t in timestamps if t is not None]
    reference = max(timestamps) if timestamps else parse_timestamp(habit.get("created_at"))
    if reference is not None:
        days_missed = _days_since(reference, now)
        severity = None
        if days_missed > period * MISSED_STREAK_HIGH_FACTOR:
            severity = SetbackSeverity.HIGH
        elif days_missed > period * MISSED_STREAK_MEDIUM_FACTOR:
            severity = SetbackSeverity.MEDIUM
        if severity is not None:
            candidates.append({
                "setback_type": SetbackType.MISSED_STREAK.value,
                "severity": severity.value,
                "context": {**base_context, "days_missed": days_missed},
            })

    # Declining quality: recent mean well below the all-time mean
    qualities = [c["completion_quality"] for c in completions]
    if len(qualities) > DECLINING_QUALITY_RECENT_COUNT:
        recent_mean = _mean(qualities[-DECLINING_QUALITY_RECENT_COUNT:])
        overall_mean = _mean(qualities)
        if overall_mean - recent_mean > DECLINING_QUALITY_DROP:
            candidates.append({
                "setback_type": SetbackType.DECLINING_QUALITY.value,
                "severity": SetbackSeverity.LOW.value,
                "context": {
                    **base_context,
                    "recent_mean": round(recent_mean, 2),
                    "overall_mean": round(overall_mean, 2),
                },
            })

    # Low consistency only applies once there is something to measure
    threshold = habit.get("consistency_threshold") or 0
    success_rate = habit.get("success_rate") or 0
    if completions and success_rate < threshold:
        severity = (
            SetbackSeverity.HIGH if success_rate < threshold * LOW_CONSISTENCY_HIGH_RATIO
            else SetbackSeverity.MEDIUM
        )
        candidates.append({
            "setback_type": SetbackType.LOW_CONSISTENCY.value,
            "severity": severity.value,
            "context": {**base_context, "consistency_threshold": threshold},
        })

    return candidates


def detect_setbacks(user_id: str, now: Optional[datetime] = None,
                    notification_service: Optional[NotificationService] = None) -> List[Dict[str, Any]]:
    """
    Detect and persist new setbacks across a user's active habits

    An unresolved setback of the same type for the same habit is left as is,
    so repeated runs do not create duplicates.

    Args:
        user_id: Owner of the habits
        now: Evaluation instant (defaults to the current time)
        notification_service: Optional NotificationService; defaults to the
                              recovery-planner edge function

    Returns:
        List of newly created setback rows
    """
    now = now or utc_now()

    habits = repository.get_habits_for_user(user_id, status="active")
    if not habits:
        return []

    existing = repository.get_setbacks_for_user(user_id, statuses=UNRESOLVED_STATUSES)
    open_keys = {(s.get("habit_id"), s.get("setback_type")) for s in existing}

    detected = []
    habits_by_id = {}
    for habit in habits:
        habits_by_id[habit["id"]] = habit
        completions = repository.get_completions_for_habit(habit["id"])

        for candidate in evaluate_habit_setbacks(habit, completions, now):
            key = (habit["id"], candidate["setback_type"])
            if key in open_keys:
                continue

            setback = repository.create_setback({
                "user_id": user_id,
                "habit_id": habit["id"],
                "setback_type": candidate["setback_type"],
                "severity": candidate["severity"],
                "detected_at": to_iso(now),
                "resolution_status": ResolutionStatus.OPEN.value,
                "context": candidate["context"],
            })
            open_keys.add(key)
            detected.append(setback)
            logger.info(
                f"[SETBACKS] {candidate['setback_type']} ({candidate['severity']}) "
                f"detected for habit_id={habit['id']}"
            )

    if detected:
        notification_service = notification_service or NotificationService.for_setbacks()
        for setback in detected:
            notification_service.send_setback_notification(
                user_id, setback, habits_by_id.get(setback.get("habit_id"))
            )

    return detected


def detect_setbacks_quietly(user_id: str) -> List[Dict[str, Any]]:
    """
    Run setback detection as a side effect; failures are logged, never raised
    """
    try:
        return detect_setbacks(user_id)
    except Exception as e:
        logger.error(f"[SETBACKS] Detection failed for user {user_id}: {e}", exc_info=True)
        return []


def detect_setbacks_for_all_users() -> Dict[str, Any]:
    """
    Run setback detection for every user with active habits
    Called daily by the scheduler

    Returns:
        Dict with users_checked, setbacks_detected and failed user ids
    """
    user_ids = repository.get_user_ids_with_active_habits()
    detected_count = 0
    failed = []

    for user_id in user_ids:
        try:
            detected_count += len(detect_setbacks(user_id))
        except Exception as e:
            logger.error(f"[SETBACKS] Failed to check user {user_id}: {e}")
            failed.append(user_id)

    if detected_count > 0:
        logger.info(f"[SETBACKS] Detected {detected_count} new setback(s) across {len(user_ids)} user(s)")
    else:
        logger.info("[SETBACKS] No new setbacks found")

    return {
        "users_checked": len(user_ids),
        "setbacks_detected": detected_count,
        "failed_users": failed,
    }


def list_setbacks(ctx: CallerContext, status: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Get the caller's setbacks

    Args:
        ctx: Caller context
        status: Optional resolution status filter
    """
    statuses = [status] if status else None
    return repository.get_setbacks_for_user(ctx.caller_id, statuses=statuses)


def update_setback_status(ctx: CallerContext, setback_id: str, resolution_status: str) -> Dict[str, Any]:
    """
    Move a setback through open -> in_progress -> resolved

    Raises:
        SetbackNotFoundError: If the setback is missing or not the caller's
    """
    setback = repository.get_setback_by_id(setback_id)
    if not setback or setback.get("user_id") != ctx.caller_id:
        raise SetbackNotFoundError(f"Setback {setback_id} not found")

    update_data = {"resolution_status": resolution_status}
    if resolution_status == ResolutionStatus.RESOLVED.value:
        update_data["resolved_at"] = to_iso(utc_now())

    updated = repository.update_setback(setback_id, update_data)
    if not updated:
        raise SetbackNotFoundError(f"Setback {setback_id} not found")
    return {
        "status": "success",
        "data": updated,
    }
