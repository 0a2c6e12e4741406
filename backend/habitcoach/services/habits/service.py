"""
Habits Service - Business logic for habit formation
Handles habit lifecycle, completion recording, streaks, success rates and
neuroplasticity phases
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List, Callable
import logging

from habitcoach.core.constants import (
    CHALLENGE_DECREASE_BELOW,
    CHALLENGE_INCREASE_ABOVE,
    DEFAULT_REPETITION_GOAL,
    DEFAULT_SUCCESS_THRESHOLD,
    DIFFICULTY_ORDER,
    FREQUENCY_PERIOD_DAYS,
    HABIT_XP_BASE,
    HABIT_XP_MAX_STREAK_MULTIPLIER,
    NEUROPLASTICITY_PHASES,
    QUALITY_SCALE_FACTOR,
    SUCCESS_RATE_WINDOW_PERIODS,
)
from habitcoach.core.exceptions import (
    ConcurrencyConflictError,
    HabitNotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from habitcoach.models.context import CallerContext
from habitcoach.models.habit import (
    ChallengeRecommendation,
    CreateHabitRequest,
    HabitCompletionInput,
    HabitStatus,
)
from habitcoach.models.setback import UNRESOLVED_STATUSES
from habitcoach.utils.timezone import parse_timestamp, to_app_date, utc_now
from . import repository

logger = logging.getLogger(__name__)

SCORE_FIELDS = ("completion_quality", "mood_before", "mood_after", "difficulty_felt")


# ============================================================================
# PURE CALCULATIONS
# ============================================================================

def get_period_days(frequency: str) -> int:
    """Length of one frequency period in days (unknown frequencies count as daily)"""
    return FREQUENCY_PERIOD_DAYS.get(frequency, 1)


def get_progress_percent(habit: Dict[str, Any]) -> float:
    """Repetition progress towards the goal, capped at 100"""
    goal = habit.get("repetition_goal") or 0
    if goal <= 0:
        return 0.0
    reps = habit.get("current_repetitions") or 0
    # Multiply before dividing so band boundaries come out exact
    return min(reps * 100 / goal, 100.0)


def phase_for_progress(progress: float) -> Dict[str, Any]:
    """Map a progress percentage onto the fixed neuroplasticity phase table"""
    for lower_bound, phase, description in NEUROPLASTICITY_PHASES:
        if progress >= lower_bound:
            return {"phase": phase, "description": description, "progress": progress}
    lower_bound, phase, description = NEUROPLASTICITY_PHASES[-1]
    return {"phase": phase, "description": description, "progress": progress}


def get_neuroplasticity_phase(habit: Dict[str, Any]) -> Dict[str, Any]:
    """
    Get the neuroplasticity phase of a habit

    Args:
        habit: Habit dict with current_repetitions and repetition_goal

    Returns:
        Dict with phase, description and progress (0-100)
    """
    return phase_for_progress(get_progress_percent(habit))


def calculate_new_streak(habit: Dict[str, Any], previous_completion: Optional[Dict[str, Any]],
                         completed_at: datetime) -> int:
    """
    Streak after a new completion

    A completion within one frequency period (in calendar days) of the previous
    one extends the streak; a later one starts a new streak. Repeats on the same
    day keep the current streak.
    """
    current = habit.get("streak_current") or 0
    if previous_completion is None:
        return 1

    previous_at = parse_timestamp(previous_completion.get("completed_at"))
    if previous_at is None:
        return 1

    days_between = (to_app_date(completed_at) - to_app_date(previous_at)).days
    if days_between <= 0:
        return max(current, 1)
    if days_between <= get_period_days(habit.get("frequency")):
        return current + 1
    return 1


def calculate_success_rate(completions: List[Dict[str, Any]], frequency: str,
                           now: Optional[datetime] = None) -> float:
    """
    Success rate (0-100) recomputed from the full completion history

    Uses the mean completion quality of completions inside the rolling window
    (SUCCESS_RATE_WINDOW_PERIODS frequency periods). Falls back to the
    all-time mean when no completion can be placed inside the window.
    """
    if not completions:
        return 0.0

    now = now or utc_now()
    window_start = now - timedelta(days=get_period_days(frequency) * SUCCESS_RATE_WINDOW_PERIODS)

    windowed = []
    for completion in completions:
        completed_at = parse_timestamp(completion.get("completed_at"))
        if completed_at is not None and completed_at >= window_start:
            windowed.append(completion["completion_quality"])

    qualities = windowed or [c["completion_quality"] for c in completions]
    mean_quality = sum(qualities) / len(qualities)
    return round(mean_quality * QUALITY_SCALE_FACTOR, 2)


def difficulty_index(difficulty: Optional[str]) -> int:
    try:
        return DIFFICULTY_ORDER.index(difficulty)
    except ValueError:
        return 0


def _max_difficulty(habit: Dict[str, Any]) -> str:
    rules = habit.get("progression_rules") or {}
    return rules.get("max_difficulty") or DIFFICULTY_ORDER[-1]


def is_ready_to_advance(habit: Dict[str, Any]) -> bool:
    """
    Whether a habit qualifies for the next difficulty level.

    This only signals readiness. The difficulty changes when the user confirms
    through level_up_habit.
    """
    rules = habit.get("progression_rules") or {}
    threshold = rules.get("success_threshold", DEFAULT_SUCCESS_THRESHOLD) * QUALITY_SCALE_FACTOR
    below_cap = difficulty_index(habit.get("difficulty")) < difficulty_index(_max_difficulty(habit))
    return (habit.get("success_rate") or 0) >= threshold and below_cap


def get_challenge_recommendation(habit: Dict[str, Any]) -> str:
    """Suggest whether to raise, keep or lower the challenge"""
    success_rate = habit.get("success_rate") or 0
    difficulty = habit.get("difficulty")

    if success_rate > CHALLENGE_INCREASE_ABOVE and difficulty != _max_difficulty(habit):
        return ChallengeRecommendation.INCREASE.value
    if success_rate < CHALLENGE_DECREASE_BELOW and difficulty != DIFFICULTY_ORDER[0]:
        return ChallengeRecommendation.DECREASE.value
    return ChallengeRecommendation.MAINTAIN.value


def calculate_habit_xp(habit: Dict[str, Any], completion_quality: int) -> int:
    """XP for one completion, scaled by difficulty, streak and quality"""
    base = HABIT_XP_BASE.get(habit.get("difficulty"), HABIT_XP_BASE["micro"])
    streak_multiplier = min(1 + (habit.get("streak_current") or 0) * 0.1, HABIT_XP_MAX_STREAK_MULTIPLIER)
    quality_multiplier = completion_quality / QUALITY_SCALE_FACTOR
    return round(base * streak_multiplier * quality_multiplier)


# ============================================================================
# VALIDATION
# ============================================================================

def _validate_create_request(request: CreateHabitRequest) -> int:
    """Validate a create request and return the effective repetition goal"""
    if not request.title or not request.title.strip():
        raise ValidationError("Habit title is required")
    if not request.initial_commitment or not request.initial_commitment.strip():
        raise ValidationError("Initial commitment is required")

    goal = request.repetition_goal
    if goal is None:
        goal = DEFAULT_REPETITION_GOAL
    if isinstance(goal, bool) or not isinstance(goal, int) or goal <= 0:
        raise ValidationError(f"repetition_goal must be a positive integer, got {goal!r}")

    if not 0 <= request.consistency_threshold <= 100:
        raise ValidationError("consistency_threshold must be between 0 and 100")

    rules = request.progression_rules
    if not 1 <= rules.success_threshold <= 10:
        raise ValidationError("progression_rules.success_threshold must be between 1 and 10")
    if rules.increase_factor <= 0:
        raise ValidationError("progression_rules.increase_factor must be positive")

    return goal


def _validate_completion(completion: HabitCompletionInput) -> None:
    for field in SCORE_FIELDS:
        value = getattr(completion, field)
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 10:
            raise ValidationError(f"{field} must be an integer between 1 and 10, got {value!r}")


def _get_owned_habit(ctx: CallerContext, habit_id: str, require_active: bool = False) -> Dict[str, Any]:
    habit = repository.get_habit_by_id(habit_id)
    if not habit or habit.get("user_id") != ctx.caller_id:
        raise HabitNotFoundError(f"Habit {habit_id} not found")
    if require_active and habit.get("status") != HabitStatus.ACTIVE.value:
        raise HabitNotFoundError(f"No active habit with id {habit_id}")
    return habit


def _with_phase(habit: Dict[str, Any]) -> Dict[str, Any]:
    return {
        **habit,
        "phase": get_neuroplasticity_phase(habit),
        "ready_to_advance": is_ready_to_advance(habit),
        "recommendation": get_challenge_recommendation(habit),
    }


# ============================================================================
# OPERATIONS
# ============================================================================

def create_habit(ctx: CallerContext, request: CreateHabitRequest) -> Dict[str, Any]:
    """
    Create a new habit for the caller

    Args:
        ctx: Caller context (the caller becomes the owner)
        request: Validated request body

    Returns:
        Dict with status, message, and created habit data

    Raises:
        ValidationError: If required fields are missing or out of range
        PersistenceError: If database operation fails
    """
    goal = _validate_create_request(request)

    habit_data = {
        "user_id": ctx.caller_id,
        "title": request.title.strip(),
        "description": request.description,
        "category": request.category.value,
        "frequency": request.frequency.value,
        "difficulty": request.difficulty.value,
        "initial_commitment": request.initial_commitment,
        "current_commitment": request.current_commitment or request.initial_commitment,
        "repetition_goal": goal,
        "current_repetitions": 0,
        "consistency_threshold": request.consistency_threshold,
        "context_cues": [cue for cue in request.context_cues if cue.strip()],
        "reward_mechanism": request.reward_mechanism,
        "preferred_time_of_day": request.preferred_time_of_day,
        "progression_rules": request.progression_rules.model_dump(mode="json"),
        "streak_current": 0,
        "streak_longest": 0,
        "success_rate": 0,
        "status": HabitStatus.ACTIVE.value,
        "version": 1,
    }

    habit = repository.create_habit(habit_data)
    logger.info(f"Habit created for user {ctx.caller_id}: {habit_data['title']}")

    return {
        "status": "success",
        "message": f"Habit '{habit_data['title']}' created",
        "data": habit,
    }


def record_completion(ctx: CallerContext, habit_id: str, completion: HabitCompletionInput,
                      run_in_background: Optional[Callable[..., Any]] = None) -> Dict[str, Any]:
    """
    Record one completion of an active habit

    Persists the completion, bumps the repetition count, recomputes streak and
    success rate, and signals whether the habit is ready for the next level.
    Setback detection runs afterwards and can never fail the completion.

    Args:
        ctx: Caller context
        habit_id: The habit ID
        completion: Scores and notes for this completion
        run_in_background: Optional scheduler such as BackgroundTasks.add_task;
                           setback detection runs inline when omitted

    Returns:
        Dict with the updated habit, the completion row, phase, readiness and XP

    Raises:
        ValidationError: If a score is outside 1-10
        HabitNotFoundError: If the habit is missing, not the caller's, or not active
        ConcurrencyConflictError: If expected_version no longer matches (no completion is kept)
        PersistenceError: If database operation fails
    """
    _validate_completion(completion)
    habit = _get_owned_habit(ctx, habit_id, require_active=True)

    current_version = habit.get("version") or 0
    if completion.expected_version is not None and completion.expected_version != current_version:
        raise ConcurrencyConflictError(
            f"Habit {habit_id} is at version {current_version}, expected {completion.expected_version}"
        )

    history = repository.get_completions_for_habit(habit_id)

    completion_row = repository.create_completion({
        "habit_id": habit_id,
        "user_id": ctx.caller_id,
        "completion_quality": completion.completion_quality,
        "mood_before": completion.mood_before,
        "mood_after": completion.mood_after,
        "difficulty_felt": completion.difficulty_felt,
        "context_notes": completion.context_notes,
        "environmental_factors": [f for f in completion.environmental_factors if f.strip()],
    })
    completed_at = parse_timestamp(completion_row.get("completed_at")) or utc_now()

    previous = history[-1] if history else None
    streak_current = calculate_new_streak(habit, previous, completed_at)
    success_rate = calculate_success_rate(history + [completion_row], habit.get("frequency"), now=completed_at)

    update_data = {
        "current_repetitions": (habit.get("current_repetitions") or 0) + 1,
        "streak_current": streak_current,
        "streak_longest": max(habit.get("streak_longest") or 0, streak_current),
        "success_rate": success_rate,
        "version": current_version + 1,
    }
    try:
        updated = repository.update_habit(
            habit_id,
            update_data,
            expected_version=current_version if completion.expected_version is not None else None
        )
        if not updated:
            raise HabitNotFoundError(f"Habit {habit_id} disappeared while recording a completion")
    except (ConcurrencyConflictError, HabitNotFoundError):
        _compensate_completion(completion_row.get("id"))
        raise

    ready = is_ready_to_advance(updated)
    if ready:
        logger.info(f"Habit {habit_id} is ready to advance from '{updated.get('difficulty')}'")

    # Import here to avoid circular dependency
    from .setbacks import detect_setbacks_quietly

    if run_in_background is not None:
        run_in_background(detect_setbacks_quietly, ctx.caller_id)
    else:
        detect_setbacks_quietly(ctx.caller_id)

    return {
        "status": "success",
        "habit": updated,
        "completion": completion_row,
        "phase": get_neuroplasticity_phase(updated),
        "ready_to_advance": ready,
        "recommendation": get_challenge_recommendation(updated),
        "xp_awarded": calculate_habit_xp(updated, completion.completion_quality),
    }


def _compensate_completion(completion_id: Optional[str]) -> None:
    if not completion_id:
        return
    try:
        repository.delete_completion(completion_id)
        logger.info(f"Removed completion {completion_id} after the habit update failed")
    except Exception as e:
        logger.error(f"Failed to remove orphaned completion {completion_id}: {e}")


def _update_existing_habit(habit_id: str, update_data: Dict[str, Any]) -> Dict[str, Any]:
    updated = repository.update_habit(habit_id, update_data)
    if not updated:
        raise HabitNotFoundError(f"Habit {habit_id} not found")
    return updated


def reset_habit(ctx: CallerContext, habit_id: str) -> Dict[str, Any]:
    """
    Retake a habit from zero repetitions. Completion history is kept.

    Raises:
        HabitNotFoundError: If the habit is missing or not the caller's
        PersistenceError: If database operation fails
    """
    habit = _get_owned_habit(ctx, habit_id)

    update_data = {
        "current_repetitions": 0,
        "streak_current": 0,
        "version": (habit.get("version") or 0) + 1,
    }
    updated = _update_existing_habit(habit_id, update_data)

    return {
        "status": "success",
        "message": f"Habit '{habit['title']}' reset",
        "data": updated,
    }


def level_up_habit(ctx: CallerContext, habit_id: str, new_commitment: Optional[str] = None) -> Dict[str, Any]:
    """
    Advance a habit one step on the difficulty scale after user confirmation

    Args:
        ctx: Caller context
        habit_id: The habit ID
        new_commitment: Optional commitment text for the new level

    Returns:
        Dict with status, message, and updated habit data

    Raises:
        HabitNotFoundError: If the habit is missing, not the caller's, or not active
        UnsupportedOperationError: If the habit is already at its max difficulty
    """
    habit = _get_owned_habit(ctx, habit_id, require_active=True)

    current = difficulty_index(habit.get("difficulty"))
    cap = difficulty_index(_max_difficulty(habit))
    if current >= cap:
        raise UnsupportedOperationError(
            f"Habit '{habit['title']}' is already at its maximum difficulty '{habit.get('difficulty')}'"
        )

    next_difficulty = DIFFICULTY_ORDER[current + 1]
    update_data = {
        "difficulty": next_difficulty,
        "current_commitment": new_commitment or habit.get("current_commitment"),
        "version": (habit.get("version") or 0) + 1,
    }
    updated = _update_existing_habit(habit_id, update_data)
    logger.info(f"Habit {habit_id} advanced to '{next_difficulty}'")

    return {
        "status": "success",
        "message": f"Habit '{habit['title']}' advanced to {next_difficulty}",
        "data": _with_phase(updated),
    }


def get_habit(ctx: CallerContext, habit_id: str) -> Dict[str, Any]:
    """Get one of the caller's habits with its phase and recommendation"""
    return _with_phase(_get_owned_habit(ctx, habit_id))


def list_habits(ctx: CallerContext, status: Optional[str] = None) -> Dict[str, Any]:
    """
    Get the caller's habits, optionally filtered by status

    Returns:
        Dict with status and list of habits (each with phase info)
    """
    habits = repository.get_habits_for_user(ctx.caller_id, status=status)
    return {
        "status": "success",
        "habits": [_with_phase(h) for h in habits],
    }


def list_completions(ctx: CallerContext, habit_id: str) -> List[Dict[str, Any]]:
    """Get the completion history of one of the caller's habits"""
    _get_owned_habit(ctx, habit_id)
    return repository.get_completions_for_habit(habit_id)


def get_habit_analytics(ctx: CallerContext) -> Dict[str, Any]:
    """
    Summary numbers across the caller's habits

    Returns:
        Dict with active/completed counts, total streak, average success rate,
        open setback count and habits ready to advance
    """
    habits = repository.get_habits_for_user(ctx.caller_id)
    active = [h for h in habits if h.get("status") == HabitStatus.ACTIVE.value]
    completed = [h for h in habits if h.get("status") == HabitStatus.COMPLETED.value]
    open_setbacks = repository.get_setbacks_for_user(ctx.caller_id, statuses=UNRESOLVED_STATUSES)

    average_success = (
        round(sum(h.get("success_rate") or 0 for h in active) / len(active), 2) if active else 0.0
    )

    return {
        "status": "success",
        "total_habits": len(habits),
        "active_habits": len(active),
        "completed_habits": len(completed),
        "total_streak": sum(h.get("streak_current") or 0 for h in active),
        "average_success_rate": average_success,
        "open_setbacks": len(open_setbacks),
        "ready_to_advance": [h["id"] for h in active if is_ready_to_advance(h)],
    }
