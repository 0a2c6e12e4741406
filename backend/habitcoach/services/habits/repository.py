"""
Habits Repository - Centralized database access layer
All Supabase queries for habits, completions, and setbacks
"""
from typing import List, Dict, Any, Optional, Iterable
import logging

from habitcoach.core.dependencies import get_supabase_client
from habitcoach.core.exceptions import PersistenceError, ConcurrencyConflictError

logger = logging.getLogger(__name__)


# ============================================================================
# HABITS TABLE
# ============================================================================

def get_habit_by_id(habit_id: str) -> Optional[Dict[str, Any]]:
    """
    Get a single habit by ID

    Args:
        habit_id: The habit ID

    Returns:
        Habit dictionary or None if not found

    Raises:
        PersistenceError: If query fails
    """
    try:
        result = get_supabase_client().table("habits").select("*").eq("id", habit_id).execute()
        return result.data[0] if result.data else None
    except Exception as e:
        logger.error(f"Database error fetching habit {habit_id}: {e}")
        raise PersistenceError(f"Failed to fetch habit: {e}")


def get_habits_for_user(user_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Get a user's habits, newest first

    Args:
        user_id: Owner of the habits
        status: Optional status filter ('active', 'paused', ...)

    Returns:
        List of habit dictionaries

    Raises:
        PersistenceError: If query fails
    """
    try:
        query = get_supabase_client().table("habits").select("*").eq("user_id", user_id)
        if status:
            query = query.eq("status", status)
        result = query.order("created_at", desc=True).execute()
        return result.data
    except Exception as e:
        logger.error(f"Database error fetching habits for user {user_id}: {e}")
        raise PersistenceError(f"Failed to fetch habits: {e}")


def get_user_ids_with_active_habits() -> List[str]:
    """
    Get the distinct owners of active habits

    Raises:
        PersistenceError: If query fails
    """
    try:
        result = get_supabase_client().table("habits").select("user_id").eq("status", "active").execute()
    except Exception as e:
        logger.error(f"Database error fetching active habit owners: {e}")
        raise PersistenceError(f"Failed to fetch active habit owners: {e}")

    seen = []
    for row in result.data:
        if row["user_id"] not in seen:
            seen.append(row["user_id"])
    return seen


def create_habit(habit_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a new habit

    Args:
        habit_data: Column values for the new row

    Returns:
        Created habit data, including server-assigned fields

    Raises:
        PersistenceError: If insert fails
    """
    try:
        result = get_supabase_client().table("habits").insert(habit_data).execute()
        return result.data[0] if result.data else {}
    except Exception as e:
        logger.error(f"Database error creating habit: {e}")
        raise PersistenceError(f"Failed to create habit: {e}")


def update_habit(habit_id: str, update_data: Dict[str, Any],
                 expected_version: Optional[int] = None) -> Dict[str, Any]:
    """
    Update a habit

    Args:
        habit_id: The habit ID
        update_data: Dictionary of fields to update
        expected_version: If given, only update when the stored version matches

    Returns:
        Updated habit data

    Raises:
        ConcurrencyConflictError: If expected_version no longer matches
        PersistenceError: If update fails
    """
    try:
        query = get_supabase_client().table("habits").update(update_data).eq("id", habit_id)
        if expected_version is not None:
            query = query.eq("version", expected_version)
        result = query.execute()
    except Exception as e:
        logger.error(f"Database error updating habit {habit_id}: {e}")
        raise PersistenceError(f"Failed to update habit: {e}")

    if not result.data and expected_version is not None:
        raise ConcurrencyConflictError(
            f"Habit {habit_id} was modified concurrently (expected version {expected_version})"
        )
    return result.data[0] if result.data else {}


# ============================================================================
# HABIT_COMPLETIONS TABLE
# ============================================================================

def get_completions_for_habit(habit_id: str) -> List[Dict[str, Any]]:
    """
    Get the full completion history of a habit, oldest first

    Args:
        habit_id: The habit ID

    Returns:
        List of completion dictionaries

    Raises:
        PersistenceError: If query fails
    """
    try:
        result = get_supabase_client().table("habit_completions")\
            .select("*")\
            .eq("habit_id", habit_id)\
            .order("completed_at")\
            .execute()
        return result.data
    except Exception as e:
        logger.error(f"Database error fetching completions for habit {habit_id}: {e}")
        raise PersistenceError(f"Failed to fetch completions: {e}")


def create_completion(completion_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a new completion entry. Completions are never updated afterwards.

    Args:
        completion_data: Column values (completed_at is assigned by the server)

    Returns:
        Created completion data

    Raises:
        PersistenceError: If insert fails
    """
    try:
        result = get_supabase_client().table("habit_completions").insert(completion_data).execute()
        return result.data[0] if result.data else {}
    except Exception as e:
        logger.error(f"Database error creating completion: {e}")
        raise PersistenceError(f"Failed to create completion: {e}")


def delete_completion(completion_id: str) -> Dict[str, Any]:
    """
    Remove a completion whose habit update did not go through

    Returns:
        Deleted completion data, or {} if nothing was deleted

    Raises:
        PersistenceError: If delete fails
    """
    try:
        result = get_supabase_client().table("habit_completions").delete().eq("id", completion_id).execute()
        return result.data[0] if result.data else {}
    except Exception as e:
        logger.error(f"Database error deleting completion {completion_id}: {e}")
        raise PersistenceError(f"Failed to delete completion: {e}")


# ============================================================================
# SETBACKS TABLE
# ============================================================================

def get_setbacks_for_user(user_id: str, statuses: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
    """
    Get a user's setbacks, newest first

    Args:
        user_id: Owner of the setbacks
        statuses: Optional resolution statuses to include

    Returns:
        List of setback dictionaries

    Raises:
        PersistenceError: If query fails
    """
    try:
        query = get_supabase_client().table("setbacks").select("*").eq("user_id", user_id)
        if statuses:
            query = query.in_("resolution_status", list(statuses))
        result = query.order("detected_at", desc=True).execute()
        return result.data
    except Exception as e:
        logger.error(f"Database error fetching setbacks for user {user_id}: {e}")
        raise PersistenceError(f"Failed to fetch setbacks: {e}")


def get_setback_by_id(setback_id: str) -> Optional[Dict[str, Any]]:
    """
    Get a single setback by ID

    Raises:
        PersistenceError: If query fails
    """
    try:
        result = get_supabase_client().table("setbacks").select("*").eq("id", setback_id).execute()
        return result.data[0] if result.data else None
    except Exception as e:
        logger.error(f"Database error fetching setback {setback_id}: {e}")
        raise PersistenceError(f"Failed to fetch setback: {e}")


def create_setback(setback_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a new setback entry

    Args:
        setback_data: Column values for the new row

    Returns:
        Created setback data

    Raises:
        PersistenceError: If insert fails
    """
    try:
        result = get_supabase_client().table("setbacks").insert(setback_data).execute()
        return result.data[0] if result.data else {}
    except Exception as e:
        logger.error(f"Database error creating setback: {e}")
        raise PersistenceError(f"Failed to create setback: {e}")


def update_setback(setback_id: str, update_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Update a setback

    Raises:
        PersistenceError: If update fails
    """
    try:
        result = get_supabase_client().table("setbacks").update(update_data).eq("id", setback_id).execute()
        return result.data[0] if result.data else {}
    except Exception as e:
        logger.error(f"Database error updating setback {setback_id}: {e}")
        raise PersistenceError(f"Failed to update setback: {e}")
