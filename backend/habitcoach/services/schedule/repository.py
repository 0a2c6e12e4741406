"""
Schedule Repository - Database access for every source on the unified timeline
Tasks and calendar events are writable; assessment rounds and path entries are read-only
"""
from typing import List, Dict, Any, Optional
import logging

from habitcoach.core.dependencies import get_supabase_client
from habitcoach.core.exceptions import PersistenceError, ConcurrencyConflictError

logger = logging.getLogger(__name__)

# source_type -> (table, column holding the item's date)
SOURCE_TABLES = {
    "task": ("tasks", "deadline"),
    "calendar_event": ("calendar_events", "event_date"),
    "assessment": ("assessment_rounds", "created_at"),
    "path_entry": ("path_entries", "timestamp"),
}


def get_table(source_type: str) -> str:
    return SOURCE_TABLES[source_type][0]


def get_date_column(source_type: str) -> str:
    return SOURCE_TABLES[source_type][1]


# ============================================================================
# READS (all sources)
# ============================================================================

def get_rows_in_range(source_type: str, user_id: str, start: Optional[str] = None,
                      end: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Get a user's rows from one source, optionally bounded by date

    Args:
        source_type: 'task', 'calendar_event', 'assessment' or 'path_entry'
        user_id: Owner of the rows
        start: Optional inclusive lower bound (ISO timestamp)
        end: Optional inclusive upper bound (ISO timestamp)

    Returns:
        List of row dictionaries ordered by date

    Raises:
        PersistenceError: If query fails
    """
    table, date_column = SOURCE_TABLES[source_type]
    try:
        query = get_supabase_client().table(table).select("*").eq("user_id", user_id)
        if start:
            query = query.gte(date_column, start)
        if end:
            query = query.lte(date_column, end)
        result = query.order(date_column).execute()
        return result.data
    except Exception as e:
        logger.error(f"Database error fetching {table} for user {user_id}: {e}")
        raise PersistenceError(f"Failed to fetch {table}: {e}")


def get_row(source_type: str, row_id: str) -> Optional[Dict[str, Any]]:
    """
    Get a single row by ID

    Returns:
        Row dictionary or None if not found

    Raises:
        PersistenceError: If query fails
    """
    table = get_table(source_type)
    try:
        result = get_supabase_client().table(table).select("*").eq("id", row_id).execute()
        return result.data[0] if result.data else None
    except Exception as e:
        logger.error(f"Database error fetching {table} row {row_id}: {e}")
        raise PersistenceError(f"Failed to fetch {table} row: {e}")


# ============================================================================
# WRITES (tasks and calendar_events)
# ============================================================================

def create_row(source_type: str, row_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Insert a task or calendar event

    Returns:
        Created row, including server-assigned fields

    Raises:
        PersistenceError: If insert fails
    """
    table = get_table(source_type)
    try:
        result = get_supabase_client().table(table).insert(row_data).execute()
        return result.data[0] if result.data else {}
    except Exception as e:
        logger.error(f"Database error creating {table} row: {e}")
        raise PersistenceError(f"Failed to create {table} row: {e}")


def update_row(source_type: str, row_id: str, update_data: Dict[str, Any],
               expected_version: Optional[int] = None) -> Dict[str, Any]:
    """
    Update a task or calendar event

    Args:
        source_type: 'task' or 'calendar_event'
        row_id: The row ID
        update_data: Dictionary of fields to update
        expected_version: If given, only update when the stored version matches

    Returns:
        Updated row data

    Raises:
        ConcurrencyConflictError: If expected_version no longer matches
        PersistenceError: If update fails
    """
    table = get_table(source_type)
    try:
        query = get_supabase_client().table(table).update(update_data).eq("id", row_id)
        if expected_version is not None:
            query = query.eq("version", expected_version)
        result = query.execute()
    except Exception as e:
        logger.error(f"Database error updating {table} row {row_id}: {e}")
        raise PersistenceError(f"Failed to update {table} row: {e}")

    if not result.data and expected_version is not None:
        raise ConcurrencyConflictError(
            f"{table} row {row_id} was modified concurrently (expected version {expected_version})"
        )
    return result.data[0] if result.data else {}


def delete_row(source_type: str, row_id: str) -> Dict[str, Any]:
    """
    Hard-delete a task or calendar event. Deleting a missing row is not an error.

    Returns:
        Deleted row data, or {} if nothing was deleted

    Raises:
        PersistenceError: If delete fails
    """
    table = get_table(source_type)
    try:
        result = get_supabase_client().table(table).delete().eq("id", row_id).execute()
        return result.data[0] if result.data else {}
    except Exception as e:
        logger.error(f"Database error deleting {table} row {row_id}: {e}")
        raise PersistenceError(f"Failed to delete {table} row: {e}")


# ============================================================================
# COACH_CLIENT_ASSIGNMENTS TABLE
# ============================================================================

def get_active_coach_ids(client_id: str) -> List[str]:
    """
    Get the coaches currently assigned to a client

    Raises:
        PersistenceError: If query fails
    """
    try:
        result = get_supabase_client().table("coach_client_assignments")\
            .select("coach_id")\
            .eq("client_id", client_id)\
            .eq("is_active", True)\
            .execute()
        return [row["coach_id"] for row in result.data]
    except Exception as e:
        logger.error(f"Database error fetching coaches for client {client_id}: {e}")
        raise PersistenceError(f"Failed to fetch coach assignments: {e}")
