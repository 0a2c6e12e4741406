"""
Schedule Service - Unified timeline of tasks, calendar events, assessments and path entries
Handles projection, creation, drag-and-drop moves, completion and deletion
"""
from datetime import date, datetime, timedelta
from typing import Optional, Dict, Any, List, Callable
import logging

from habitcoach.core.constants import DUE_SOON_WINDOW_HOURS
from habitcoach.core.exceptions import (
    ConcurrencyConflictError,
    NotFoundError,
    ScheduleItemNotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from habitcoach.models.context import CallerContext, CallerRole
from habitcoach.models.schedule import (
    WRITABLE_SOURCES,
    CreateUnifiedItemRequest,
    CreatorRole,
    ItemStatus,
    Priority,
    SchedulableItem,
    SourceType,
    UnifiedItemType,
)
from habitcoach.services.notifications.service import (
    NotificationService,
    format_schedule_change_notification,
)
from habitcoach.utils.timezone import parse_timestamp, to_app_date, to_iso, utc_now
from . import repository

logger = logging.getLogger(__name__)

# Tie-break order for items sharing a timestamp
SOURCE_ORDER = [
    SourceType.TASK,
    SourceType.CALENDAR_EVENT,
    SourceType.ASSESSMENT,
    SourceType.PATH_ENTRY,
]


# ============================================================================
# PROJECTION
# ============================================================================

def make_item_id(source_type: SourceType, source_id: str) -> str:
    return f"{source_type.value}:{source_id}"


def _source_id(item_id: str, source_type: SourceType) -> str:
    """Accept either a unified item id ('task:123') or a bare source id"""
    prefix = f"{source_type.value}:"
    return item_id[len(prefix):] if item_id.startswith(prefix) else item_id


def _creator_role(value: Optional[str]) -> CreatorRole:
    if value in (CreatorRole.COACH.value, "admin", "superadmin"):
        return CreatorRole.COACH
    if value in (CreatorRole.SYSTEM.value, "ai"):
        return CreatorRole.SYSTEM
    return CreatorRole.CLIENT


def _priority(value: Optional[str]) -> Priority:
    try:
        return Priority(value)
    except ValueError:
        return Priority.MEDIUM


def _status(value: Optional[str]) -> ItemStatus:
    return ItemStatus.COMPLETED if value == ItemStatus.COMPLETED.value else ItemStatus.PENDING


def project_row(source_type: SourceType, row: Dict[str, Any]) -> Optional[SchedulableItem]:
    """
    Project one source row onto the unified item shape

    Returns:
        SchedulableItem, or None when the row has no usable date
    """
    item_date = parse_timestamp(row.get(repository.get_date_column(source_type.value)))
    if item_date is None:
        return None

    source_id = str(row["id"])
    common = {
        "id": make_item_id(source_type, source_id),
        "source_type": source_type,
        "source_id": source_id,
        "user_id": row.get("user_id"),
        "date": item_date,
        "ai_generated": bool(row.get("ai_generated")),
        "version": row.get("version"),
    }

    if source_type == SourceType.TASK:
        linked = row.get("linked_event_id")
        return SchedulableItem(
            **common,
            title=row.get("title") or "",
            description=row.get("description"),
            duration_minutes=row.get("duration"),
            priority=_priority(row.get("priority")),
            category=row.get("category"),
            pillar_type=row.get("pillar_type"),
            status=_status(row.get("status")),
            created_by_role=_creator_role(row.get("created_by_role")),
            visible_to_client=row.get("visible_to_client", True) is not False,
            linked_item_id=make_item_id(SourceType.CALENDAR_EVENT, linked) if linked else None,
        )

    if source_type == SourceType.CALENDAR_EVENT:
        linked = row.get("linked_task_id")
        return SchedulableItem(
            **common,
            title=row.get("title") or "",
            description=row.get("description"),
            duration_minutes=row.get("duration"),
            priority=_priority(row.get("priority")),
            category=row.get("category"),
            pillar_type=row.get("pillar_type"),
            status=_status(row.get("status")),
            created_by_role=_creator_role(row.get("created_by_role")),
            visible_to_client=row.get("visible_to_client", True) is not False,
            linked_item_id=make_item_id(SourceType.TASK, linked) if linked else None,
        )

    if source_type == SourceType.ASSESSMENT:
        pillar = row.get("pillar_type")
        return SchedulableItem(
            **common,
            title=f"Bedömning: {pillar}" if pillar else "Bedömning",
            description=row.get("comments"),
            category="assessment",
            pillar_type=pillar,
            status=ItemStatus.COMPLETED,
            created_by_role=CreatorRole.CLIENT,
            visible_to_client=True,
        )

    return SchedulableItem(
        **common,
        title=row.get("title") or "",
        description=row.get("details"),
        category=row.get("type"),
        pillar_type=(row.get("metadata") or {}).get("pillar_type"),
        status=_status(row.get("status")),
        created_by_role=_creator_role(row.get("created_by_role")),
        visible_to_client=row.get("visible_to_client", True) is not False,
    )


def apply_derived_flags(item: SchedulableItem, now: datetime) -> SchedulableItem:
    """Compute overdue / due-soon against the given instant"""
    pending = item.status != ItemStatus.COMPLETED
    item.is_overdue = pending and item.date < now
    item.is_due_soon = pending and now <= item.date <= now + timedelta(hours=DUE_SOON_WINDOW_HOURS)
    return item


def sort_items(items: List[SchedulableItem]) -> List[SchedulableItem]:
    """Order by date, then source type, then id"""
    return sorted(items, key=lambda i: (i.date, SOURCE_ORDER.index(i.source_type), i.id))


def _visible_to(ctx: CallerContext, item: SchedulableItem) -> bool:
    if ctx.caller_role == CallerRole.COACH:
        return True
    return item.created_by_role != CreatorRole.COACH or item.visible_to_client


# ============================================================================
# ACCESS CHECKS
# ============================================================================

def _can_act_for(ctx: CallerContext, owner_id: str) -> bool:
    if owner_id == ctx.caller_id:
        return True
    if ctx.caller_role != CallerRole.COACH:
        return False
    return ctx.caller_id in repository.get_active_coach_ids(owner_id)


def _require_writable(source_type: SourceType) -> None:
    if source_type not in WRITABLE_SOURCES:
        raise UnsupportedOperationError(f"Items from '{source_type.value}' are read-only in the schedule")


def _get_owned_row(ctx: CallerContext, source_type: SourceType, item_id: str) -> Dict[str, Any]:
    row = repository.get_row(source_type.value, _source_id(item_id, source_type))
    if not row or not _can_act_for(ctx, row.get("user_id")):
        raise ScheduleItemNotFoundError(f"{source_type.value} {item_id} not found")
    return row


# ============================================================================
# OPERATIONS
# ============================================================================

def list_items(ctx: CallerContext, user_id: Optional[str] = None, start: Optional[datetime] = None,
               end: Optional[datetime] = None, now: Optional[datetime] = None) -> List[SchedulableItem]:
    """
    Get the merged timeline for a user

    Args:
        ctx: Caller context
        user_id: Whose schedule to read (defaults to the caller)
        start: Optional inclusive lower bound
        end: Optional inclusive upper bound
        now: Instant used for overdue / due-soon (defaults to the current time)

    Returns:
        Items from all sources ordered by (date, source type, id)

    Raises:
        NotFoundError: If the caller may not read this user's schedule
        PersistenceError: If database operation fails
    """
    owner_id = user_id or ctx.caller_id
    if not _can_act_for(ctx, owner_id):
        raise NotFoundError(f"No schedule found for user {owner_id}")

    now = now or utc_now()
    start_iso = to_iso(start) if start else None
    end_iso = to_iso(end) if end else None

    items = []
    for source_type in SOURCE_ORDER:
        for row in repository.get_rows_in_range(source_type.value, owner_id, start_iso, end_iso):
            item = project_row(source_type, row)
            if item is None or not _visible_to(ctx, item):
                continue
            items.append(apply_derived_flags(item, now))

    return sort_items(items)


def create_unified_item(ctx: CallerContext, request: CreateUnifiedItemRequest) -> Dict[str, Any]:
    """
    Create a task, a calendar event, or a linked pair of both

    For 'both' the task is written first. If the event cannot be written the
    task is deleted again so no half of the pair is left behind.

    Returns:
        Dict with status, message and the created items

    Raises:
        ValidationError: If title or date is missing
        NotFoundError: If creating for a user the caller does not coach
        PersistenceError: If database operation fails
    """
    if not request.title or not request.title.strip():
        raise ValidationError("Title is required")
    if request.date is None:
        raise ValidationError("Date is required")
    if request.duration_minutes is not None and request.duration_minutes <= 0:
        raise ValidationError("duration_minutes must be positive")

    owner_id = request.user_id or ctx.caller_id
    if not _can_act_for(ctx, owner_id):
        raise NotFoundError(f"No client {owner_id} for caller {ctx.caller_id}")

    visible = request.visible_to_client if request.visible_to_client is not None else True
    common = {
        "user_id": owner_id,
        "title": request.title.strip(),
        "description": request.description,
        "priority": (request.priority or Priority.MEDIUM).value,
        "category": request.category,
        "pillar_type": request.pillar_type,
        "duration": request.duration_minutes,
        "ai_generated": request.ai_generated,
        "created_by": ctx.caller_id,
        "created_by_role": ctx.caller_role.value,
        "visible_to_client": visible,
        "status": ItemStatus.PENDING.value,
        "version": 1,
    }
    iso_date = to_iso(request.date)

    task_row = None
    event_row = None

    if request.type in (UnifiedItemType.TASK, UnifiedItemType.BOTH):
        task_row = repository.create_row(SourceType.TASK.value, {**common, "deadline": iso_date})

    if request.type in (UnifiedItemType.EVENT, UnifiedItemType.BOTH):
        event_data = {**common, "event_date": iso_date}
        if task_row:
            event_data["linked_task_id"] = task_row["id"]
        try:
            event_row = repository.create_row(SourceType.CALENDAR_EVENT.value, event_data)
        except Exception:
            if task_row:
                _compensate_task(task_row["id"])
            raise

    if task_row and event_row:
        try:
            task_row = repository.update_row(
                SourceType.TASK.value, task_row["id"], {"linked_event_id": event_row["id"]}
            ) or {**task_row, "linked_event_id": event_row["id"]}
        except Exception as e:
            logger.warning(f"[SCHEDULE] Could not link task {task_row['id']} to event {event_row['id']}: {e}")

    now = utc_now()
    items = []
    if task_row:
        items.append(project_row(SourceType.TASK, task_row))
    if event_row:
        items.append(project_row(SourceType.CALENDAR_EVENT, event_row))
    items = [apply_derived_flags(i, now) for i in items if i is not None]

    return {
        "status": "success",
        "message": f"Created {request.type.value} '{common['title']}'",
        "items": items,
    }


def _compensate_task(task_id: str) -> None:
    try:
        repository.delete_row(SourceType.TASK.value, task_id)
        logger.info(f"[SCHEDULE] Removed task {task_id} after linked event creation failed")
    except Exception as e:
        logger.error(f"[SCHEDULE] Failed to remove orphaned task {task_id}: {e}")


def get_move_recipients(ctx: CallerContext, owner_id: str) -> List[str]:
    """Users to tell about a schedule change: the owner and their coaches, minus the mover"""
    recipients = [owner_id] + repository.get_active_coach_ids(owner_id)
    unique = []
    for user_id in recipients:
        if user_id != ctx.caller_id and user_id not in unique:
            unique.append(user_id)
    return unique


def move_item(ctx: CallerContext, item_id: str, source_type: SourceType, new_date: datetime,
              expected_version: Optional[int] = None,
              notification_service: Optional[NotificationService] = None) -> Dict[str, Any]:
    """
    Move a task or calendar event to a new date

    Args:
        ctx: Caller context
        item_id: Unified item id or bare source id
        source_type: Source table of the item
        new_date: New date/time
        expected_version: If given, only move when the row's version still matches
        notification_service: Optional NotificationService for change notices

    Returns:
        Dict with moved flag, the updated item and the notified user ids

    Raises:
        UnsupportedOperationError: If the item comes from a read-only source
        ScheduleItemNotFoundError: If the item is missing or not accessible
        ConcurrencyConflictError: If expected_version no longer matches
    """
    _require_writable(source_type)
    row = _get_owned_row(ctx, source_type, item_id)

    current_version = row.get("version") or 0
    if expected_version is not None and expected_version != current_version:
        raise ConcurrencyConflictError(
            f"{source_type.value} {row['id']} is at version {current_version}, expected {expected_version}"
        )

    new_iso = to_iso(new_date)
    update_data = {
        repository.get_date_column(source_type.value): new_iso,
        "version": current_version + 1,
    }
    updated = repository.update_row(
        source_type.value, row["id"], update_data, expected_version=expected_version
    )
    if not updated:
        raise ScheduleItemNotFoundError(f"{source_type.value} {item_id} not found")

    item = apply_derived_flags(project_row(source_type, updated), utc_now())
    notified = _notify_move(ctx, updated, item, new_iso, notification_service)

    return {
        "status": "success",
        "moved": True,
        "item": item,
        "notified": notified,
    }


def _notify_move(ctx: CallerContext, row: Dict[str, Any], item: SchedulableItem, new_iso: str,
                 notification_service: Optional[NotificationService]) -> List[str]:
    """Best-effort schedule change notice; never raises"""
    try:
        recipients = get_move_recipients(ctx, row.get("user_id"))
        if not recipients:
            return []
        notification_service = notification_service or NotificationService.for_schedule_changes()
        payload = format_schedule_change_notification(item.model_dump(mode="json"), new_iso, ctx.caller_id)
        return notification_service.notify_many(recipients, payload)
    except Exception as e:
        logger.error(f"[SCHEDULE] Failed to notify about move of {item.id}: {e}")
        return []


def complete_item(ctx: CallerContext, item_id: str, source_type: SourceType) -> SchedulableItem:
    """
    Mark a task or calendar event completed. Completion is one-way.

    Raises:
        UnsupportedOperationError: If the item comes from a read-only source
        ScheduleItemNotFoundError: If the item is missing or not accessible
    """
    _require_writable(source_type)
    row = _get_owned_row(ctx, source_type, item_id)

    if row.get("status") != ItemStatus.COMPLETED.value:
        update_data = {
            "status": ItemStatus.COMPLETED.value,
            "completed_at": to_iso(utc_now()),
            "version": (row.get("version") or 0) + 1,
        }
        row = repository.update_row(source_type.value, row["id"], update_data)
        if not row:
            raise ScheduleItemNotFoundError(f"{source_type.value} {item_id} not found")

    return apply_derived_flags(project_row(source_type, row), utc_now())


def delete_unified_item(ctx: CallerContext, item_id: str, source_type: SourceType) -> bool:
    """
    Hard-delete one task or calendar event. A linked counterpart is kept.

    Returns:
        True if a row was deleted, False if it did not exist

    Raises:
        UnsupportedOperationError: If the item comes from a read-only source
        ScheduleItemNotFoundError: If the item belongs to someone the caller cannot act for
    """
    _require_writable(source_type)
    row = repository.get_row(source_type.value, _source_id(item_id, source_type))
    if not row:
        return False
    if not _can_act_for(ctx, row.get("user_id")):
        raise ScheduleItemNotFoundError(f"{source_type.value} {item_id} not found")

    repository.delete_row(source_type.value, row["id"])
    logger.info(f"[SCHEDULE] Deleted {source_type.value} {row['id']}")
    return True


# ============================================================================
# READ-SIDE AGGREGATIONS
# ============================================================================

def get_events_for_date(items: List[SchedulableItem], day: date) -> List[SchedulableItem]:
    """Items whose date falls on the given calendar day (application timezone)"""
    return [item for item in items if to_app_date(item.date) == day]


def _count(items: List[SchedulableItem], predicate: Callable[[SchedulableItem], bool]) -> int:
    return sum(1 for item in items if predicate(item))


def get_statistics(items: List[SchedulableItem]) -> Dict[str, Any]:
    """
    Counts derived from a list_items result. Nothing here is stored.
    """
    return {
        "total": len(items),
        "completed": _count(items, lambda i: i.status == ItemStatus.COMPLETED),
        "pending": _count(items, lambda i: i.status != ItemStatus.COMPLETED),
        "overdue": _count(items, lambda i: i.is_overdue),
        "due_soon": _count(items, lambda i: i.is_due_soon),
        "ai_generated": _count(items, lambda i: i.ai_generated),
        "by_source": {
            source_type.value: _count(items, lambda i, s=source_type: i.source_type == s)
            for source_type in SOURCE_ORDER
        },
    }
