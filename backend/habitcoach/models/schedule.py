"""
Pydantic models for the unified schedule
"""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional


class SourceType(str, Enum):
    """Table a schedulable item was projected from"""
    TASK = "task"
    CALENDAR_EVENT = "calendar_event"
    ASSESSMENT = "assessment"
    PATH_ENTRY = "path_entry"


# Sources the schedule may write to; the rest are read-only projections
WRITABLE_SOURCES = (SourceType.TASK, SourceType.CALENDAR_EVENT)


class UnifiedItemType(str, Enum):
    TASK = "task"
    EVENT = "event"
    BOTH = "both"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ItemStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class CreatorRole(str, Enum):
    COACH = "coach"
    CLIENT = "client"
    SYSTEM = "system"


class SchedulableItem(BaseModel):
    """One entry on the unified timeline"""
    id: str
    source_type: SourceType
    source_id: str
    user_id: str
    title: str
    description: Optional[str] = None
    date: datetime
    duration_minutes: Optional[int] = None
    priority: Priority = Priority.MEDIUM
    category: Optional[str] = None
    pillar_type: Optional[str] = None
    status: ItemStatus = ItemStatus.PENDING
    created_by_role: CreatorRole = CreatorRole.CLIENT
    visible_to_client: bool = True
    ai_generated: bool = False
    linked_item_id: Optional[str] = None
    version: Optional[int] = None
    # Derived at read time, never stored
    is_overdue: bool = False
    is_due_soon: bool = False


class CreateUnifiedItemRequest(BaseModel):
    """Request model for creating a task, a calendar event, or both"""
    title: str = Field(default="", description="Item title")
    description: Optional[str] = None
    date: Optional[datetime] = Field(None, description="When the item is due / takes place")
    type: UnifiedItemType = Field(default=UnifiedItemType.BOTH)
    priority: Optional[Priority] = None
    category: Optional[str] = None
    pillar_type: Optional[str] = None
    duration_minutes: Optional[int] = None
    ai_generated: bool = False
    visible_to_client: Optional[bool] = Field(None, description="Defaults from the creator's role")
    user_id: Optional[str] = Field(None, description="Owner; defaults to the caller")


class MoveItemRequest(BaseModel):
    """Request model for drag-and-drop moves"""
    source_type: SourceType
    new_date: datetime
    expected_version: Optional[int] = None
