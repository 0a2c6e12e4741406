"""
Pydantic models for setbacks
"""
from enum import Enum
from pydantic import BaseModel, Field


class SetbackType(str, Enum):
    MISSED_STREAK = "missed_streak"
    DECLINING_QUALITY = "declining_quality"
    LOW_CONSISTENCY = "low_consistency"


class SetbackSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ResolutionStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


# Setbacks in these states block detection of a duplicate
UNRESOLVED_STATUSES = (ResolutionStatus.OPEN.value, ResolutionStatus.IN_PROGRESS.value)


class UpdateSetbackRequest(BaseModel):
    """Request model for moving a setback through its resolution states"""
    resolution_status: ResolutionStatus = Field(..., description="New resolution status")
