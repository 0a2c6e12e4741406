"""
Pydantic models for the application
"""
from habitcoach.models.context import CallerContext, CallerRole
from habitcoach.models.habit import (
    HabitCategory,
    HabitFrequency,
    HabitDifficulty,
    HabitStatus,
    ChallengeRecommendation,
    ProgressionRules,
    CreateHabitRequest,
    HabitCompletionInput,
    LevelUpRequest
)
from habitcoach.models.setback import (
    SetbackType,
    SetbackSeverity,
    ResolutionStatus,
    UpdateSetbackRequest
)
from habitcoach.models.schedule import (
    SourceType,
    UnifiedItemType,
    Priority,
    ItemStatus,
    CreatorRole,
    SchedulableItem,
    CreateUnifiedItemRequest,
    MoveItemRequest
)

__all__ = [
    "CallerContext",
    "CallerRole",
    "HabitCategory",
    "HabitFrequency",
    "HabitDifficulty",
    "HabitStatus",
    "ChallengeRecommendation",
    "ProgressionRules",
    "CreateHabitRequest",
    "HabitCompletionInput",
    "LevelUpRequest",
    "SetbackType",
    "SetbackSeverity",
    "ResolutionStatus",
    "UpdateSetbackRequest",
    "SourceType",
    "UnifiedItemType",
    "Priority",
    "ItemStatus",
    "CreatorRole",
    "SchedulableItem",
    "CreateUnifiedItemRequest",
    "MoveItemRequest"
]
