"""
Pydantic models for habits
"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List

from habitcoach.core.constants import (
    DEFAULT_CONSISTENCY_THRESHOLD,
    DEFAULT_INCREASE_FACTOR,
    DEFAULT_SUCCESS_THRESHOLD,
)


class HabitCategory(str, Enum):
    """Development pillar a habit belongs to"""
    SELF_CARE = "self_care"
    SKILLS = "skills"
    TALENT = "talent"
    BRAND = "brand"
    ECONOMY = "economy"
    META = "meta"


class HabitFrequency(str, Enum):
    """How often a habit is expected to be performed"""
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class HabitDifficulty(str, Enum):
    """Ordered difficulty scale, micro first"""
    MICRO = "micro"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    CHALLENGING = "challenging"


class HabitStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class ChallengeRecommendation(str, Enum):
    INCREASE = "increase"
    MAINTAIN = "maintain"
    DECREASE = "decrease"


class ProgressionRules(BaseModel):
    """Rules governing when a habit is ready for the next difficulty level"""
    success_threshold: int = Field(
        default=DEFAULT_SUCCESS_THRESHOLD,
        description="Average completion quality (1-10) needed before advancing"
    )
    increase_factor: float = Field(
        default=DEFAULT_INCREASE_FACTOR,
        description="Suggested growth of the commitment when advancing"
    )
    max_difficulty: HabitDifficulty = Field(
        default=HabitDifficulty.CHALLENGING,
        description="Highest difficulty this habit may be advanced to"
    )


class CreateHabitRequest(BaseModel):
    """Request model for creating a new habit"""
    title: str = Field(..., description="Habit title")
    description: str = Field(default="", description="Free-text description")
    category: HabitCategory
    frequency: HabitFrequency
    difficulty: HabitDifficulty
    initial_commitment: str = Field(..., description="Minimal action promised at the starting level")
    current_commitment: Optional[str] = Field(None, description="Defaults to initial_commitment")
    repetition_goal: Optional[int] = Field(None, description="Repetitions until the habit counts as formed")
    consistency_threshold: float = Field(
        default=DEFAULT_CONSISTENCY_THRESHOLD,
        description="Success rate (0-100) below which the habit is at risk"
    )
    context_cues: List[str] = Field(default_factory=list, description="Ordered trigger cues")
    reward_mechanism: str = Field(default="")
    preferred_time_of_day: Optional[str] = Field(None, description="e.g. 'morning'")
    progression_rules: ProgressionRules = Field(default_factory=ProgressionRules)


class HabitCompletionInput(BaseModel):
    """One logged performance of a habit. Scores are on a 1-10 scale."""
    completion_quality: int = Field(..., description="How well the habit was performed (1-10)")
    mood_before: int = Field(..., description="Mood before (1-10)")
    mood_after: int = Field(..., description="Mood after (1-10)")
    difficulty_felt: int = Field(..., description="Perceived difficulty (1-10)")
    context_notes: str = Field(default="")
    environmental_factors: List[str] = Field(default_factory=list)
    expected_version: Optional[int] = Field(
        None,
        description="If set, the habit update only applies when its version still matches"
    )


class LevelUpRequest(BaseModel):
    """User confirmation to advance a habit one difficulty step"""
    new_commitment: Optional[str] = Field(None, description="Commitment at the new level")
