"""
Builders shared by the service and route tests
"""
from datetime import datetime, timedelta
from typing import Any, Dict

from habitcoach.models.habit import CreateHabitRequest, HabitCompletionInput
from habitcoach.utils.timezone import to_iso


def make_habit_request(**overrides) -> CreateHabitRequest:
    data = {
        "title": "Morning stretch",
        "category": "self_care",
        "frequency": "daily",
        "difficulty": "micro",
        "initial_commitment": "Stretch for two minutes",
    }
    data.update(overrides)
    return CreateHabitRequest(**data)


def make_completion(quality: int = 8, **overrides) -> HabitCompletionInput:
    data = {
        "completion_quality": quality,
        "mood_before": 5,
        "mood_after": 7,
        "difficulty_felt": 4,
    }
    data.update(overrides)
    return HabitCompletionInput(**data)


def seed_habit(db, user_id: str = "client-1", **overrides) -> Dict[str, Any]:
    """Insert an active daily habit row directly"""
    row = {
        "user_id": user_id,
        "title": "Evening walk",
        "category": "self_care",
        "frequency": "daily",
        "difficulty": "micro",
        "initial_commitment": "Walk around the block",
        "current_commitment": "Walk around the block",
        "repetition_goal": 66,
        "current_repetitions": 0,
        "consistency_threshold": 80,
        "progression_rules": {"success_threshold": 7, "increase_factor": 1.2, "max_difficulty": "challenging"},
        "streak_current": 0,
        "streak_longest": 0,
        "success_rate": 90,
        "status": "active",
        "version": 1,
    }
    row.update(overrides)
    return db.seed("habits", row)


def seed_completion(db, habit: Dict[str, Any], completed_at: datetime, quality: int = 8) -> Dict[str, Any]:
    return db.seed("habit_completions", {
        "habit_id": habit["id"],
        "user_id": habit["user_id"],
        "completion_quality": quality,
        "mood_before": 5,
        "mood_after": 6,
        "difficulty_felt": 5,
        "completed_at": to_iso(completed_at),
    })


def seed_task(db, deadline: datetime, user_id: str = "client-1", **overrides) -> Dict[str, Any]:
    row = {
        "user_id": user_id,
        "title": "Write weekly reflection",
        "priority": "medium",
        "status": "pending",
        "created_by": user_id,
        "created_by_role": "client",
        "visible_to_client": True,
        "ai_generated": False,
        "deadline": to_iso(deadline),
        "version": 1,
    }
    row.update(overrides)
    return db.seed("tasks", row)


def seed_event(db, event_date: datetime, user_id: str = "client-1", **overrides) -> Dict[str, Any]:
    row = {
        "user_id": user_id,
        "title": "Coaching session",
        "priority": "medium",
        "status": "pending",
        "created_by": user_id,
        "created_by_role": "client",
        "visible_to_client": True,
        "ai_generated": False,
        "event_date": to_iso(event_date),
        "version": 1,
    }
    row.update(overrides)
    return db.seed("calendar_events", row)


def days_ago(now: datetime, days: float) -> datetime:
    return now - timedelta(days=days)
