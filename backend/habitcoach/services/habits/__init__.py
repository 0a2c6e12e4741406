"""
Habits module - Habit formation, progression and setback detection
"""
from . import repository
from . import service
from . import setbacks

# Export commonly used functions for convenience
from .service import (
    create_habit,
    record_completion,
    reset_habit,
    level_up_habit,
    get_habit,
    list_habits,
    list_completions,
    get_habit_analytics,
    get_neuroplasticity_phase,
    get_challenge_recommendation,
    is_ready_to_advance
)

from .setbacks import (
    detect_setbacks,
    detect_setbacks_quietly,
    detect_setbacks_for_all_users,
    list_setbacks,
    update_setback_status
)

__all__ = [
    # Modules
    'repository',
    'service',
    'setbacks',

    # Service functions
    'create_habit',
    'record_completion',
    'reset_habit',
    'level_up_habit',
    'get_habit',
    'list_habits',
    'list_completions',
    'get_habit_analytics',
    'get_neuroplasticity_phase',
    'get_challenge_recommendation',
    'is_ready_to_advance',

    # Setback functions
    'detect_setbacks',
    'detect_setbacks_quietly',
    'detect_setbacks_for_all_users',
    'list_setbacks',
    'update_setback_status'
]
