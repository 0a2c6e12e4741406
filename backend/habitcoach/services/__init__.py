"""
Business logic services
"""
from . import habits
from . import schedule
from . import scheduler
from . import notifications
from . import external

__all__ = [
    'habits',
    'schedule',
    'scheduler',
    'notifications',
    'external'
]
