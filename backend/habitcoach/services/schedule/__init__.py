"""
Schedule module - Unified calendar and task timeline
"""
from . import repository
from . import service

from .service import (
    list_items,
    create_unified_item,
    move_item,
    complete_item,
    delete_unified_item,
    get_events_for_date,
    get_statistics
)

__all__ = [
    'repository',
    'service',
    'list_items',
    'create_unified_item',
    'move_item',
    'complete_item',
    'delete_unified_item',
    'get_events_for_date',
    'get_statistics'
]
