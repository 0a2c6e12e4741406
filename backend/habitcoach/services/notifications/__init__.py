"""
Notifications module
Payload formatting and delivery for setbacks and schedule changes
"""
from .service import (
    NotificationService,
    format_setback_notification,
    format_schedule_change_notification
)

__all__ = [
    'NotificationService',
    'format_setback_notification',
    'format_schedule_change_notification'
]
