"""
Notifications Service - Payload formatting and best-effort delivery
Centralizes the insight/notification payloads and sending logic
"""
import logging
from typing import Optional, Dict, Any, Callable, Iterable, List

from habitcoach.core.config import settings

logger = logging.getLogger(__name__)


# ============================================================================
# PAYLOAD FORMATTING
# ============================================================================

def format_setback_notification(setback: Dict[str, Any],
                                habit: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Format the payload sent when a setback is detected

    Args:
        setback: The persisted setback row
        habit: Optional habit the setback belongs to, passed along as context

    Returns:
        Payload for the recovery planner
    """
    context = setback.get("context") or {}
    title = context.get("habit_title") or (habit or {}).get("title") or "din vana"
    return {
        "event": "setback_detected",
        "message": f"Motgång upptäckt för {title}: {setback['setback_type']} ({setback['severity']})",
        "setback_event": setback,
        "habit_context": habit,
    }


def format_schedule_change_notification(item: Dict[str, Any], new_date: str,
                                        moved_by: str) -> Dict[str, Any]:
    """
    Format the payload sent when a schedule item is moved

    Args:
        item: Projected schedule item (dict form)
        new_date: ISO timestamp the item was moved to
        moved_by: User id of whoever moved it

    Returns:
        Payload for the schedule-change notifier
    """
    return {
        "event": "schedule_item_moved",
        "message": f"'{item.get('title')}' flyttad till {new_date[:10]}",
        "item_id": item.get("id"),
        "source_type": item.get("source_type"),
        "new_date": new_date,
        "moved_by": moved_by,
    }


# ============================================================================
# NOTIFICATION SENDING
# ============================================================================

class NotificationService:
    """
    Best-effort notification delivery. Sending never raises.
    """

    def __init__(self, send_callback: Optional[Callable[[str, Dict[str, Any]], bool]] = None):
        """
        Initialize notification service

        Args:
            send_callback: Optional callback for delivering payloads
                          Should have signature: callback(user_id: str, payload: dict) -> bool
        """
        self.send_callback = send_callback

    @classmethod
    def for_edge_function(cls, function_name: str) -> "NotificationService":
        """Notification service that delivers through a Supabase Edge Function"""
        from habitcoach.services.external.edge_functions import make_edge_function_sender
        return cls(make_edge_function_sender(function_name))

    @classmethod
    def for_setbacks(cls) -> "NotificationService":
        return cls.for_edge_function(settings.SETBACK_NOTIFY_FUNCTION)

    @classmethod
    def for_schedule_changes(cls) -> "NotificationService":
        return cls.for_edge_function(settings.SCHEDULE_NOTIFY_FUNCTION)

    def notify(self, user_id: str, payload: Dict[str, Any]) -> bool:
        """
        Send a notification payload to a user

        Args:
            user_id: Recipient
            payload: The payload to send

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.send_callback:
            logger.warning("No send callback configured - notification not sent")
            logger.info(f"Would have sent to {user_id}: {payload.get('message')}")
            return False

        try:
            result = self.send_callback(user_id, payload)
            if result:
                logger.info(f"Notification sent to {user_id}")
            else:
                logger.warning("Notification send callback returned False")
            return bool(result)
        except Exception as e:
            logger.error(f"Failed to send notification to {user_id}: {e}")
            return False

    def notify_many(self, user_ids: Iterable[str], payload: Dict[str, Any]) -> List[str]:
        """
        Send the same payload to several users

        Returns:
            The user ids the payload was delivered to
        """
        return [user_id for user_id in user_ids if self.notify(user_id, payload)]

    def send_setback_notification(self, user_id: str, setback: Dict[str, Any],
                                  habit: Optional[Dict[str, Any]] = None) -> bool:
        """
        Notify the insight pipeline about a detected setback

        Returns:
            True if sent successfully, False otherwise
        """
        return self.notify(user_id, format_setback_notification(setback, habit))
