"""
Edge Function Service - Supabase Edge Function invocation
"""
import json
import logging
from typing import Any, Callable, Dict

from habitcoach.core.dependencies import get_supabase_client
from habitcoach.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


def invoke_edge_function(function_name: str, body: Dict[str, Any]) -> Any:
    """
    Invoke a Supabase Edge Function

    Args:
        function_name: Deployed function name (e.g. "habit-recovery-planner")
        body: JSON-serializable request body

    Returns:
        The function's response payload

    Raises:
        ExternalServiceError: If the invocation fails
    """
    logger.info(f"[EDGE] Invoking {function_name}")

    try:
        # Round-trip through json so datetimes and enums arrive as plain strings
        payload = json.loads(json.dumps(body, default=str))
        return get_supabase_client().functions.invoke(
            function_name,
            invoke_options={"body": payload}
        )
    except Exception as e:
        logger.error(f"[EDGE] {function_name} failed: {e}")
        raise ExternalServiceError(f"Edge function '{function_name}' failed: {e}")


def make_edge_function_sender(function_name: str) -> Callable[[str, Dict[str, Any]], bool]:
    """
    Build a notification send callback bound to one edge function

    Returns:
        callback(user_id, payload) -> bool, suitable for NotificationService
    """
    def _send(user_id: str, payload: Dict[str, Any]) -> bool:
        invoke_edge_function(function_name, {"user_id": user_id, **payload})
        return True

    return _send
