"""
Scheduler Job Definitions
Contains the scheduled job functions for habit maintenance
"""
import logging
from habitcoach.services.habits.setbacks import detect_setbacks_for_all_users

logger = logging.getLogger(__name__)


def sweep_setbacks():
    """
    Run setback detection for every user with active habits
    Called once daily; also catches habits nobody has opened since the last run
    """
    try:
        logger.info("[SCHEDULER] Sweeping for habit setbacks...")

        result = detect_setbacks_for_all_users()

        logger.info(
            f"[SCHEDULER] Setback sweep checked {result['users_checked']} user(s), "
            f"detected {result['setbacks_detected']}"
        )
        if result["failed_users"]:
            logger.warning(f"[SCHEDULER] Setback sweep failed for {len(result['failed_users'])} user(s)")

    except Exception as e:
        logger.error(f"[SCHEDULER] Error in sweep_setbacks: {e}", exc_info=True)
