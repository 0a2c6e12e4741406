"""
Application configuration and environment variables
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables"""

    # Database
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")

    # Time handling
    APP_TIMEZONE: str = os.getenv("APP_TIMEZONE", "Europe/Stockholm")

    # Edge functions used as the insight / notification transport
    SETBACK_NOTIFY_FUNCTION: str = os.getenv("SETBACK_NOTIFY_FUNCTION", "habit-recovery-planner")
    SCHEDULE_NOTIFY_FUNCTION: str = os.getenv("SCHEDULE_NOTIFY_FUNCTION", "schedule-change-notifier")

    # Background jobs
    ENABLE_SCHEDULER: bool = _env_bool("ENABLE_SCHEDULER")
    SETBACK_SWEEP_HOUR: int = int(os.getenv("SETBACK_SWEEP_HOUR", "6"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


# Create a global settings instance
settings = Settings()
