"""
Dependency injection for shared clients and resources
"""
from typing import Optional

from fastapi import Header, HTTPException
from supabase import create_client, Client

from habitcoach.core.config import settings
from habitcoach.models.context import CallerContext, CallerRole

_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Get the shared Supabase client, creating it on first use"""
    global _supabase_client
    if _supabase_client is None:
        _supabase_client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    return _supabase_client


def get_caller_context(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CallerContext:
    """Build the caller context from request headers"""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        role = CallerRole(x_user_role) if x_user_role else CallerRole.CLIENT
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role '{x_user_role}'")
    return CallerContext(caller_id=x_user_id, caller_role=role)
