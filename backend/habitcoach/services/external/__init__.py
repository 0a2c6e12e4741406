"""
External integrations module
Handles connections to external services (Supabase Edge Functions)
"""
from . import edge_functions

__all__ = ['edge_functions']
