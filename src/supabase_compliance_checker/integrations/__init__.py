"""
Integrations module for Supabase APIs and the AI assistant.
"""

from .supabase_api import ManagementApiClient, SupabaseRestClient
from .assistant import SecurityAssistant

__all__ = [
    "ManagementApiClient",
    "SupabaseRestClient",
    "SecurityAssistant",
]
