"""
Dashboard HTTP API.
"""

from supabase_compliance_checker.dashboard.server import create_app, run_server

__all__ = ["create_app", "run_server"]
