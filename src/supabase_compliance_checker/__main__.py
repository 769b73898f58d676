"""
Entry point for running the package as a module: python -m supabase_compliance_checker
"""

from supabase_compliance_checker.cli.main import app

if __name__ == "__main__":
    app()
