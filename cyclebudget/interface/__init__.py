"""Mini README: Browser interface for cyclebudget.

Exports the FastAPI application factory that serves the dashboard and its
JSON endpoints.
"""

from .web_app import create_application

__all__ = ["create_application"]
