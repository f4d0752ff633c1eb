"""Mini README: Network interfaces for the trip ledger.

Exports the FastAPI application factory serving the JSON API and the
WebSocket trip channels. The command line entry point lives in
``main_trip_ledger.py`` at the repository root.
"""

from .web_app import create_application

__all__ = ["create_application"]
