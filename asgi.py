"""
asgi.py -- ASGI entry point for the Degenius API.

Run with:  uvicorn asgi:app --reload

Kept separate from api/main.py so process managers and tests import the app
from one stable location.
"""

from api.main import app

__all__ = ["app"]
