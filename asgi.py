"""
asgi.py -- ASGI entry point for the materials portal.

Run with:  uvicorn asgi:app --reload

The React front end is served separately; this process only exposes the API.
"""

from api.main import app

__all__ = ["app"]
