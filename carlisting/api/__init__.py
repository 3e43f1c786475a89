"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from carlisting.api import app

    uvicorn carlisting.api:app
"""

from carlisting.api.app import app

__all__ = ["app"]
