"""
Entrypoint module for uvicorn.

Run as:

    uvicorn noc_poller.main:app --reload
"""

from noc_poller.api import app  # noqa: F401  FastAPI app
