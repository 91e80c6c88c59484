"""
HTTP surface for the record catalog (FastAPI).
"""

from catalog.api.app import create_app
from catalog.api.auth import BearerTokenGate

__all__ = ["BearerTokenGate", "create_app"]
