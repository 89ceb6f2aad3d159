"""
Persistence package for the Sessions Service.

Read-only access to the ISPyB `BLSession` and `Proposal` tables.
"""

from .models import Base, BLSession, Proposal
from .session_store import SessionStore

__all__ = [
    "Base",
    "BLSession",
    "Proposal",
    "SessionStore",
]
