"""
Adapters package for the Sessions Service.

Contains HTTP client wrappers for external dependencies. Adapters map
transport failures onto shared errors and hold no per-request state.
"""

from .policy_client import Decision, PolicyClient, PolicyInput

__all__ = [
    "Decision",
    "PolicyClient",
    "PolicyInput",
]
