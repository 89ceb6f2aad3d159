"""
Authentication helpers for the Sessions Service.

Only extraction lives here: the service never validates tokens itself,
it forwards them to the policy decision service.
"""

from .bearer import extract_bearer_token

__all__ = ["extract_bearer_token"]
