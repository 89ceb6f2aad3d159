"""Per-request GraphQL execution context."""

from typing import Optional

from strawberry.fastapi import BaseContext
from strawberry.types import Info

from ..adapters.policy_client import PolicyClient
from ..persistence.session_store import SessionStore


class SessionsContext(BaseContext):
    """Everything a resolver may use while executing one request.

    A fresh instance is built by the transport for every request, so the
    bearer token it carries is never visible to another request. The policy
    client and the session store are the process-wide shared instances.
    """

    def __init__(self, token: Optional[str], policy_client: PolicyClient,
                 session_store: SessionStore):
        super().__init__()
        self.token = token
        self.policy_client = policy_client
        self.session_store = session_store


SessionsInfo = Info[SessionsContext, None]
