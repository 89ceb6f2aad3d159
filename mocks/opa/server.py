"""
Mock Open Policy Agent server answering the session read decision.

Speaks the OPA v0 data API contract the service relies on: the request
body is the raw input document and the response body the raw decision.
"""

import os
import sys
from typing import Any, Dict, Optional, Set

from fastapi import FastAPI, Request
from pydantic import BaseModel

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.logging import configure_logging, get_logger  # noqa: E402


class DecisionInput(BaseModel):
    token: Optional[str] = None
    parameters: Dict[str, Any] = {}


class MockOpaServer:
    """Mock OPA server implementation.

    A request is allowed when it carries a token and, if an allow-list is
    configured, the token is on it. Tokens named ``deny`` are always denied.
    """

    def __init__(self, allowed_tokens: Optional[Set[str]] = None):
        configure_logging("mock-opa", os.getenv("LOG_LEVEL", "info"))
        self.logger = get_logger("mock.opa")
        self.allowed_tokens = allowed_tokens
        self.decisions = []
        self.app = FastAPI(title="Mock OPA", version="1.0.0")
        self._setup_routes()

    def _setup_routes(self):
        """Set up mock OPA routes."""

        @self.app.post("/v0/data/{policy_path:path}")
        async def decide(policy_path: str, body: DecisionInput, request: Request):
            """Evaluate the mock policy."""
            allow = self._evaluate(body)
            self.decisions.append({"path": policy_path, "input": body.model_dump(), "allow": allow})
            self.logger.info(
                "Policy evaluated",
                path=policy_path,
                allow=allow,
                parameters=body.parameters,
                traceparent=request.headers.get("traceparent")
            )
            return {"allow": allow}

        @self.app.get("/health")
        async def health():
            return {}

    def _evaluate(self, body: DecisionInput) -> bool:
        if body.token is None or body.token == "deny":
            return False
        if self.allowed_tokens is None:
            return True
        return body.token in self.allowed_tokens


def create_app():
    """Create mock OPA application."""
    allowed = os.getenv("MOCK_OPA_ALLOWED_TOKENS")
    allowed_tokens = {token.strip() for token in allowed.split(",") if token.strip()} if allowed else None
    return MockOpaServer(allowed_tokens).app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8181)
