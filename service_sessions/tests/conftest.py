"""
Shared fixtures for the Sessions service tests.
"""

import json
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from service_sessions.app.adapters.policy_client import PolicyClient  # noqa: E402
from service_sessions.app.persistence.database import create_session_factory  # noqa: E402
from service_sessions.app.persistence.models import Base, BLSession, Proposal  # noqa: E402
from service_sessions.app.persistence.session_store import SessionStore  # noqa: E402

OPA_URL = "http://opa.test/v0/data/diamond/policy/session/read"


class PolicyStub:
    """Stands in for OPA behind an ``httpx.MockTransport``.

    ``mode`` is one of ``allow``, ``deny``, ``unreachable``, ``server_error``
    or ``garbage``. Every decision request is recorded.
    """

    def __init__(self, mode: str = "allow"):
        self.mode = mode
        self.requests: List[httpx.Request] = []

    @property
    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.mode == "unreachable":
            raise httpx.ConnectError("Connection refused", request=request)
        if self.mode == "server_error":
            return httpx.Response(500, json={"code": "internal_error"})
        if self.mode == "garbage":
            return httpx.Response(200, content=b"<html>not json</html>")
        return httpx.Response(200, json={"allow": self.mode == "allow"})

    def client(self, **kwargs) -> PolicyClient:
        return PolicyClient(OPA_URL, transport=httpx.MockTransport(self.handler), **kwargs)


def make_session(session_id: int, visit_number: Optional[int] = None,
                 proposal: Optional[Proposal] = None,
                 start: Optional[datetime] = None, end: Optional[datetime] = None) -> BLSession:
    """Transient row, as loaded by the store."""
    return BLSession(
        session_id=session_id,
        visit_number=visit_number,
        start_date=start,
        end_date=end,
        proposal_id=proposal.proposal_id if proposal is not None else None,
        proposal=proposal,
    )


def seed_rows() -> List[Any]:
    """Proposals and sessions used across the database backed tests."""
    cm = Proposal(proposal_id=1, proposal_code="cm", proposal_number="12345")
    mx = Proposal(proposal_id=2, proposal_code="mx", proposal_number="1")
    nt = Proposal(proposal_id=3, proposal_code="nt", proposal_number="abc")
    return [
        cm, mx, nt,
        BLSession(session_id=10, proposal_id=1, visit_number=3,
                  start_date=datetime(2024, 1, 1, 9, 0), end_date=datetime(2024, 1, 2, 9, 0)),
        BLSession(session_id=11, proposal_id=1, visit_number=None),
        BLSession(session_id=12, proposal_id=3, visit_number=1),
        # Three sessions claiming visit 5 of proposal 1
        BLSession(session_id=20, proposal_id=2, visit_number=5, start_date=datetime(2023, 1, 1)),
        BLSession(session_id=21, proposal_id=2, visit_number=5, start_date=datetime(2024, 6, 1)),
        BLSession(session_id=22, proposal_id=2, visit_number=5, start_date=None),
    ]


@pytest.fixture
def policy_stub():
    """OPA stub allowing everything."""
    return PolicyStub("allow")


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite database holding the ISPyB tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_store(engine):
    """SessionStore over the seeded database."""
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        session.add_all(seed_rows())
        await session.commit()
    return SessionStore(session_factory, timeout=5.0)
