"""
Unit tests for the Sessions service HTTP surface.
"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from strawberry.extensions.tracing import OpenTelemetryExtension

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from conftest import PolicyStub, make_session
from service_sessions.app.main import SessionsService
from service_sessions.app.persistence.models import Proposal
from service_sessions.app.persistence.session_store import SessionStore
from shared.config import ServiceConfig
from shared.errors import ConfigurationError, StorageError

SESSION_QUERY = "query { session(proposal: 12345, visit: 3) { sessionId visitNumber proposal { code number } } }"


class TestSessionsService:
    """Test cases for SessionsService."""

    @pytest.fixture
    def config(self):
        """Service configuration pointing nowhere real."""
        return ServiceConfig(
            env="test",
            database_url="sqlite://",
            opa_url="http://opa.test/v0/data/diamond/policy/session/read",
            otel_collector_url=None,
        )

    @pytest.fixture
    def session_store(self):
        """Mock session store holding one session."""
        store = AsyncMock(spec=SessionStore)
        proposal = Proposal(proposal_id=1, proposal_code="cm", proposal_number="12345")
        session = make_session(10, visit_number=3, proposal=proposal, start=datetime(2024, 1, 1, 9, 0))
        store.find_by_visit.return_value = (session, proposal)
        store.find_all.return_value = [session]
        return store

    @pytest.fixture
    def policy_stub(self):
        """OPA stub allowing everything."""
        return PolicyStub("allow")

    @pytest.fixture
    def service(self, config, policy_stub, session_store):
        """Create SessionsService instance."""
        return SessionsService(config, policy_client=policy_stub.client(), session_store=session_store)

    @pytest.fixture
    def client(self, service):
        """Create test client."""
        with TestClient(service.app) as client:
            yield client

    def test_query(self, client, policy_stub):
        """Test a query over HTTP with the caller's token."""
        response = client.post(
            "/",
            json={"query": SESSION_QUERY},
            headers={"Authorization": "Bearer abc123"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "data": {
                "session": {"sessionId": 10, "visitNumber": 3, "proposal": {"code": "cm", "number": 12345}}
            }
        }
        assert policy_stub.bodies == [{"token": "abc123", "parameters": {"proposal": 12345, "visit": 3}}]

    def test_tokens_stay_with_their_request(self, client, policy_stub):
        """Test each request is decided with its own token."""
        client.post("/", json={"query": SESSION_QUERY}, headers={"Authorization": "Bearer first"})
        client.post("/", json={"query": SESSION_QUERY})
        client.post("/", json={"query": SESSION_QUERY}, headers={"Authorization": "Basic dXNlcjpwYXNz"})

        assert [body["token"] for body in policy_stub.bodies] == ["first", None, None]

    def test_denied(self, client, policy_stub, session_store):
        """Test a denial is a GraphQL error, not an HTTP error."""
        policy_stub.mode = "deny"

        response = client.post("/", json={"query": SESSION_QUERY}, headers={"Authorization": "Bearer abc"})

        assert response.status_code == 200
        body = response.json()
        assert body["data"] == {"session": None}
        assert [error["extensions"]["code"] for error in body["errors"]] == ["ACCESS_DENIED"]
        session_store.find_by_visit.assert_not_awaited()

    def test_policy_unreachable(self, client, policy_stub):
        """Test an unreachable policy service is reported as such."""
        policy_stub.mode = "unreachable"

        response = client.post("/", json={"query": SESSION_QUERY})

        body = response.json()
        assert [error["extensions"]["code"] for error in body["errors"]] == ["POLICY_SERVICE_ERROR"]

    def test_graphiql(self, client):
        """Test GET serves the GraphiQL explorer."""
        response = client.get("/", headers={"Accept": "text/html"})

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "graphiql" in response.text.lower()

    def test_request_id_is_echoed(self, client):
        """Test the caller's request id is returned."""
        response = client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_request_id_is_generated(self, client):
        """Test a request id is generated when none is given."""
        response = client.get("/health")
        assert response.headers["X-Request-ID"]

    def test_health(self, client):
        """Test health with a reachable database."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "sessions"
        assert data["status"] == "ok"
        assert data["dependencies"] == {"database": "ok"}
        assert "uptime_seconds" in data
        assert "version" in data

    def test_health_degraded(self, client, session_store):
        """Test health reports an unreachable database."""
        session_store.ping.side_effect = StorageError(details={"operation": "ping"})

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["dependencies"] == {"database": "error"}

    def test_metrics(self, client):
        """Test the Prometheus endpoint exposes decision metrics."""
        client.post("/", json={"query": SESSION_QUERY}, headers={"Authorization": "Bearer abc"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'policy_decisions_total{outcome="allowed"} 1.0' in response.text
        assert "http_requests_total" in response.text


class TestSessionsServiceLifecycle:
    """Test cases for startup and shutdown."""

    @pytest.fixture
    def config(self):
        """Service configuration."""
        return ServiceConfig(env="test", database_url="sqlite://", otel_collector_url=None, enable_console_tracing=False)

    @pytest.mark.asyncio
    async def test_start_fails_without_database(self, config):
        """Test startup is aborted when the database cannot be reached."""
        store = AsyncMock(spec=SessionStore)
        store.ping.side_effect = StorageError(details={"operation": "ping"})
        service = SessionsService(config, policy_client=PolicyStub().client(), session_store=store)

        with pytest.raises(ConfigurationError):
            await service.start()

        await service.stop()

    @pytest.mark.asyncio
    async def test_builds_own_store(self, config):
        """Test a store is created from the database URL when none is given."""
        service = SessionsService(config, policy_client=PolicyStub().client())

        assert service.engine is not None
        assert str(service.engine.url).startswith("sqlite+aiosqlite")
        assert service.session_store.timeout == config.database_timeout_seconds

        await service.stop()

    @pytest.mark.asyncio
    async def test_injected_policy_client_reports_metrics(self, config):
        """Test decisions of an injected policy client are counted by the service."""
        store = AsyncMock(spec=SessionStore)
        service = SessionsService(config, policy_client=PolicyStub().client(), session_store=store)

        assert service.policy_client.metrics is service.metrics

        await service.stop()

    @pytest.mark.asyncio
    async def test_console_tracing_instruments_requests(self):
        """Test console-only tracing still joins inbound and outbound traces."""
        config = ServiceConfig(
            env="test", database_url="sqlite://", otel_collector_url=None, enable_console_tracing=True
        )
        store = AsyncMock(spec=SessionStore)

        with patch("shared.base_service.configure_tracing") as configure_tracing, \
                patch("service_sessions.app.main.instrument_app") as instrument_app:
            service = SessionsService(config, policy_client=PolicyStub().client(), session_store=store)

        configure_tracing.assert_called_once()
        instrument_app.assert_called_once_with(service.app, None)
        assert OpenTelemetryExtension in service.schema.extensions

        await service.stop()

    @pytest.mark.asyncio
    async def test_tracing_disabled(self, config):
        """Test nothing is instrumented when spans go nowhere."""
        store = AsyncMock(spec=SessionStore)

        with patch("service_sessions.app.main.instrument_app") as instrument_app:
            service = SessionsService(config, policy_client=PolicyStub().client(), session_store=store)

        instrument_app.assert_not_called()
        assert OpenTelemetryExtension not in service.schema.extensions

        await service.stop()
