"""
Sessions service: Beamline Session data from ISPyB over GraphQL.
"""

from typing import Dict, Optional

from strawberry.extensions.tracing import OpenTelemetryExtension

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import ConfigurationError, StorageError
from shared.tracing import instrument_app

from .adapters.policy_client import PolicyClient
from .graphql.router import create_graphql_router
from .graphql.schema import build_schema
from .persistence.database import create_engine, create_session_factory
from .persistence.session_store import SessionStore


class SessionsService(BaseService):
    """Sessions service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 policy_client: Optional[PolicyClient] = None,
                 session_store: Optional[SessionStore] = None):
        super().__init__("sessions", config)

        self.engine = None
        if session_store is None:
            self.engine = create_engine(self.config.database_url, pool_size=self.config.database_pool_size)
            session_store = SessionStore(
                create_session_factory(self.engine),
                timeout=self.config.database_timeout_seconds,
                metrics=self.metrics
            )
        self.session_store = session_store

        if policy_client is None:
            policy_client = PolicyClient(
                self.config.opa_url,
                timeout=self.config.policy_timeout_seconds,
                metrics=self.metrics
            )
        elif policy_client.metrics is None:
            # Decisions are counted on this service's /metrics
            policy_client.metrics = self.metrics
        self.policy_client = policy_client

        extensions = [OpenTelemetryExtension] if self.config.enable_tracing else []
        self.schema = build_schema(extensions=extensions)

        self.app.state.policy_client = self.policy_client
        self.app.state.session_store = self.session_store
        self.app.include_router(create_graphql_router(self.schema))

        if self.config.enable_tracing:
            instrument_app(self.app, self.engine)

        @self.app.on_event("startup")
        async def _startup():
            await self.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.stop()

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check database connectivity."""
        dependencies = {}
        try:
            await self.session_store.ping()
            dependencies["database"] = "ok"
        except StorageError:
            dependencies["database"] = "error"

        return dependencies

    async def start(self):
        """Verify the database is reachable; failing here aborts startup."""
        try:
            await self.session_store.ping()
        except StorageError as e:
            raise ConfigurationError("Database unreachable at startup") from e

        self.logger.info("Sessions service started", opa_url=self.config.opa_url)

    async def stop(self):
        """Release pooled connections."""
        await self.policy_client.close()
        if self.engine is not None:
            await self.engine.dispose()

        self.logger.info("Sessions service stopped")


def create_app(config: Optional[ServiceConfig] = None):
    """Create sessions service application."""
    service = SessionsService(config)
    return service.app
