"""
Sessions Service package.

Serves read-only Beamline Session data from ISPyB through a federated
GraphQL API. Every query is first authorized by the policy
decision service (Open Policy Agent):

- app.main: FastAPI app, GraphQL router and lifecycle wiring.
- app.cli: `serve` and `schema` commands.
- app.auth: Bearer credential extraction.
- app.adapters: HTTP client for the policy decision service.
- app.persistence: SQLAlchemy models and the session store.
- app.graphql: Types, resolvers, schema assembly and transport.
"""
