"""HTTP transport: one GraphQL execution per request."""

from fastapi import Request
from strawberry.fastapi import GraphQLRouter

from ..auth.bearer import extract_bearer_token
from .context import SessionsContext
from .schema import SessionsSchema

GRAPHQL_ENDPOINT = "/"


async def get_context(request: Request) -> SessionsContext:
    """Build the execution context, carrying the caller's bearer token."""
    return SessionsContext(
        token=extract_bearer_token(request.headers),
        policy_client=request.app.state.policy_client,
        session_store=request.app.state.session_store,
    )


def create_graphql_router(schema: SessionsSchema) -> GraphQLRouter:
    """POST executes queries, GET serves the GraphiQL explorer."""
    return GraphQLRouter(
        schema,
        path=GRAPHQL_ENDPOINT,
        graphql_ide="graphiql",
        allow_queries_via_get=False,
        context_getter=get_context,
    )
