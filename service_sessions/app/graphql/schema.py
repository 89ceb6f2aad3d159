"""
Schema assembly.

The schema is built from type declarations only: building or exporting it
touches neither the database nor the policy endpoint.
"""

from pathlib import Path
from typing import Iterable, List, Optional

import strawberry
from graphql import GraphQLError
from strawberry.extensions import MaskErrors

from shared.errors import SessionsServiceException
from shared.logging import get_logger
from .resolvers import Query

logger = get_logger("sessions.graphql.schema")

INTERNAL_ERROR_MESSAGE = "Internal error"
FEDERATION_VERSION = "2.5"


def _is_unexpected(error: GraphQLError) -> bool:
    """Errors raised by resolvers that are not one of ours get masked."""
    original = error.original_error
    return original is not None and not isinstance(original, (SessionsServiceException, GraphQLError))


class SessionsSchema(strawberry.federation.Schema):
    """Federated schema logging execution errors through structlog."""

    def process_errors(self, errors: List[GraphQLError], execution_context=None) -> None:
        for error in errors:
            original = error.original_error
            path = ".".join(map(str, error.path or []))
            if isinstance(original, SessionsServiceException):
                logger.warning(
                    "GraphQL field error",
                    code=original.code,
                    message=original.message,
                    path=path
                )
            elif original is None or isinstance(original, GraphQLError):
                logger.info("GraphQL request error", message=error.message, path=path)
            else:
                logger.error(
                    "Unhandled resolver error",
                    error=str(original),
                    path=path,
                    exc_info=original
                )


def build_schema(extensions: Iterable = ()) -> SessionsSchema:
    """Assemble the federated schema served by the service."""
    return SessionsSchema(
        query=Query,
        federation_version=FEDERATION_VERSION,
        extensions=[
            lambda: MaskErrors(should_mask_error=_is_unexpected, error_message=INTERNAL_ERROR_MESSAGE),
            *extensions,
        ],
    )


def export_schema(path: Optional[Path] = None) -> str:
    """Render the schema as SDL, writing it to ``path`` when given."""
    schema_string = build_schema().as_str()
    if path is not None:
        Path(path).write_text(schema_string + "\n")
    return schema_string
