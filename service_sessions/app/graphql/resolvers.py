"""
Query resolvers.

Every resolver follows the same pipeline: build the operation's policy
parameters, ask the policy client, and only once access has been granted
query the session store and map the rows onto API types. Denials and policy
failures abort the resolver before the store is touched.
"""

from typing import Annotated, List, Optional

import strawberry
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from shared.errors import RequestValidationError
from shared.logging import get_logger
from shared.tracing import add_span_attributes
from .context import SessionsInfo
from .types import Session

logger = get_logger("sessions.graphql.resolvers")


class PolicyParameters(BaseModel):
    """Base for the per-operation parameters sent to OPA."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class SessionsParameters(PolicyParameters):
    """Listing all sessions needs no parameters."""


class SessionParameters(PolicyParameters):
    proposal: int = Field(ge=0)
    visit: int = Field(ge=0)


class SessionReferenceParameters(PolicyParameters):
    session: int = Field(ge=0)


def build_parameters(model: type, **values) -> PolicyParameters:
    try:
        return model(**values)
    except ValidationError as e:
        raise RequestValidationError(
            details={"fields": [".".join(map(str, error["loc"])) for error in e.errors()]}
        ) from None


async def authorize(info: SessionsInfo, parameters: PolicyParameters) -> None:
    """Raise unless the policy allows the current request to proceed."""
    context = info.context
    add_span_attributes(**{"graphql.field": info.field_name, "authz.has_token": context.token is not None})
    await context.policy_client.decide(context.token, parameters)


async def resolve_sessions(info: SessionsInfo) -> List[Session]:
    await authorize(info, SessionsParameters())
    rows = await info.context.session_store.find_all()
    logger.debug("Sessions fetched", count=len(rows))
    return [Session.from_row(row, row.proposal) for row in rows]


async def resolve_session(info: SessionsInfo, proposal: int, visit: int) -> Optional[Session]:
    parameters = build_parameters(SessionParameters, proposal=proposal, visit=visit)
    await authorize(info, parameters)
    found = await info.context.session_store.find_by_visit(parameters.proposal, parameters.visit)
    if found is None:
        logger.debug("Session not found", proposal=proposal, visit=visit)
        return None
    row, proposal_row = found
    return Session.from_row(row, proposal_row)


async def resolve_session_reference(info: SessionsInfo, session_id) -> Optional[Session]:
    try:
        session_id = int(session_id)
    except (TypeError, ValueError):
        raise RequestValidationError(details={"fields": ["sessionId"]}) from None
    parameters = build_parameters(SessionReferenceParameters, session=session_id)
    await authorize(info, parameters)
    row = await info.context.session_store.find_by_id(parameters.session)
    if row is None:
        return None
    return Session.from_row(row, row.proposal)


@strawberry.type(description="The root query of the service")
class Query:
    @strawberry.field(description="Retrieves all Beamline Sessions")
    async def sessions(self, info: SessionsInfo) -> List[Session]:
        return await resolve_sessions(info)

    @strawberry.field(description="Retrieves a Beamline Session by Proposal and visit number")
    async def session(
        self,
        info: SessionsInfo,
        proposal: Annotated[int, strawberry.argument(description="The number of the Proposal")],
        visit: Annotated[int, strawberry.argument(description="The number of the session within the Proposal")],
    ) -> Optional[Session]:
        return await resolve_session(info, proposal, visit)
