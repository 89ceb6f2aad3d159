"""GraphQL object types exposed by the service."""

from datetime import datetime, timezone
from typing import Any, Optional

import strawberry

from shared.errors import FieldParseError
from ..persistence.models import BLSession, Proposal as ProposalRow
from .context import SessionsInfo

UINT32_MAX = 2 ** 32 - 1


def parse_unsigned(value: Any, field: str) -> Optional[int]:
    """Read a stored value as an unsigned 32 bit integer.

    ``None`` stays ``None``; anything else that is not a non-negative
    integer in range raises :class:`FieldParseError` for ``field``.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise FieldParseError(field, value)
    if isinstance(value, int):
        number = value
    else:
        try:
            number = int(str(value).strip())
        except ValueError:
            raise FieldParseError(field, value) from None
    if not 0 <= number <= UINT32_MAX:
        raise FieldParseError(field, value)
    return number


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """ISPyB stores naive UTC timestamps."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@strawberry.type(description="A research Proposal")
class Proposal:
    code: Optional[str] = strawberry.field(description="The two letter code of the Proposal")
    stored_number: strawberry.Private[Optional[str]]

    @strawberry.field(description="The number of the Proposal")
    def number(self) -> Optional[int]:
        return parse_unsigned(self.stored_number, "proposal_number")

    @classmethod
    def from_row(cls, row: ProposalRow) -> "Proposal":
        return cls(code=row.proposal_code, stored_number=row.proposal_number)


@strawberry.federation.type(keys=["sessionId"], description="A Beamline Session")
class Session:
    session_id: int = strawberry.field(description="An opaque unique identifier for the session")
    stored_visit_number: strawberry.Private[Optional[int]]
    start: Optional[datetime] = strawberry.field(description="The date and time at which the Session began")
    end: Optional[datetime] = strawberry.field(description="The date and time at which the Session ended")
    proposal: Optional[Proposal] = strawberry.field(description="The Proposal the Session belongs to")

    @strawberry.field(description="The number of session within the Proposal")
    def visit_number(self) -> Optional[int]:
        return parse_unsigned(self.stored_visit_number, "visit_number")

    @classmethod
    def from_row(cls, row: BLSession, proposal: Optional[ProposalRow] = None) -> "Session":
        return cls(
            session_id=row.session_id,
            stored_visit_number=row.visit_number,
            start=as_utc(row.start_date),
            end=as_utc(row.end_date),
            proposal=Proposal.from_row(proposal) if proposal is not None else None,
        )

    @classmethod
    async def resolve_reference(cls, info: SessionsInfo, **representation) -> Optional["Session"]:
        from .resolvers import resolve_session_reference  # resolvers imports this module

        session_id = representation.get("sessionId", representation.get("session_id"))
        return await resolve_session_reference(info, session_id)
