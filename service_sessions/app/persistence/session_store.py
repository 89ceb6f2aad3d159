"""Read-only access to Beamline Sessions and their Proposals."""

import asyncio
from typing import Any, Callable, List, Optional, Tuple, TypeVar

from sqlalchemy import Integer, cast, func, select, text
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import joinedload

from shared.errors import StorageError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .models import BLSession, Proposal

T = TypeVar("T")


def _number_matches(stored: Optional[str], number: int) -> bool:
    if stored is None:
        return False
    try:
        return int(stored.strip()) == number
    except ValueError:
        return False


class SessionStore:
    """Typed queries against the ``BLSession`` and ``Proposal`` tables.

    Every call runs a single statement in its own pooled session, so one
    store is safely shared by concurrent requests. Matching nothing is not
    an error: callers get ``None`` or an empty list. Database failures and
    timeouts are logged here and raised as :class:`StorageError`, whose
    message carries no detail.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession],
                 timeout: Optional[float] = 10.0,
                 metrics: Optional[MetricsCollector] = None):
        self.session_factory = session_factory
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("sessions.persistence.session_store")

    async def find_all(self) -> List[BLSession]:
        """All sessions, each with its proposal loaded."""
        statement = select(BLSession).options(joinedload(BLSession.proposal)).order_by(BLSession.session_id)
        return await self._execute("find_all", statement, lambda result: list(result.unique().scalars().all()))

    async def find_by_id(self, session_id: int) -> Optional[BLSession]:
        statement = (
            select(BLSession)
            .options(joinedload(BLSession.proposal))
            .where(BLSession.session_id == session_id)
        )
        return await self._execute(
            "find_by_id", statement, lambda result: result.unique().scalars().first(),
            session_id=session_id
        )

    async def find_by_visit(self, proposal_number: int,
                            visit_number: int) -> Optional[Tuple[BLSession, Optional[Proposal]]]:
        """The session numbered ``visit_number`` within proposal ``proposal_number``.

        Proposal numbers are stored as text and matched by their integer
        value, so ``"012345"`` is proposal 12345. The pair is expected to be
        unique. If it is not, the most recently started session wins, sessions
        without a start date come last and the highest session id breaks
        remaining ties.
        """
        statement = (
            select(BLSession, Proposal)
            .join(Proposal, BLSession.proposal_id == Proposal.proposal_id)
            .where(
                cast(func.trim(Proposal.proposal_number), Integer) == proposal_number,
                BLSession.visit_number == visit_number,
            )
            .order_by(
                BLSession.start_date.is_(None),
                BLSession.start_date.desc(),
                BLSession.session_id.desc(),
            )
        )
        rows = await self._execute(
            "find_by_visit", statement, lambda result: result.all(),
            proposal_number=proposal_number, visit_number=visit_number
        )
        # SQL casts read "abc" as 0 and "12abc" as 12
        for session, proposal in rows:
            if _number_matches(proposal.proposal_number, proposal_number):
                return session, proposal
        return None

    async def ping(self) -> None:
        """Check the database answers a trivial query."""
        await self._execute("ping", text("SELECT 1"), lambda result: result.scalar_one())

    async def _execute(self, operation: str, statement: Any,
                       consume: Callable[[Result], T], **params) -> T:
        try:
            async with self.session_factory() as session:
                result = await asyncio.wait_for(session.execute(statement), timeout=self.timeout)
                # Rows are consumed before the session goes back to the pool
                value = consume(result)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            self._record(operation, "error")
            self.logger.error(
                "Database query failed",
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
                **params
            )
            raise StorageError(details={"operation": operation}) from e

        self._record(operation, "ok")
        return value

    def _record(self, operation: str, status: str):
        if self.metrics is not None:
            self.metrics.record_storage_query(operation, status)
