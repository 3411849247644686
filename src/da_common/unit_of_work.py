"""Scoped unit of work.

One unit = one AsyncSession inside one database transaction. The transaction
commits when the block exits normally and rolls back when it raises; the
session is closed on every exit path. Connection-level failures are
re-raised as StoreUnavailableError so callers can tell a retryable outage
from a business error.

Concurrent tasks must each open their own unit: an AsyncSession is not safe
to share between tasks.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.da_common.database import async_session_factory
from src.da_common.errors import StoreUnavailableError

UnitOfWorkFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@asynccontextmanager
async def unit_of_work(
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
) -> AsyncIterator[AsyncSession]:
    try:
        async with session_factory() as session:
            async with session.begin():
                yield session
    except (OperationalError, InterfaceError) as exc:
        raise StoreUnavailableError(str(exc.orig or exc)) from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise StoreUnavailableError(str(exc.orig or exc)) from exc
        raise

