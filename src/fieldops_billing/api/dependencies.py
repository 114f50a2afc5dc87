"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops_billing.database import init_db


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for one request.

    The request's work is committed when the route returns and rolled
    back if it raises.
    """
    _, session_factory = init_db()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
