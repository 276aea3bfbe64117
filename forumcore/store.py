# forumcore/store.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DataError, DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from forumcore.config import STORE_TIMEOUT_SECONDS
from forumcore.errors import Conflict, ForumError, StoreTimeout, StoreUnavailable, ValidationError

T = TypeVar("T")
Work = Callable[[AsyncSession], Awaitable[T]]


class ForumStore:
    """
    Store handle injected into every forum component.

    Each call opens its own session, so a unit of work never leaks state into the
    next one. `write` wraps the work in a single transaction; `read` does not.
    Both are bounded by `timeout`; whatever fails, the session is rolled back
    before the error reaches the caller.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        timeout: float = STORE_TIMEOUT_SECONDS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.session_factory = session_factory
        self.timeout = timeout
        self.log = logger or logging.getLogger(__name__)

    async def write(self, op_name: str, work: Work) -> T:
        async def _unit():
            async with self.session_factory() as session:
                async with session.begin():
                    return await work(session)

        return await self._guarded(op_name, _unit)

    async def read(self, op_name: str, work: Work) -> T:
        async def _unit():
            async with self.session_factory() as session:
                return await work(session)

        return await self._guarded(op_name, _unit)

    async def _guarded(self, op_name: str, unit: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(unit(), timeout=self.timeout)
        except ForumError:
            raise
        except asyncio.TimeoutError:
            self.log.error("store op=%s timed out after %.2fs, rolled back", op_name, self.timeout)
            raise StoreTimeout(f"{op_name} timed out")
        except IntegrityError as e:
            self.log.warning("store op=%s integrity violation, rolled back: %s", op_name, e.orig)
            raise Conflict(f"{op_name} conflicts with existing data")
        except DataError as e:
            self.log.warning("store op=%s rejected a value, rolled back: %s", op_name, e.orig)
            raise ValidationError(f"{op_name} received a value the store cannot hold")
        except (DBAPIError, SQLAlchemyError) as e:
            self.log.error("store op=%s failed, rolled back: %r", op_name, e)
            raise StoreUnavailable(f"{op_name} could not reach the store")
        except Exception:
            self.log.error("store op=%s raised unexpectedly, rolled back", op_name, exc_info=True)
            raise StoreUnavailable(f"{op_name} failed")
