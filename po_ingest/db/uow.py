"""
Unit of Work（UoW）：管理一次写入的 AsyncSession 生命周期与事务边界。

    async with UnitOfWork(db.session_maker) as uow:
        await uow.session.execute(...)

- 无异常 -> commit
- 有异常 -> rollback，异常继续向外抛
- 只有 UoW 自己创建的 session 才由它关闭；外部传入的现成 session 不关闭。
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

AsyncSessionFactory = Callable[[], AsyncSession]
SessionOrFactory = Union[AsyncSession, AsyncSessionFactory]


class UnitOfWork(AbstractAsyncContextManager):
    def __init__(self, session_or_factory: SessionOrFactory) -> None:
        self._session_or_factory = session_or_factory
        self.session: Optional[AsyncSession] = None
        self._owns_session: bool = False

    async def __aenter__(self) -> "UnitOfWork":
        if isinstance(self._session_or_factory, AsyncSession):
            self.session = self._session_or_factory
            self._owns_session = False
        else:
            factory = self._session_or_factory
            if not callable(factory):
                raise TypeError("UnitOfWork 期望传入 AsyncSession 或 async_sessionmaker。")
            self.session = factory()
            self._owns_session = True

        if not isinstance(self.session, AsyncSession):
            raise TypeError("async with UnitOfWork(...) 需要 AsyncSession。")

        if not self.session.in_transaction():
            await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if self.session is None:
            return False

        try:
            if exc_type:
                await self.session.rollback()
            else:
                await self.session.commit()
        finally:
            if self._owns_session:
                try:
                    await self.session.close()
                finally:
                    self.session = None
        return False
