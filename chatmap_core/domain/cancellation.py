"""显式取消令牌。

每个 Turn 持有一个 CancellationToken，在每个挂起点（流读取、提取请求、
写入地图状态前）检查；取消后该 Turn 不再修改任何共享状态。
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

from chatmap_core.domain.exceptions import TurnCancelled

T = TypeVar("T")


class CancellationToken:
    def __init__(self, turn_id: Optional[int] = None):
        self.turn_id = turn_id
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TurnCancelled(self.turn_id)

    async def wait(self) -> None:
        await self._event.wait()


async def wait_until_cancelled(aw: Awaitable[T], token: CancellationToken) -> T:
    """等待 aw 完成；若令牌先被取消，则取消 aw 并抛出 TurnCancelled。"""

    token.raise_if_cancelled()
    fut = asyncio.ensure_future(aw)
    waiter = asyncio.ensure_future(token.wait())
    waiter.add_done_callback(lambda _: fut.cancel())
    try:
        return await fut
    except asyncio.CancelledError:
        if token.cancelled:
            raise TurnCancelled(token.turn_id) from None
        raise
    finally:
        waiter.cancel()
