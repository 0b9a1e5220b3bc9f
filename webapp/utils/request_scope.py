# webapp/utils/request_scope.py
import asyncio
import logging
from typing import Awaitable, Set, TypeVar

from fastapi import Request

from config import settings
from utils.errors import RequestAbandonedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestScope:
    """
    Ties backend calls to the lifetime of one incoming request.

    Once the scope is closed, in-flight calls are cancelled and results that
    still arrive are discarded instead of being returned to the caller.
    Calls started with `cancel_on_close=False` are left to finish (their
    side effects stand) but their result is still not returned.
    """

    def __init__(self, name: str = "request"):
        self.name = name
        self._closed = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self, awaitable: Awaitable[T], cancel_on_close: bool = True) -> T:
        if self._closed:
            # Never started, so close the coroutine to avoid a "never awaited" warning
            close = getattr(awaitable, "close", None)
            if close:
                close()
            raise RequestAbandonedError()

        task = asyncio.ensure_future(awaitable)
        if cancel_on_close:
            self._tasks.add(task)
        try:
            result = await task
        except asyncio.CancelledError:
            if self._closed:
                raise RequestAbandonedError()
            raise
        finally:
            self._tasks.discard(task)

        if self._closed:
            logger.info("Discarding late backend result for %s", self.name)
            raise RequestAbandonedError()
        return result

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for task in list(self._tasks):
            if not task.done():
                task.cancel()


async def watch_disconnect(request: Request, scope: RequestScope, interval: float) -> None:
    while not scope.closed:
        if await request.is_disconnected():
            logger.info("Client disconnected, closing %s", scope.name)
            scope.close()
            return
        await asyncio.sleep(interval)


# FastAPI dependency: one scope per request, closed when the client goes away or the request finishes
async def get_request_scope(request: Request):
    scope = RequestScope(f"{request.method} {request.url.path}")
    watcher = asyncio.ensure_future(watch_disconnect(request, scope, settings.DISCONNECT_POLL_SECONDS))
    try:
        yield scope
    finally:
        watcher.cancel()
        scope.close()
