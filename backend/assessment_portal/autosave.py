"""Debounced and explicit answer saves for task assessments."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

SaveFn = Callable[[str, BaseModel], Awaitable[None]]


class SaveCoordinator:
    def __init__(self, save: SaveFn, *, delay: float = 3.0) -> None:
        self._save = save
        self.delay = delay
        self._pending: Dict[str, asyncio.Task] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        self._acknowledged: Dict[str, BaseModel] = {}

    def acknowledged(self, key: str) -> Optional[BaseModel]:
        return self._acknowledged.get(key)

    def mark_acknowledged(self, key: str, value: BaseModel) -> None:
        self._acknowledged[key] = value

    def has_pending(self, key: Optional[str] = None) -> bool:
        if key is None:
            return bool(self._pending)
        return key in self._pending

    def schedule(self, key: str, value: BaseModel) -> None:
        """Save ``value`` after ``delay`` seconds unless something newer arrives first."""
        self._cancel_pending(key)
        self._pending[key] = asyncio.create_task(self._debounced(key, value))

    async def save_now(self, key: str, value: BaseModel) -> bool:
        self._cancel_pending(key)
        return await self._post(key, value)

    async def drain(self) -> None:
        for key in list(self._pending):
            self._cancel_pending(key)
        inflight = [t for t in self._inflight.values() if not t.done()]
        if inflight:
            await asyncio.gather(*inflight, return_exceptions=True)

    def cancel_all(self) -> None:
        for key in list(self._pending):
            self._cancel_pending(key)
        for task in self._inflight.values():
            task.cancel()
        self._inflight.clear()

    def _cancel_pending(self, key: str) -> None:
        task = self._pending.pop(key, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _debounced(self, key: str, value: BaseModel) -> None:
        await asyncio.sleep(self.delay)
        if self._pending.get(key) is asyncio.current_task():
            del self._pending[key]
        await self._post(key, value)

    async def _post(self, key: str, value: BaseModel) -> bool:
        current = self._inflight.get(key)
        if current is not None and not current.done():
            # one post per key at a time; the newer value goes out after it
            await asyncio.gather(current, return_exceptions=True)
        if self._acknowledged.get(key) == value:
            return True
        task = asyncio.create_task(self._save(key, value))
        self._inflight[key] = task
        try:
            await task
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Saving answer %s failed", key)
            return False
        finally:
            if self._inflight.get(key) is task:
                del self._inflight[key]
        self._acknowledged[key] = value
        return True
