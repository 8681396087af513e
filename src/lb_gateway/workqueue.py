from __future__ import annotations

import asyncio
import logging
import zlib
from typing import Callable

from .logs import log_json

Handler = Callable[[str], object]


class WorkQueueFull(Exception):
    pass


class KeyedWorkQueue:
    """
    Sharded work queue keyed by object key.

    A key always hashes to the same shard and each shard has a single
    worker, so work for one key never runs concurrently. A key that is
    already waiting is not queued twice.
    """

    def __init__(self, *, shards: int, queue_max: int) -> None:
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._queue_max = queue_max
        self._queues: list[asyncio.Queue[str]] = [
            asyncio.Queue(maxsize=queue_max) for _ in range(shards)
        ]
        self._pending: set[str] = set()
        self._tasks: list[asyncio.Task[None]] = []
        self._handler: Handler | None = None

    @property
    def queue_max(self) -> int:
        return self._queue_max

    @property
    def shards(self) -> int:
        return len(self._queues)

    def shard_for(self, key: str) -> int:
        return zlib.crc32(key.encode("utf-8")) % len(self._queues)

    def pending_counts(self) -> dict[str, int]:
        return {f"shard-{index}": queue.qsize() for index, queue in enumerate(self._queues)}

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def enqueue(self, key: str) -> bool:
        """Queue ``key``; returns False when it is already waiting."""
        if key in self._pending:
            return False
        queue = self._queues[self.shard_for(key)]
        try:
            queue.put_nowait(key)
        except asyncio.QueueFull as exc:
            raise WorkQueueFull("queue full") from exc
        self._pending.add(key)
        return True

    async def start(self, handler: Handler) -> None:
        if self._tasks:
            raise RuntimeError("work queue already started")
        self._handler = handler
        self._tasks = [
            asyncio.create_task(self._worker(index)) for index in range(len(self._queues))
        ]

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def drain(self) -> None:
        await asyncio.gather(*(queue.join() for queue in self._queues))

    async def _worker(self, index: int) -> None:
        queue = self._queues[index]
        while True:
            key = await queue.get()
            # Events arriving while the key is being handled queue it again.
            self._pending.discard(key)
            try:
                await asyncio.to_thread(self._handler, key)
            except Exception as exc:
                log_json(
                    logging.ERROR,
                    "work.failed",
                    key=key,
                    shard=index,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            finally:
                queue.task_done()
