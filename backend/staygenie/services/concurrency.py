"""Bounded concurrency pools — one fixed-capacity gate per external call category."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BoundedPool:
    """Caps in-flight calls of one category. Waiters are served in submission order."""

    def __init__(self, name: str, capacity: int):
        if capacity < 1:
            raise ValueError(f"Pool {name} needs a capacity of at least 1, got {capacity}")
        self.name = name
        self.capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self.in_flight = 0
        self.peak_in_flight = 0
        self.submitted = 0

    async def run(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        self.submitted += 1
        async with self._semaphore:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                return await func(*args, **kwargs)
            finally:
                self.in_flight -= 1

    def stats(self) -> dict:
        return {
            "name": self.name,
            "capacity": self.capacity,
            "in_flight": self.in_flight,
            "peak_in_flight": self.peak_in_flight,
            "submitted": self.submitted,
        }


class ConcurrencyPools:
    """Independent detail and sentiment pools so a slow category cannot starve the other."""

    def __init__(self, detail_capacity: int = 6, sentiment_capacity: int = 6):
        self.detail = BoundedPool("detail", detail_capacity)
        self.sentiment = BoundedPool("sentiment", sentiment_capacity)
        logger.debug(
            f"Concurrency pools ready: detail={detail_capacity}, sentiment={sentiment_capacity}"
        )
