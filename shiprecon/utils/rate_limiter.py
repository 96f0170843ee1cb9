"""
Minimum-interval rate limiting for outbound API calls.

ShipStation allows ~40 requests/min, Shopify ~2/sec, UPS is generous.
There is no backoff on 429 responses.
"""
import asyncio
import time
from typing import Optional

from shiprecon.config import get_settings

settings = get_settings()


class RateLimiter:
    """Ensures a minimum delay between calls that pass through ``wait()``."""

    def __init__(self, min_interval: float, name: str = "limiter"):
        self.min_interval = min_interval
        self.name = name
        self.last_call: float = 0.0
        self._lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _get_lock(self) -> asyncio.Lock:
        # One lock per event loop; asyncio.Lock waiters are served FIFO
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
        return self._lock

    async def wait(self):
        """Suspend until ``min_interval`` has passed since the last allowed call."""
        async with self._get_lock():
            elapsed = time.monotonic() - self.last_call
            if elapsed < self.min_interval:
                await asyncio.sleep(self.min_interval - elapsed)
            self.last_call = time.monotonic()


# Process-wide limiters, one per external API
shipstation_limiter = RateLimiter(settings.shipstation_min_interval, name="shipstation")
shopify_limiter = RateLimiter(settings.shopify_min_interval, name="shopify")
ups_limiter = RateLimiter(settings.ups_min_interval, name="ups")
