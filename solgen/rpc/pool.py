"""RPC endpoint rotation and process-wide request throttling."""

import asyncio
from collections.abc import Callable
from time import monotonic

from loguru import logger

from solgen.config import NetworkConfig, load_network_config

ConfigProvider = Callable[[], NetworkConfig]


class EndpointPool:
    """Ordered list of RPC endpoints with a cyclic cursor.

    The endpoint list is re-read from configuration on every access. When
    it changes (e.g. the user sets RPC_ENDPOINT), the pool is replaced and
    the cursor goes back to the first endpoint.
    """

    def __init__(self, config_provider: ConfigProvider = load_network_config) -> None:
        self._config_provider = config_provider
        self._endpoints: list[str] = []
        self._index = 0
        self.refresh()

    def refresh(self) -> list[str]:
        """Reload the endpoint list from configuration."""
        endpoints = self._config_provider().endpoints
        if not endpoints:
            raise ValueError("Endpoint pool cannot be empty")
        if endpoints != self._endpoints:
            self._endpoints = endpoints
            self._index = 0
            logger.info("RPC endpoints: {}", ", ".join(endpoints))
        return list(self._endpoints)

    @property
    def endpoints(self) -> list[str]:
        return list(self._endpoints)

    @property
    def size(self) -> int:
        return len(self._endpoints)

    @property
    def index(self) -> int:
        return self._index

    def current_endpoint(self) -> str:
        """Return the active endpoint."""
        self.refresh()
        return self._endpoints[self._index]

    def advance(self) -> str:
        """Switch to the next endpoint, wrapping around. Returns the new one."""
        self._index = (self._index + 1) % len(self._endpoints)
        endpoint = self._endpoints[self._index]
        logger.warning("Switching to RPC endpoint: {}", endpoint)
        return endpoint


class RateLimiter:
    """Grants at most one request slot per REQUEST_DELAY window.

    A single limiter is shared by every RPC call in the process. Callers
    queue on a lock, so concurrent fan-out still dispatches one request at
    a time. The delay is re-read from configuration on every call.
    """

    def __init__(self, config_provider: ConfigProvider = load_network_config) -> None:
        self._config_provider = config_provider
        self._last_slot: float | None = None
        self._lock = asyncio.Lock()

    @property
    def min_delay(self) -> float:
        """Current minimum delay in seconds."""
        return self._config_provider().request_delay / 1000.0

    async def wait_for_slot(self) -> None:
        """Suspend until at least min_delay has passed since the last slot."""
        async with self._lock:
            delay = self.min_delay
            if self._last_slot is not None:
                remaining = delay - (monotonic() - self._last_slot)
                if remaining > 0:
                    logger.debug(
                        "Delaying request by {:.0f}ms to avoid rate limiting",
                        remaining * 1000,
                    )
                # Loop timers may fire a clock tick early
                while remaining > 0:
                    await asyncio.sleep(remaining)
                    remaining = delay - (monotonic() - self._last_slot)
            self._last_slot = monotonic()
