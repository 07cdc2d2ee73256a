import asyncio
from collections import defaultdict
from typing import DefaultDict


class SpotLockRegistry:
    """One asyncio lock per parking spot, so booking writes for a spot run one at a time."""

    def __init__(self):
        self._locks: DefaultDict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def for_spot(self, spot_id: str) -> asyncio.Lock:
        return self._locks[spot_id]


spot_locks = SpotLockRegistry()
