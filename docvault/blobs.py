import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

from docvault.models import BlobHandle

logger = logging.getLogger(__name__)

ADDRESS_PREFIX = "blob:docvault/"


class ReleaseToken:
    __slots__ = ("consumed",)

    def __init__(self):
        self.consumed = False

    def consume(self) -> bool:
        if self.consumed:
            return False
        self.consumed = True
        return True


@dataclass
class _Entry:
    handle: BlobHandle
    payload: bytes
    token: ReleaseToken = field(default_factory=ReleaseToken)
    timer: asyncio.TimerHandle | None = None


class BlobLifecycleManager:
    def __init__(
        self,
        default_ttl: float = 3600,
        on_release: Callable[[BlobHandle, str], None] | None = None,
    ):
        self.default_ttl = default_ttl
        self.on_release = on_release
        self._entries: dict[str, _Entry] = {}

    @property
    def live_count(self) -> int:
        return len(self._entries)

    def create(self, payload: bytes, content_type: str, ttl: float | None = None) -> BlobHandle:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        loop = asyncio.get_running_loop()

        handle = BlobHandle(
            local_address=f"{ADDRESS_PREFIX}{uuid4()}",
            source_content_type=content_type,
            created_at=datetime.now(timezone.utc),
            ttl=ttl,
            size=len(payload),
        )
        entry = _Entry(handle=handle, payload=bytes(payload))
        entry.timer = loop.call_later(ttl, self._release, handle.local_address, "timer")
        self._entries[handle.local_address] = entry
        logger.debug("created %s (%s, %d bytes, ttl=%ss)", handle.local_address, content_type, handle.size, ttl)
        return handle

    def release(self, handle: BlobHandle | None) -> None:
        if handle is None:
            return
        self._release(handle.local_address, "teardown")

    def _release(self, address: str, reason: str) -> bool:
        entry = self._entries.get(address)
        if entry is None or not entry.token.consume():
            return False
        del self._entries[address]
        if entry.timer is not None:
            entry.timer.cancel()
        logger.debug("released %s via %s", address, reason)
        if self.on_release is not None:
            self.on_release(entry.handle, reason)
        return True

    def is_live(self, handle: BlobHandle) -> bool:
        return handle.local_address in self._entries

    def read(self, handle: BlobHandle) -> bytes:
        entry = self._entries.get(handle.local_address)
        if entry is None:
            raise KeyError(f"{handle.local_address} has been released")
        return entry.payload

    def close(self) -> None:
        for address in list(self._entries):
            self._release(address, "teardown")
