"""Exclusive access to the shared router connection."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator

from dns_switcher.adapters.channel import CommandChannel
from dns_switcher.adapters.leases import LeaseRepository
from dns_switcher.adapters.options import OptionRepository
from dns_switcher.exceptions import ChannelFailureError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceTransaction:
    """Repositories bound to the channel for the duration of one transaction."""

    channel: CommandChannel
    leases: LeaseRepository
    options: OptionRepository


class DeviceSession:
    """Serialize whole command sequences against one router connection.

    A lease read at the start of an operation must still be valid when the
    operation mutates it, so operations never interleave: callers queue on a
    single lock for the full read-decide-mutate sequence. There is no timeout
    and no rollback; a failed step leaves whatever was already applied.
    """

    def __init__(self, channel: CommandChannel):
        self._channel = channel
        self._lock = asyncio.Lock()
        self.last_error: str | None = None
        self.last_success_at: datetime | None = None

    @property
    def channel(self) -> CommandChannel:
        return self._channel

    @asynccontextmanager
    async def transaction(self, label: str) -> AsyncIterator[DeviceTransaction]:
        async with self._lock:
            started = time.monotonic()
            logger.debug("Transaction %s started", label)
            try:
                yield DeviceTransaction(
                    channel=self._channel,
                    leases=LeaseRepository(self._channel),
                    options=OptionRepository(self._channel),
                )
            except ChannelFailureError as exc:
                self.last_error = exc.message
                raise
            else:
                self.last_error = None
                self.last_success_at = datetime.now(timezone.utc)
            finally:
                logger.debug(
                    "Transaction %s finished in %.3fs", label, time.monotonic() - started
                )
