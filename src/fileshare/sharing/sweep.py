"""Physical deletion of long-expired Shares.

Runs detached from request handling on its own timer. Access control
never consults it: an expired Share is refused at read time whether or
not this sweep has removed the row yet.

Usage::

    sweeper = ExpiredShareSweeper(share_repo, SystemClock())
    report = await sweeper.sweep_once()
    # report.deleted rows whose expiry is older than now - retention
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..clock import Clock
from ..observability import get_logger
from ..observability.metrics import EXPIRED_SHARES_SWEPT_TOTAL
from ..protocols import ShareRepository

logger = get_logger(__name__)

DEFAULT_RETENTION = timedelta(days=30)


@dataclass(frozen=True, slots=True)
class SweepReport:
    """Result of one sweep.

    Attributes:
        deleted: Number of Share rows physically removed.
        cutoff: Rows expiring before this instant were eligible.
        sweep_ts: When the sweep ran.
    """

    deleted: int
    cutoff: datetime
    sweep_ts: datetime


class ExpiredShareSweeper:
    """Deletes Shares whose expiry lies further back than ``retention``.

    Args:
        shares: Share store.
        clock: Time source.
        retention: Grace period kept after expiry.
    """

    def __init__(
        self,
        shares: ShareRepository,
        clock: Clock,
        retention: timedelta = DEFAULT_RETENTION,
    ) -> None:
        self._shares = shares
        self._clock = clock
        self._retention = retention

    async def sweep_once(self) -> SweepReport:
        now = self._clock.now()
        cutoff = now - self._retention
        deleted = await self._shares.delete_expired_before(cutoff)
        EXPIRED_SHARES_SWEPT_TOTAL.inc(deleted)
        logger.info("expired_shares_swept", deleted=deleted, cutoff=cutoff.isoformat())
        return SweepReport(deleted=deleted, cutoff=cutoff, sweep_ts=now)

    async def run_forever(self, interval_seconds: float) -> None:
        """Sweep every ``interval_seconds`` until cancelled.

        A failing sweep is logged and retried on the next tick.
        """
        while True:
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("expired_share_sweep_failed")
            await asyncio.sleep(interval_seconds)
