"""
OrchestratorScheduler - in-process cron for the orchestrator run modes.

Sleeps until the next mode is due (capped at 60s), then runs every due mode
in turn. A failing run is logged and the schedule moves on. Deployments that
call ``POST /api/orchestrator/run`` from an external cron leave this off.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from croniter import croniter

from .constants import MODE_DAILY, MODE_INSTANT, MODE_MONTHLY, MODE_WEEKLY, RUN_MODES

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULES: Dict[str, str] = {
    MODE_INSTANT: "*/2 * * * *",
    MODE_DAILY: "0 20 * * *",
    MODE_WEEKLY: "0 21 * * 0",
    MODE_MONTHLY: "0 22 1 * *",
}

# Maximum sleep interval before checking again
MAX_SLEEP_S = 60.0

# Minimum sleep to avoid busy-spin
MIN_SLEEP_S = 0.1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_fire_time(expr: str, after: datetime) -> datetime:
    """Next time *expr* fires strictly after *after*."""
    nxt = croniter(expr, after).get_next(datetime)
    if nxt <= after:
        nxt = croniter(expr, after.replace(microsecond=0) + timedelta(seconds=1)).get_next(datetime)
    return nxt


class OrchestratorScheduler:
    """
    Args:
        service: anything with ``async run(mode)``, normally OrchestratorService
        schedules: mode -> cron expression; modes left out are not scheduled
    """

    def __init__(
        self,
        service,
        schedules: Optional[Dict[str, str]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        schedules = dict(DEFAULT_SCHEDULES if schedules is None else schedules)
        for mode, expr in schedules.items():
            if mode not in RUN_MODES:
                raise ValueError(f"Unknown orchestrator mode in schedule: {mode}")
            if not croniter.is_valid(expr):
                raise ValueError(f"Invalid cron expression for {mode}: {expr}")
        self._service = service
        self._schedules = schedules
        self._clock = clock
        self._next_runs: Dict[str, datetime] = {}
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None

    @property
    def next_runs(self) -> Dict[str, datetime]:
        return dict(self._next_runs)

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._running:
            return
        now = self._clock()
        self._next_runs = {mode: next_fire_time(expr, now) for mode, expr in self._schedules.items()}
        self._running = True
        self._loop_task = asyncio.create_task(self._timer_loop())
        logger.info(f"[Scheduler] started with {len(self._schedules)} schedule(s)")

    async def stop(self) -> None:
        self._running = False
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        logger.info("[Scheduler] stopped")

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    async def _timer_loop(self) -> None:
        while self._running:
            await self.tick()
            await asyncio.sleep(self._sleep_seconds())

    def _sleep_seconds(self) -> float:
        if not self._next_runs:
            return MAX_SLEEP_S
        delay = (min(self._next_runs.values()) - self._clock()).total_seconds()
        return max(MIN_SLEEP_S, min(delay, MAX_SLEEP_S))

    async def tick(self) -> int:
        """Run every mode that is due now. Returns how many ran."""
        now = self._clock()
        ran = 0
        for mode, due_at in list(self._next_runs.items()):
            if due_at > now:
                continue
            self._next_runs[mode] = next_fire_time(self._schedules[mode], now)
            try:
                await self._service.run(mode)
            except Exception as e:
                logger.error(f"[Scheduler] {mode} run failed: {e}")
            ran += 1
        return ran
