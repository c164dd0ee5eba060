"""
Auto-pilot: runs generation cycles back to back with a cooldown in between.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from farsihub.core.logbook import CycleLog, Severity
from farsihub.core.orchestrator import CycleOrchestrator
from farsihub.errors import FarsiHubError

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = 30.0  # seconds


@dataclass
class SchedulerState:
    """
    Attributes:
        enabled: Whether a finished cycle should schedule another
        next_run_at: Clock time of the next cycle while a cooldown is pending
    """
    enabled: bool = False
    next_run_at: Optional[float] = None


class GenerationScheduler:
    """
    Single-flight cycle loop.

    A cycle runs as soon as start() is called. When it resolves, and the
    scheduler is still enabled, a cooldown is armed and the next cycle starts
    after it. Only one loop task exists, so cycles never overlap. stop() ends
    the loop at the next check; a cycle already in flight is allowed to finish.
    """
    def __init__(self, orchestrator: CycleOrchestrator, log: CycleLog,
                 cooldown: float = DEFAULT_COOLDOWN, max_cycles: Optional[int] = None,
                 clock: Callable[[], float] = time.time):
        """
        Initialize the GenerationScheduler.

        Args:
            orchestrator: Runs a single cycle
            log: Admin log sink
            cooldown: Seconds between the end of one cycle and the start of the next
            max_cycles: Stop by itself after this many cycles (None = run until stopped)
            clock: Source of the current time, in seconds
        """
        self.orchestrator = orchestrator
        self.log = log
        self.cooldown = cooldown
        self.max_cycles = max_cycles
        self.clock = clock
        self.state = SchedulerState()
        self.cycles_run = 0
        self.cycles_failed = 0
        self._task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None
        self._restart = False

    def start(self) -> bool:
        """
        Enable the loop and run a cycle right away. Must be called from a
        running event loop.

        Returns:
            False if the scheduler was already running
        """
        if self.state.enabled:
            return False
        self.state.enabled = True
        self.log.log("🚀 Auto-Pilot ENGAGED", Severity.WARNING)

        if self._task is not None and not self._task.done():
            # The previous loop is finishing a cycle after stop(). It runs the
            # next cycle as soon as that one resolves, without a cooldown.
            self._restart = True
            return True

        self._restart = False
        self._wake = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._loop())
        return True

    def stop(self) -> bool:
        """
        Disable the loop. Cancels a pending cooldown, never a running cycle.

        Returns:
            False if the scheduler was not running
        """
        if not self.state.enabled:
            return False
        self.state.enabled = False
        self.state.next_run_at = None
        if self._wake is not None:
            self._wake.set()
        self.log.log("🛑 Auto-Pilot STOPPED", Severity.WARNING)
        return True

    def is_running(self) -> bool:
        return self.state.enabled

    def is_busy(self) -> bool:
        """True while the loop task exists, including a cycle finishing after stop()."""
        return self._task is not None and not self._task.done()

    def next_run_eta(self) -> Optional[timedelta]:
        """Time left until the next cycle, or None when none is scheduled."""
        if not self.state.enabled or self.state.next_run_at is None:
            return None
        return timedelta(seconds=max(0.0, self.state.next_run_at - self.clock()))

    async def wait_stopped(self) -> None:
        """Wait until the loop task has exited."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def shutdown(self) -> None:
        """Stop and wait for any in-flight cycle to finish."""
        self.stop()
        await self.wait_stopped()

    async def _loop(self) -> None:
        while True:
            await self._run_cycle()

            if self.max_cycles is not None and self.cycles_run >= self.max_cycles:
                logger.info(f"Reached {self.max_cycles} cycle(s), stopping")
                self.stop()

            if not self.state.enabled:
                break
            if self._restart:
                self._restart = False
                continue

            self.state.next_run_at = self.clock() + self.cooldown
            self._wake.clear()
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.cooldown)
            except asyncio.TimeoutError:
                pass

            # stop() may have landed during the cooldown
            if not self.state.enabled:
                break
            self._restart = False
            self.state.next_run_at = None

        self.state.next_run_at = None

    async def _run_cycle(self) -> None:
        self.cycles_run += 1
        try:
            record = await self.orchestrator.run_cycle()
        except FarsiHubError as e:
            # The orchestrator already wrote the admin log entry
            self.cycles_failed += 1
            logger.error(f"Cycle {self.cycles_run} failed: {e}")
        except Exception as e:  # noqa: BLE001
            self.cycles_failed += 1
            self.log.log(f"❌ Cycle failed: {e}", Severity.ERROR)
            logger.exception(f"Unexpected error in cycle {self.cycles_run}")
        else:
            logger.info(f"Cycle {self.cycles_run} published {record.id}")
