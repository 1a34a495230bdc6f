# ABOUTME: Repeating single-flight scheduler for ingestion cycles.
# ABOUTME: Runs a cycle immediately, then on every tick unless one is in flight; drains on shutdown.

import asyncio
from enum import Enum

import structlog

from feed_pulse.errors import IngestError
from feed_pulse.ingest.pipeline import IngestionPipeline
from feed_pulse.utils.duration import format_duration

log = structlog.get_logger()


class SchedulerState(str, Enum):
    """Timer lifecycle."""

    ARMED = "armed"
    DRAINING = "draining"
    STOPPED = "stopped"


class Scheduler:
    """Drives IngestionPipeline.run_cycle on a fixed interval, one cycle at a time.

    Ticks that arrive while a cycle is in flight are dropped, never queued.
    request_shutdown() disarms the timer; run() then waits for the in-flight
    cycle to finish before setting the stopped event and returning.
    """

    def __init__(self, pipeline: IngestionPipeline, interval_ms: int) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.pipeline = pipeline
        self.interval_ms = interval_ms
        self.state = SchedulerState.ARMED
        self.current_cycle: asyncio.Task[None] | None = None
        self.cycles_started = 0
        self.skipped_ticks = 0
        self.stopped = asyncio.Event()
        self._shutdown = asyncio.Event()

    @property
    def interval(self) -> float:
        """Tick interval in seconds."""
        return self.interval_ms / 1000

    async def run(self) -> None:
        """Run cycles until shutdown is requested and the last cycle has finished."""
        loop = asyncio.get_running_loop()
        log.info("scheduler_started", interval=format_duration(self.interval_ms))

        self.tick()
        next_tick = loop.time() + self.interval
        while not self._shutdown.is_set():
            try:
                await asyncio.wait_for(
                    self._shutdown.wait(), timeout=max(0.0, next_tick - loop.time())
                )
            except TimeoutError:
                self.tick()
                next_tick += self.interval
                if next_tick < loop.time():
                    next_tick = loop.time() + self.interval

        await self._drain()

    def tick(self) -> bool:
        """Start a cycle if none is in flight. Returns whether one was started."""
        if self.state is not SchedulerState.ARMED:
            log.debug("tick_ignored", state=self.state.value)
            return False

        if self.current_cycle is not None:
            self.skipped_ticks += 1
            log.info("tick_skipped", reason="cycle_in_flight", skipped=self.skipped_ticks)
            return False

        self.cycles_started += 1
        self.current_cycle = asyncio.create_task(
            self._run_cycle(), name=f"ingest_cycle_{self.cycles_started}"
        )
        return True

    def request_shutdown(self) -> bool:
        """Stop starting new cycles. Only the first call has any effect.

        Returns:
            True if this call initiated shutdown, False if it was already underway.
        """
        if self._shutdown.is_set():
            log.info("shutdown_already_requested", state=self.state.value)
            return False

        log.info("shutdown_requested", cycle_in_flight=self.current_cycle is not None)
        self.state = SchedulerState.DRAINING
        self._shutdown.set()
        return True

    async def wait_stopped(self) -> None:
        """Wait until the scheduler has drained and stopped."""
        await self.stopped.wait()

    async def _run_cycle(self) -> None:
        try:
            result = await self.pipeline.run_cycle()
            log.debug(
                "cycle_completed",
                feed=result.feed_name,
                new=result.new_count,
                duplicates=result.duplicate_count,
            )
        except IngestError as e:
            log.error("cycle_failed", error_type=type(e).__name__, error=str(e))
        except Exception:
            log.exception("cycle_crashed")
        finally:
            self.current_cycle = None

    async def _drain(self) -> None:
        cycle = self.current_cycle
        if cycle is not None:
            log.info("waiting_for_cycle", cycle=cycle.get_name())
            await asyncio.wait([cycle])

        self.state = SchedulerState.STOPPED
        self.stopped.set()
        log.info("scheduler_stopped", cycles=self.cycles_started, skipped_ticks=self.skipped_ticks)
