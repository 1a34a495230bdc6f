# ABOUTME: Ingestion module with the per-cycle pipeline and its scheduler.
# ABOUTME: Exposes IngestionPipeline, Scheduler, and the scheduler's lifecycle states.

from feed_pulse.ingest.pipeline import IngestionPipeline
from feed_pulse.ingest.scheduler import Scheduler, SchedulerState

__all__ = ["IngestionPipeline", "Scheduler", "SchedulerState"]
