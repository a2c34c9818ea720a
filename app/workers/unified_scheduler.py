"""
Interval scheduler for background jobs.

All periodic work in the service (currently the washer safety sweep) goes
through one :class:`UnifiedScheduler` owned by the service container.

Design:
- Single loop thread that wakes every ``check_interval_seconds``
- Bounded worker pool for job execution
- A job never overlaps itself; a tick that comes due while the previous
  run is still executing is skipped
- Fixed-rate scheduling: the next run advances from the scheduled time,
  not from completion, and missed slots are skipped rather than piled up
- A job that raises is recorded as a failure and stays scheduled
"""

from __future__ import annotations

import heapq
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from app.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    """Result of a job execution."""

    job_id: str
    success: bool
    started_at: datetime
    completed_at: datetime
    result: Any = None
    error: str | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "error": self.error,
        }


@dataclass
class ScheduledJob:
    """An interval job and its execution counters."""

    job_id: str
    func: Callable[..., Any]
    interval_seconds: float
    namespace: str = "default"
    args: tuple = field(default_factory=tuple)
    kwargs: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True

    # Monotonic due time; wall-clock times below are for reporting only
    due_at: float | None = None
    next_run: datetime | None = None
    last_run: datetime | None = None
    running: bool = False
    run_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (for API responses)."""
        return {
            "job_id": self.job_id,
            "namespace": self.namespace,
            "enabled": self.enabled,
            "interval_seconds": self.interval_seconds,
            "running": self.running,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "skipped_count": self.skipped_count,
            "last_error": self.last_error,
        }


class UnifiedScheduler:
    """
    Interval scheduler with a heap of due times.

    Heap entries are ``(due_at, seq, job_id)`` tuples. Entries are never
    removed in place; an entry is skipped when its job was removed or
    rescheduled after it was pushed.
    """

    def __init__(
        self,
        check_interval_seconds: float = 0.5,
        max_history: int = 200,
        max_workers: int = 2,
        *,
        clock: Clock = utc_now,
    ):
        """
        Args:
            check_interval_seconds: How often the loop looks for due jobs
            max_history: Maximum job execution history to keep
            max_workers: Maximum number of concurrent job executions
            clock: Wall clock used for run timestamps
        """
        self._check_interval = float(check_interval_seconds)
        self._max_history = int(max_history)
        self._max_workers = int(max_workers)
        self._clock = clock

        self._jobs: dict[str, ScheduledJob] = {}
        self._job_heap: list[tuple[float, int, str]] = []
        self._heap_seq = 0
        self._history: list[JobResult] = []

        self._running = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._job_lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None

    # ==================== Job Scheduling ====================

    def schedule_interval(
        self,
        job_id: str,
        func: Callable[..., Any],
        interval_seconds: float,
        *,
        namespace: str | None = None,
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
        start_immediately: bool = False,
    ) -> ScheduledJob:
        """Run ``func`` every ``interval_seconds``. Replaces an existing job with the same id."""
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        if namespace is None:
            namespace = job_id.split(".")[0] if "." in job_id else "default"

        job = ScheduledJob(
            job_id=job_id,
            func=func,
            interval_seconds=float(interval_seconds),
            namespace=namespace,
            args=args,
            kwargs=kwargs or {},
        )
        delay = 0.0 if start_immediately else job.interval_seconds
        with self._job_lock:
            self._jobs[job_id] = job
            self._set_due(job, time.monotonic() + delay)

        logger.info("Scheduled interval job: %s (every %ss)", job_id, interval_seconds)
        return job

    def remove_job(self, job_id: str) -> bool:
        """Remove a job. A run already in flight finishes but is not rescheduled."""
        with self._job_lock:
            job = self._jobs.pop(job_id, None)
        if job is None:
            return False
        job.enabled = False
        logger.info("Removed job: %s", job_id)
        return True

    def get_job(self, job_id: str) -> ScheduledJob | None:
        return self._jobs.get(job_id)

    def get_jobs(self, namespace: str | None = None) -> list[ScheduledJob]:
        jobs = list(self._jobs.values())
        if namespace:
            jobs = [j for j in jobs if j.namespace == namespace]
        return jobs

    def run_now(self, job_id: str) -> JobResult | None:
        """Run a scheduled job synchronously in the caller's thread."""
        with self._job_lock:
            job = self._jobs.get(job_id)
            if job is None:
                logger.error("Job not found: %s", job_id)
                return None
            if job.running:
                logger.info("Job %s already running; run_now skipped", job_id)
                return None
            job.running = True
        return self._execute_job(job)

    def _set_due(self, job: ScheduledJob, due_at: float) -> None:
        job.due_at = due_at
        job.next_run = self._wall_time_for(due_at)
        self._heap_seq += 1
        heapq.heappush(self._job_heap, (due_at, self._heap_seq, job.job_id))

    def _wall_time_for(self, due_at: float) -> datetime:
        return self._clock() + timedelta(seconds=max(0.0, due_at - time.monotonic()))

    # ==================== Scheduler Control ====================

    def start(self) -> None:
        """Start the scheduler background thread."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="SchedulerJob",
            )

        self._stop_event.clear()
        self._running = True
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="UnifiedScheduler")
        self._thread.start()
        logger.info("UnifiedScheduler started")

    def stop(self, wait: bool = True, timeout: float = 5.0) -> None:
        """
        Stop the scheduler.

        Args:
            wait: Wait for the loop thread and in-flight jobs to finish
            timeout: Maximum wait for the loop thread in seconds
        """
        if not self._running:
            return

        self._running = False
        self._stop_event.set()

        if wait and self._thread:
            self._thread.join(timeout=timeout)
        self._thread = None

        if self._executor:
            self._executor.shutdown(wait=wait)
            self._executor = None

        logger.info("UnifiedScheduler stopped")

    def shutdown(self, wait: bool = True, timeout: float = 5.0) -> None:
        """Alias for stop(); matches other services' shutdown() convention."""
        self.stop(wait=wait, timeout=timeout)

    def is_running(self) -> bool:
        return self._running

    def _run_loop(self) -> None:
        logger.debug("Scheduler loop started")
        while not self._stop_event.is_set():
            try:
                self._process_due_jobs()
            except Exception as e:
                logger.error("Error in scheduler loop: %s", e, exc_info=True)
            self._stop_event.wait(self._check_interval)
        logger.debug("Scheduler loop ended")

    # ==================== Core Scheduling Logic ====================

    def _process_due_jobs(self) -> None:
        """Submit every due job to the worker pool and reschedule it."""
        now = time.monotonic()

        with self._job_lock:
            while self._job_heap and self._job_heap[0][0] <= now:
                due_at, _seq, job_id = heapq.heappop(self._job_heap)

                job = self._jobs.get(job_id)
                if job is None or not job.enabled or job.due_at != due_at:
                    continue  # stale heap entry

                next_due = due_at + job.interval_seconds
                if next_due <= now:
                    missed = int((now - next_due) // job.interval_seconds) + 1
                    next_due += missed * job.interval_seconds
                self._set_due(job, next_due)

                if job.running:
                    job.skipped_count += 1
                    logger.debug("Job %s still running; skipping this tick", job_id)
                    continue

                if self._executor is None:
                    logger.warning("Executor unavailable; skipping job execution")
                    continue

                job.running = True
                try:
                    self._executor.submit(self._execute_job, job)
                except RuntimeError as e:
                    job.running = False
                    logger.error("Failed to submit job %s to executor: %s", job_id, e)

    def _execute_job(self, job: ScheduledJob) -> JobResult:
        started_at = self._clock()
        try:
            result = job.func(*job.args, **job.kwargs)
        except Exception as e:
            completed_at = self._clock()
            with self._job_lock:
                job.running = False
                job.last_run = started_at
                job.run_count += 1
                job.failure_count += 1
                job.last_error = str(e)
            logger.error("Job %s failed: %s", job.job_id, e, exc_info=True)
            job_result = JobResult(
                job_id=job.job_id,
                success=False,
                started_at=started_at,
                completed_at=completed_at,
                error=str(e),
            )
        else:
            completed_at = self._clock()
            with self._job_lock:
                job.running = False
                job.last_run = started_at
                job.run_count += 1
                job.success_count += 1
                job.last_error = None
            job_result = JobResult(
                job_id=job.job_id,
                success=True,
                started_at=started_at,
                completed_at=completed_at,
                result=result,
            )
            logger.debug("Job %s completed in %.3fs", job.job_id, job_result.duration_seconds)

        self._record_history(job_result)
        return job_result

    def _record_history(self, result: JobResult) -> None:
        with self._job_lock:
            self._history.append(result)
            if len(self._history) > self._max_history:
                self._history = self._history[-self._max_history :]

    # ==================== Status & History ====================

    def get_status(self) -> dict[str, Any]:
        with self._job_lock:
            return {
                "running": self._running,
                "total_jobs": len(self._jobs),
                "jobs": [job.to_dict() for job in self._jobs.values()],
                "history_size": len(self._history),
                "recent_failures": sum(1 for r in self._history[-20:] if not r.success),
                "max_workers": self._max_workers,
            }

    def health_check(self) -> dict[str, Any]:
        """
        Structured health report.

        ``health`` is ``unhealthy`` when the loop is stopped or more than
        half of recent runs failed, ``degraded`` when a job is overdue by
        three intervals or more than a fifth of recent runs failed, and
        ``healthy`` otherwise.
        """
        with self._job_lock:
            now = self._clock()
            recent_history = self._history[-50:]
            recent_failures = [r for r in recent_history if not r.success]
            failure_rate = len(recent_failures) / len(recent_history) if recent_history else 0.0

            stale_jobs = []
            for job in self._jobs.values():
                if job.last_run is None:
                    continue
                since_last = (now - job.last_run).total_seconds()
                if since_last > job.interval_seconds * 3:
                    stale_jobs.append(
                        {
                            "job_id": job.job_id,
                            "last_run": job.last_run.isoformat(),
                            "expected_interval_seconds": job.interval_seconds,
                            "overdue_seconds": round(since_last - job.interval_seconds, 3),
                        }
                    )

            if not self._running:
                health, reason = "unhealthy", "Scheduler is not running"
            elif failure_rate > 0.5:
                health, reason = "unhealthy", f"High failure rate: {failure_rate:.0%}"
            elif stale_jobs:
                health, reason = "degraded", f"{len(stale_jobs)} stale job(s) detected"
            elif failure_rate > 0.2:
                health, reason = "degraded", f"Elevated failure rate: {failure_rate:.0%}"
            else:
                health, reason = "healthy", "All systems operational"

            failure_summary: dict[str, dict[str, Any]] = {}
            for r in recent_failures:
                entry = failure_summary.setdefault(r.job_id, {"count": 0, "last_error": None})
                entry["count"] += 1
                entry["last_error"] = r.error

            return {
                "health": health,
                "reason": reason,
                "timestamp": now.isoformat(),
                "scheduler_running": self._running,
                "statistics": {
                    "total_jobs": len(self._jobs),
                    "recent_executions": len(recent_history),
                    "recent_failures": len(recent_failures),
                    "failure_rate": round(failure_rate, 3),
                },
                "stale_jobs": stale_jobs,
                "failure_summary": failure_summary,
                "thread_pool_active": self._executor is not None,
            }
