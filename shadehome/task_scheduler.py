# ShadeHome - task_scheduler.py | see version.py for version info
"""
Generic task scheduler for periodic and one-shot tasks.
All cycles (ephemeris, schedules, rules, safety, statistics) and the
motor completion timers run on its single worker thread, so a cycle
never overlaps itself.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Dict

logger = logging.getLogger("shadehome.task_scheduler")


def _to_timestamp(value) -> float:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    return float(value)


class ScheduledTask:
    """A registered periodic or one-shot task."""

    def __init__(self, name: str, callback: Callable, interval_seconds: float,
                 next_run: float, one_shot: bool = False, enabled: bool = True):
        self.name = name
        self.callback = callback
        self.interval_seconds = interval_seconds
        self.one_shot = one_shot
        self.enabled = enabled
        self.last_run: Optional[float] = None
        self.next_run: float = next_run
        self.run_count: int = 0
        self.error_count: int = 0
        self.last_error: Optional[str] = None
        self.last_duration: float = 0


class TaskScheduler:
    """Central scheduler that runs registered tasks in a single thread.

    Usage:
        scheduler = TaskScheduler()
        scheduler.register("schedules", controller.run_schedules, interval_seconds=60)
        scheduler.schedule_once("motion_done:cov_1", finish, delay_seconds=12)
        scheduler.start()

    ``clock`` returns epoch seconds and can be replaced in tests; together
    with ``run_pending`` this drives the scheduler without a thread.
    """

    def __init__(self, tick_interval: float = 1.0, clock: Callable[[], float] = time.time):
        self._tasks: Dict[str, ScheduledTask] = {}
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._tick_interval = tick_interval
        self._clock = clock

    def register(self, name: str, callback: Callable, interval_seconds: float,
                 run_immediately: bool = False, enabled: bool = True) -> bool:
        """Register a periodic task.

        Args:
            name: Unique task name
            callback: Function to call (no arguments)
            interval_seconds: Run every N seconds
            run_immediately: Run on the next tick instead of after one interval
            enabled: Start enabled

        Returns:
            True (an existing task with the same name is updated)
        """
        with self._lock:
            if name in self._tasks:
                logger.warning("Task '%s' already registered, updating", name)
                task = self._tasks[name]
                task.callback = callback
                task.interval_seconds = interval_seconds
                task.enabled = enabled
                return True

            next_run = 0 if run_immediately else self._clock() + interval_seconds
            self._tasks[name] = ScheduledTask(name, callback, interval_seconds,
                                              next_run, enabled=enabled)
            logger.info("Task registered: '%s' (every %ss)", name, interval_seconds)
            return True

    def schedule_once(self, name: str, callback: Callable, delay_seconds: float,
                      now=None) -> bool:
        """Run ``callback`` once after ``delay_seconds``.

        A pending one-shot with the same name is replaced. ``now`` (epoch
        seconds or datetime) overrides the clock as the reference instant.
        """
        base = self._clock() if now is None else _to_timestamp(now)
        with self._lock:
            replaced = name in self._tasks
            self._tasks[name] = ScheduledTask(name, callback, delay_seconds,
                                              base + delay_seconds, one_shot=True)
        if replaced:
            logger.debug("One-shot '%s' rescheduled (+%.1fs)", name, delay_seconds)
        return True

    def unregister(self, name: str) -> bool:
        """Remove a task."""
        with self._lock:
            if name in self._tasks:
                del self._tasks[name]
                logger.info("Task unregistered: '%s'", name)
                return True
        return False

    def has_task(self, name: str) -> bool:
        return name in self._tasks

    def enable(self, name: str) -> bool:
        """Enable a disabled task."""
        if name in self._tasks:
            self._tasks[name].enabled = True
            return True
        return False

    def disable(self, name: str) -> bool:
        """Disable a task without removing it."""
        if name in self._tasks:
            self._tasks[name].enabled = False
            return True
        return False

    def trigger_now(self, name: str) -> bool:
        """Trigger a task to run on next tick."""
        if name in self._tasks:
            self._tasks[name].next_run = 0
            return True
        return False

    def start(self):
        """Start the scheduler thread."""
        if self._running:
            return
        self._running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True,
                                        name="ShadeHome-TaskScheduler")
        self._thread.start()
        logger.info("TaskScheduler started (%d tasks)", len(self._tasks))

    def stop(self):
        """Stop the scheduler."""
        self._running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=10)
            self._thread = None
        logger.info("TaskScheduler stopped")

    def _run_loop(self):
        """Main scheduler loop."""
        while self._running:
            self.run_pending()
            self._stop_event.wait(self._tick_interval)

    def run_pending(self, now=None) -> int:
        """Execute every due task once. Returns the number of tasks run."""
        now = self._clock() if now is None else _to_timestamp(now)
        with self._lock:
            due = [t for t in self._tasks.values() if t.enabled and now >= t.next_run]
        due.sort(key=lambda t: t.next_run)

        for task in due:
            self._execute_task(task, now)
        return len(due)

    def _execute_task(self, task: ScheduledTask, now: float):
        """Execute a single task safely."""
        start = time.time()
        try:
            task.callback()
            task.run_count += 1
            task.last_run = now
            task.last_duration = time.time() - start
            logger.debug("Task '%s' completed in %.2fs", task.name, task.last_duration)
        except Exception as e:
            task.error_count += 1
            task.last_error = str(e)
            logger.exception("Task '%s' failed", task.name)

        if task.one_shot:
            with self._lock:
                # a newer one-shot under the same name stays
                if self._tasks.get(task.name) is task:
                    del self._tasks[task.name]
        else:
            task.next_run = now + task.interval_seconds

    def get_status(self) -> list:
        """Get status of all registered tasks."""
        result = []
        for name, task in list(self._tasks.items()):
            result.append({
                "name": name,
                "enabled": task.enabled,
                "interval_seconds": task.interval_seconds,
                "run_count": task.run_count,
                "error_count": task.error_count,
                "last_run": datetime.fromtimestamp(task.last_run, tz=timezone.utc).isoformat() if task.last_run else None,
                "last_duration_ms": round(task.last_duration * 1000, 1),
                "last_error": task.last_error,
                "one_shot": task.one_shot,
            })
        return result

    @property
    def is_running(self) -> bool:
        return self._running
