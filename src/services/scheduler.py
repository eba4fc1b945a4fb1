"""
Interval scheduler for the sync passes.

Each registered task runs on its own daemon thread, woken by a
threading.Event so stop() interrupts the wait immediately. Tasks are
single-flight: a tick that arrives while the previous run is still going is
skipped rather than queued.
"""
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from src.utils.logger import logger

# How long stop() waits for an in-flight run per task
STOP_JOIN_TIMEOUT_S = 10.0


@dataclass
class ScheduledTask:
    """A named task and its run bookkeeping."""
    name: str
    interval_s: float
    func: Callable[[], Any]
    immediate: bool = True
    last_run: Optional[float] = None
    last_error: Optional[str] = None
    run_count: int = 0
    _run_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _thread: Optional[threading.Thread] = field(default=None, repr=False)

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()


class Scheduler:
    """
    Runs registered tasks at fixed intervals until stopped.

    Usage:
        scheduler = Scheduler()
        scheduler.register("proposal-sync", 300, proposal_sync.sync)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(self):
        self._tasks: Dict[str, ScheduledTask] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    def register(self, name: str, interval_s: float, func: Callable[[], Any], immediate: bool = True) -> None:
        """Register a task. A task with the same name is replaced."""
        if interval_s <= 0:
            raise ValueError(f"Interval for task {name} must be positive, got {interval_s}")

        if name in self._tasks:
            logger.warning(f"[Scheduler] Task {name} already registered, replacing")
            self.unregister(name)

        task = ScheduledTask(name=name, interval_s=interval_s, func=func, immediate=immediate)
        with self._lock:
            self._tasks[name] = task
        logger.info(f"[Scheduler] Task registered: {name} (interval={interval_s}s, immediate={immediate})")

        if self._started:
            self._start_task(task)

    def unregister(self, name: str) -> None:
        """Remove a task. Its thread exits after the current run, if any."""
        with self._lock:
            task = self._tasks.pop(name, None)
        if task is not None:
            logger.info(f"[Scheduler] Task unregistered: {name}")

    def start(self) -> None:
        """Start a thread per registered task."""
        if self._started:
            logger.warning("[Scheduler] Scheduler already started")
            return

        logger.info(f"[Scheduler] Starting scheduler with {len(self._tasks)} tasks")
        # Threads left over from a timed-out stop() still hold the old, set event
        self._stop_event = threading.Event()
        self._started = True

        with self._lock:
            tasks = list(self._tasks.values())
        for task in tasks:
            self._start_task(task)

    def stop(self) -> None:
        """Signal all task threads to exit and wait for in-flight runs to finish."""
        if not self._started:
            return

        logger.info("[Scheduler] Stopping scheduler")
        self._started = False
        self._stop_event.set()

        with self._lock:
            tasks = list(self._tasks.values())
        for task in tasks:
            if task._thread is not None:
                task._thread.join(timeout=STOP_JOIN_TIMEOUT_S)
                if task._thread.is_alive():
                    logger.warning(f"[Scheduler] Task {task.name} did not stop within {STOP_JOIN_TIMEOUT_S}s")
                else:
                    task._thread = None

    def _start_task(self, task: ScheduledTask) -> None:
        if task._thread is not None and task._thread.is_alive():
            logger.info(f"[Scheduler] Task {task.name} is still finishing a run, resuming its thread")
            return
        thread = threading.Thread(target=self._run_loop, args=(task,), name=f"task-{task.name}", daemon=True)
        task._thread = thread
        thread.start()

    def _run_loop(self, task: ScheduledTask) -> None:
        if task.immediate:
            self.run_task(task.name)

        while True:
            stop_event = self._stop_event
            if stop_event.wait(task.interval_s):
                # Restarted while this thread was still draining its last run
                if self._started and self._stop_event is not stop_event and task._thread is threading.current_thread():
                    continue
                return
            if self._tasks.get(task.name) is not task:
                return
            self.run_task(task.name)

    def run_task(self, name: str) -> bool:
        """
        Run a task now in the calling thread.

        Returns False if the task is unknown or already running. Exceptions
        from the task are logged and kept as last_error, never raised.
        """
        task = self._tasks.get(name)
        if task is None:
            logger.warning(f"[Scheduler] Task not found: {name}")
            return False

        if not task._run_lock.acquire(blocking=False):
            logger.debug(f"[Scheduler] Task {name} is already running, skipping")
            return False

        start_time = time.monotonic()
        try:
            logger.debug(f"[Scheduler] Running task: {name}")
            task.func()
            task.last_run = time.time()
            task.last_error = None
            logger.debug(f"[Scheduler] Task {name} completed in {int((time.monotonic() - start_time) * 1000)}ms")
        except Exception as e:
            task.last_error = str(e) or type(e).__name__
            logger.error(f"[Scheduler] Task {name} failed: {e}", exc_info=True)
        finally:
            task.run_count += 1
            task._run_lock.release()
        return True

    def get_status(self) -> Dict[str, Dict[str, Any]]:
        """Per-task status snapshot."""
        with self._lock:
            tasks = list(self._tasks.values())
        return {
            task.name: {
                "isRunning": task.is_running,
                "lastRun": int(task.last_run * 1000) if task.last_run else None,
                "lastError": task.last_error,
                "intervalMs": int(task.interval_s * 1000),
                "runCount": task.run_count,
            }
            for task in tasks
        }
