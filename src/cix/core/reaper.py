"""
=============================================================================
CONNECTION WORKERS AND THE REAPER
=============================================================================

Every accepted connection runs in its own ConnectionWorker thread. When a
worker finishes it drops itself on a completion queue; the reaper takes
finished workers off that queue, joins them and logs how they ended.

    ┌──────────────┐  spawn   ┌──────────────────┐
    │   listener   │ ───────► │ ConnectionWorker │ ── runs Dispatcher
    └──────┬───────┘          └────────┬─────────┘
           │ reap() after                │ finally: put(self)
           │ each accept                 ▼
           │                   ┌──────────────────┐
           └─────────────────► │ completion queue │ ◄── watcher thread
                               └──────────────────┘     (blocks on get)

Two paths drain the same queue:

1. SYNCHRONOUS: the listener calls reap() right after spawning a worker.
   reap() only takes what is already queued and never blocks.

2. ASYNCHRONOUS: a watcher thread blocks on the queue and reaps as soon
   as any worker ends, so finished workers never pile up while the
   listener sits idle in accept().

queue.Queue is thread-safe, so each finished worker is collected by
exactly one of the two paths.

=============================================================================
"""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerStatus:
    """
    How a worker ended.

    exit_code is 0 for a normal return and 1 when the target raised.
    dumped is True when a traceback was written to the log.
    """
    name: str
    exit_code: int
    error: Optional[BaseException] = None

    @property
    def dumped(self) -> bool:
        return self.error is not None

    def describe(self) -> str:
        return f"worker {self.name} exit {self.exit_code} dump {int(self.dumped)}"


class ConnectionWorker(threading.Thread):
    """
    Thread that runs one connection to completion.

    The target owns everything it touches; nothing is shared with other
    workers except the filesystem.
    """

    def __init__(
        self,
        target: Callable[[], None],
        notify: queue.Queue,
        name: str,
        log=None,
    ):
        # daemon=True: an idle connection must not keep the process alive
        super().__init__(name=name, daemon=True)
        self._target_fn = target
        self._notify = notify
        self._log = log or logger
        self.status: Optional[WorkerStatus] = None

    def run(self):
        try:
            self._target_fn()
            self.status = WorkerStatus(self.name, 0)
        except Exception as e:
            self._log.exception(f"{self.name} failed: {e}")
            self.status = WorkerStatus(self.name, 1, e)
        finally:
            self._notify.put(self)


class WorkerReaper:
    """
    Spawns connection workers and collects them when they finish.

    Usage:
        reaper = WorkerReaper()
        reaper.start()                      # async watcher
        reaper.spawn(serve_one, "conn-1")
        reaper.reap()                       # sync pass
        reaper.stop()
    """

    def __init__(self, log=None):
        self._log = log or logger
        self._finished: queue.Queue = queue.Queue()
        self._live: Dict[str, ConnectionWorker] = {}
        self._lock = threading.Lock()
        self._watcher: Optional[threading.Thread] = None
        self._count = 0
        self.reaped = 0

    @property
    def active(self) -> int:
        """Workers spawned and not yet reaped."""
        with self._lock:
            return len(self._live)

    def spawn(self, target: Callable[[], None], name: Optional[str] = None) -> ConnectionWorker:
        """
        Start a worker running `target`.

        Raises:
            RuntimeError: The thread could not be started.
        """
        with self._lock:
            self._count += 1
            name = name or f"worker-{self._count}"
            worker = ConnectionWorker(target, self._finished, name, log=self._log)
            self._live[name] = worker

        try:
            worker.start()
        except RuntimeError:
            with self._lock:
                self._live.pop(name, None)
            raise
        return worker

    def reap(self) -> List[WorkerStatus]:
        """Collect every worker that has already finished, without blocking."""
        statuses = []
        while True:
            try:
                worker = self._finished.get_nowait()
            except queue.Empty:
                break
            if worker is None:
                # Poison pill belongs to the watcher
                self._finished.put(None)
                break
            statuses.append(self._collect(worker))
        return statuses

    def _collect(self, worker: ConnectionWorker) -> WorkerStatus:
        worker.join()
        with self._lock:
            self._live.pop(worker.name, None)
            self.reaped += 1
        status = worker.status or WorkerStatus(worker.name, 1)
        self._log.info(status.describe())
        return status

    # =========================================================================
    # ASYNCHRONOUS PATH
    # =========================================================================

    def start(self):
        """Start the watcher thread."""
        if self._watcher is not None:
            return
        self._watcher = threading.Thread(target=self._watch, name="reaper", daemon=True)
        self._watcher.start()

    def _watch(self):
        self._log.debug("reaper started")
        while True:
            worker = self._finished.get()
            if worker is None:
                break
            self._collect(worker)
            self.reap()
        self._log.debug("reaper stopped")

    def stop(self, timeout: Optional[float] = 5.0):
        """Stop the watcher and run a final synchronous pass."""
        if self._watcher is not None:
            self._finished.put(None)
            self._watcher.join(timeout)
            self._watcher = None
        # The watcher consumed its pill; anything left is a real worker
        self.reap()
