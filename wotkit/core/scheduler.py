"""
Background execution context for action strategies.

A Scheduler owns one asyncio event loop running on a daemon thread.
Coroutine strategies run as tasks on that loop; blocking strategies run in
the loop's default executor. Nothing submitted here ever runs on a request
handling path.
"""

import asyncio
import concurrent.futures
import threading
from typing import Awaitable, Optional

from sdk.logging import getLogger


class Scheduler:
    """Event loop on a background thread, started on first use"""

    def __init__(self, name: str = 'wotkit-scheduler'):
        self.name = name
        self.log = getLogger()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        self.start()
        return self._loop

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the loop thread (idempotent)"""
        with self._lock:
            if self.running:
                return

            loop = asyncio.new_event_loop()
            ready = threading.Event()

            def run():
                asyncio.set_event_loop(loop)
                loop.call_soon(ready.set)
                try:
                    loop.run_forever()
                finally:
                    self._drain(loop)

            self._loop = loop
            self._thread = threading.Thread(target=run, name=self.name, daemon=True)
            self._thread.start()
            ready.wait()
            self.log.debug(f"[Scheduler] Started {self.name}")

    def stop(self, timeout: float = 5.0):
        """Cancel outstanding tasks and stop the loop thread (idempotent)"""
        with self._lock:
            if not self.running:
                return
            loop, thread = self._loop, self._thread
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout)
            self._thread = None
            self._loop = None
            self.log.debug(f"[Scheduler] Stopped {self.name}")

    def submit(self, coro: Awaitable) -> concurrent.futures.Future:
        """Run a coroutine on the background loop; safe to call from any thread"""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def callSoon(self, callback, *args):
        """Schedule a plain callback on the background loop"""
        self.loop.call_soon_threadsafe(callback, *args)

    @staticmethod
    def _drain(loop: asyncio.AbstractEventLoop):
        """Cancel remaining tasks and close the loop"""
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()


_scheduler: Optional[Scheduler] = None
_schedulerLock = threading.Lock()


def getScheduler() -> Scheduler:
    """Process-wide default scheduler"""
    global _scheduler
    with _schedulerLock:
        if _scheduler is None:
            _scheduler = Scheduler()
        return _scheduler
