"""
PollingDevice: base class for devices that report readings on their own schedule.

DEVICE LIFECYCLE CONTRACT:
==========================
1. CREATION
   - Subclass builds (or receives) the Thing and the Value it reports into

2. START (via device.start())
   - Spawns a daemon thread that calls pollOnce() every `interval` seconds

3. POLL (via device.pollOnce())
   - Calls readFromDevice() and commits the reading with
     Value.notifyOfExternalUpdate(); unchanged readings notify nobody

4. STOP (via device.stop())
   - Signals the thread and waits for it; safe to call repeatedly

EXCEPTION HANDLING:
==================
- A failing readFromDevice() is logged and the next cycle retries
- The poll thread never dies on a read error

REQUIRED METHODS:
=================
- readFromDevice() : Return the current reading
"""

# Imports
import threading
from abc import ABC, abstractmethod
from typing import Any, Optional

from wotkit.core.value import Value
from sdk.logging import getLogger


class PollingDevice(ABC):
    """Periodically pushes device readings into a Value"""

    def __init__(self, value: Value, interval: float):
        self.value = value
        self.interval = interval
        self.log = getLogger()
        self.readCount = 0
        self._stopEvent = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @abstractmethod
    def readFromDevice(self) -> Any:
        """Read the current value from hardware - must be implemented by subclass"""
        pass

    def pollOnce(self) -> Any:
        reading = self.readFromDevice()
        self.readCount += 1
        self.value.notifyOfExternalUpdate(reading)
        return reading

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stopEvent.clear()
        self._thread = threading.Thread(target=self._run, name=f"{type(self).__name__}-poll", daemon=True)
        self._thread.start()
        self.log.info(f"[{type(self).__name__}] Polling every {self.interval}s")

    def stop(self, timeout: float = 5.0):
        self._stopEvent.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout)

    def _run(self):
        while not self._stopEvent.wait(self.interval):
            try:
                self.pollOnce()
            except Exception as e:
                self.log.error(f"[{type(self).__name__}] Read failed: {e}", exc_info=True)
