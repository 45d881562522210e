"""
Value - reactive storage cell underlying a Property.

Two entry points share one notification path:
- set(): client-requested write, already validated by the Property.
  Calls the optional forwarder first so the device can apply it.
- notifyOfExternalUpdate(): device-driven write, the device is authoritative.

Both are equality-gated and notify observers synchronously, in registration
order, while holding the Value lock so notifications leave in commit order.
"""

import threading
from typing import Any, Callable, List, Optional

from sdk.logging import getLogger


Observer = Callable[[Any], None]


class Value:
    """A single mutable value with change notification"""

    def __init__(self, initialValue: Any = None, valueForwarder: Optional[Callable[[Any], None]] = None):
        """
        Args:
            initialValue: Starting value
            valueForwarder: Called with the new value on client-requested writes,
                before the change is committed (e.g. to drive hardware)
        """
        self._value = initialValue
        self._forwarder = valueForwarder
        self._observers: List[Observer] = []
        self._lock = threading.RLock()
        self.log = getLogger()

    def get(self) -> Any:
        """Return the current value"""
        return self._value

    def set(self, value: Any) -> bool:
        """
        Commit a client-requested value.

        Forwarder exceptions propagate; nothing is committed in that case.

        Returns: True if the value changed
        """
        with self._lock:
            if self._forwarder is not None:
                self._forwarder(value)
            return self._commit(value)

    def notifyOfExternalUpdate(self, value: Any) -> bool:
        """
        Commit a device-driven value without validation.

        Returns: True if the value changed
        """
        with self._lock:
            return self._commit(value)

    def addObserver(self, observer: Observer):
        """Register observer(newValue); called on every actual change"""
        with self._lock:
            self._observers.append(observer)

    def removeObserver(self, observer: Observer):
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def _commit(self, value: Any) -> bool:
        # Caller holds self._lock
        # True == 1 in Python but not in JSON
        if value == self._value and isinstance(value, bool) == isinstance(self._value, bool):
            return False

        self._value = value
        for observer in list(self._observers):
            try:
                observer(value)
            except Exception as e:
                self.log.error(f"[Value] Observer failed: {e}", exc_info=True)
        return True
