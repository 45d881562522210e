"""
Action - asynchronous, cancellable unit of work requested on a Thing.

State machine (forward only):

    created -> pending -> completed
                       -> error
                       -> cancelled

Execution logic is a strategy registered with the action schema:
- Coroutine functions run as tasks on the Thing's Scheduler and are
  interruptible: a cancel request cancels the task at its next await.
- Plain functions run in a worker thread and are cooperative: they must
  poll `action.cancelRequested`, call `action.checkCancelled()` or wait
  with `action.wait()` for a cancel request to take effect.

Every transition pushes an actionStatus notification through the Thing.
"""

import asyncio
import inspect
import threading
import uuid
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union, TYPE_CHECKING

from wotkit.core.errors import ActionCancelled, ExecutionError
from wotkit.core.event import timestamp
from sdk.logging import getLogger

if TYPE_CHECKING:
    from wotkit.core.thing import Thing


class ActionStatus(str, Enum):
    CREATED = 'created'
    PENDING = 'pending'
    COMPLETED = 'completed'
    ERROR = 'error'
    CANCELLED = 'cancelled'

    @property
    def terminal(self) -> bool:
        return self in (ActionStatus.COMPLETED, ActionStatus.ERROR, ActionStatus.CANCELLED)


_TRANSITIONS = {
    ActionStatus.CREATED: {ActionStatus.PENDING},
    ActionStatus.PENDING: {ActionStatus.COMPLETED, ActionStatus.ERROR, ActionStatus.CANCELLED},
}


class ActionStrategy:
    """
    Execution strategy for one kind of action.

    Wraps a callable strategy(action). Subclasses may override perform()
    instead of passing a callable.
    """

    def __init__(self, fn: Optional[Callable] = None, interruptible: Optional[bool] = None):
        self.fn = fn
        if interruptible is None:
            interruptible = fn is None or inspect.iscoroutinefunction(fn)
        self.interruptible = interruptible

    async def perform(self, action: 'Action'):
        """Run the strategy to completion; raise to signal failure"""
        if self.fn is None:
            return
        await _invoke(self.fn, action)


class ScheduledStrategy(ActionStrategy):
    """
    Timer-driven strategy: wait out a duration, then run a continuation.

    The wait watches the cancellation flag, so a cancel request during the
    wait ends the action as cancelled and the continuation never runs.

    Example:
        fade = ScheduledStrategy(
            duration=lambda input: input['duration'] / 1000,
            continuation=lambda action: action.thing.setProperty('level', action.input['level']))
    """

    def __init__(self, duration: Union[float, Callable[[Any], float]],
                 continuation: Optional[Callable] = None):
        super().__init__(interruptible=True)
        self.duration = duration
        self.continuation = continuation

    async def perform(self, action: 'Action'):
        seconds = self.duration(action.input) if callable(self.duration) else self.duration
        await action.sleep(max(0.0, float(seconds)))
        # Side effects below must not be torn by a late cancel
        action.interruptible = False
        if self.continuation is not None:
            await _invoke(self.continuation, action)


async def _invoke(fn: Callable, action: 'Action'):
    """Await coroutine functions, run plain functions in a worker thread"""
    if inspect.iscoroutinefunction(fn):
        await fn(action)
        return
    result = await asyncio.to_thread(fn, action)
    if inspect.isawaitable(result):
        await result


class Action:
    """A requested action and its current status"""

    def __init__(self, thing: 'Thing', name: str, input_: Any, strategy: ActionStrategy,
                 actionId: Optional[str] = None):
        self.id = actionId or str(uuid.uuid4())
        self.thing = thing
        self.name = name
        self.input = input_
        self.strategy = strategy
        self.status = ActionStatus.CREATED
        self.timeRequested = timestamp()
        self.timeCompleted: Optional[str] = None
        self.error: Optional[str] = None
        self.interruptible = strategy.interruptible
        self.log = getLogger()

        self._lock = threading.RLock()
        self._cancelEvent = threading.Event()
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # ------------------------------------------------------------------
    # Description
    # ------------------------------------------------------------------

    def getHref(self) -> str:
        return f"{self.thing.getHrefPrefix()}/actions/{self.name}/{self.id}"

    def asActionDescription(self) -> Dict[str, Any]:
        description = {
            'id': self.id,
            'href': self.getHref(),
            'timeRequested': self.timeRequested,
            'status': self.status.value,
        }
        if self.input is not None:
            description['input'] = self.input
        if self.timeCompleted is not None:
            description['timeCompleted'] = self.timeCompleted
        if self.error is not None:
            description['error'] = self.error
        return {self.name: description}

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    @property
    def cancelRequested(self) -> bool:
        return self._cancelEvent.is_set()

    def checkCancelled(self):
        """Raise ActionCancelled if a cancel request is outstanding"""
        if self._cancelEvent.is_set():
            raise ActionCancelled(self.id)

    def wait(self, seconds: float):
        """Blocking sleep for thread strategies; raises ActionCancelled on cancel"""
        if self._cancelEvent.wait(seconds):
            raise ActionCancelled(self.id)

    async def sleep(self, seconds: float):
        """Async sleep for coroutine strategies; raises ActionCancelled on cancel"""
        self.checkCancelled()
        await asyncio.sleep(seconds)
        self.checkCancelled()

    def cancel(self) -> bool:
        """
        Request cancellation.

        Returns: False if the action already reached a terminal status
        """
        with self._lock:
            if self.status.terminal:
                return False
            self._cancelEvent.set()
            task, loop = self._task, self._loop

        if task is not None:
            loop.call_soon_threadsafe(self._interrupt, task)
        self.log.info(f"[Action] Cancel requested for {self.name}/{self.id}")
        return True

    def _interrupt(self, task: asyncio.Task):
        # Runs on the scheduler loop, so `interruptible` cannot change underneath
        if self.interruptible and not task.done():
            task.cancel()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def start(self):
        """Move to pending and schedule the strategy on the Thing's scheduler"""
        self._transition(ActionStatus.PENDING)
        self.thing.scheduler.submit(self._execute())

    async def _execute(self):
        with self._lock:
            self._task = asyncio.current_task()
            self._loop = asyncio.get_running_loop()

        try:
            # Cancelled before the strategy got to run
            self.checkCancelled()
            await self.strategy.perform(self)
        except (ActionCancelled, asyncio.CancelledError):
            self._transition(ActionStatus.CANCELLED)
        except Exception as e:
            failure = ExecutionError(f"{type(e).__name__}: {e}")
            self.log.error(f"[Action] {self.name}/{self.id} failed: {failure.message}", exc_info=True)
            self._transition(ActionStatus.ERROR, error=failure.message)
        else:
            self._transition(ActionStatus.COMPLETED)
        finally:
            with self._lock:
                self._task = None

    def _transition(self, status: ActionStatus, error: Optional[str] = None) -> bool:
        """Apply a forward transition and notify; ignored if not allowed"""
        with self._lock:
            if status not in _TRANSITIONS.get(self.status, ()):
                return False
            self.status = status
            if status.terminal:
                self.timeCompleted = timestamp()
                self.error = error
            self.log.debug(f"[Action] {self.name}/{self.id} -> {status.value}")
            self.thing.actionNotify(self)
            return True
