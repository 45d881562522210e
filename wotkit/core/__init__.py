"""
wotkit Core Package

Device-abstraction runtime: reactive values, validated properties,
the action state machine, events and the Thing aggregate.

Invariants:
- Every committed property value satisfies its metadata
- Notifications leave a Value in commit order
- Action status only moves forward: created -> pending -> terminal
- Thing state is mutated under the Thing's own lock
"""

from wotkit.core.errors import (
    ThingError, ValidationError, UnsupportedOperationError,
    UnknownResourceError, ExecutionError, TransportError, ActionCancelled
)
from wotkit.core.value import Value
from wotkit.core.property import Property
from wotkit.core.event import Event
from wotkit.core.scheduler import Scheduler, getScheduler
from wotkit.core.action import Action, ActionStatus, ActionStrategy, ScheduledStrategy
from wotkit.core.thing import Thing

__all__ = [
    'ThingError', 'ValidationError', 'UnsupportedOperationError',
    'UnknownResourceError', 'ExecutionError', 'TransportError', 'ActionCancelled',
    'Value', 'Property', 'Event', 'Scheduler', 'getScheduler',
    'Action', 'ActionStatus', 'ActionStrategy', 'ScheduledStrategy', 'Thing',
]
