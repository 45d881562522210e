"""
wotkit - Web of Things device runtime and server.

Devices are modeled as Things: schema-validated observable properties,
asynchronous cancellable actions and timestamped events. WebThingServer
exposes one or more Things over HTTP and WebSocket and advertises itself
via mDNS.
"""

from wotkit.core import (
    Value, Property, Event, Action, ActionStatus, ActionStrategy,
    ScheduledStrategy, Thing, Scheduler, getScheduler,
    ThingError, ValidationError, UnsupportedOperationError,
    UnknownResourceError, ExecutionError, TransportError, ActionCancelled
)
from wotkit.server import WebThingServer, ServerConfig, loadConfig

__version__ = "0.3.0"

__all__ = [
    'Value', 'Property', 'Event', 'Action', 'ActionStatus', 'ActionStrategy',
    'ScheduledStrategy', 'Thing', 'Scheduler', 'getScheduler',
    'ThingError', 'ValidationError', 'UnsupportedOperationError',
    'UnknownResourceError', 'ExecutionError', 'TransportError', 'ActionCancelled',
    'WebThingServer', 'ServerConfig', 'loadConfig',
]
