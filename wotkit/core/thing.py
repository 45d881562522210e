"""
Thing - aggregate device model: properties, actions, events, subscribers.

Concurrency:
- Properties, action/event registries, logs and the subscriber set are
  guarded by the Thing's RLock. Things are independent of each other.
- Notifications are serialized first, the subscriber set is snapshotted
  under the lock, and delivery happens outside it. Subscriber.push() only
  enqueues, so a slow connection never blocks the producer.
- A subscriber whose push fails is dropped silently.

Subscribers are duck-typed: any object with push(message: str) that raises
TransportError when the connection is gone.
"""

import copy
import threading
from collections import deque
from typing import Any, Callable, Dict, List, Optional, Union

import orjson

from wotkit.core.action import Action, ActionStrategy
from wotkit.core.errors import TransportError, UnknownResourceError
from wotkit.core.event import Event
from wotkit.core.property import Property
from wotkit.core.scheduler import Scheduler, getScheduler
from wotkit.core.schema import buildValidator, validate
from sdk.logging import getLogger


DEFAULT_CONTEXT = 'https://webthings.io/schemas'
DEFAULT_MAX_EVENTS = 100
DEFAULT_MAX_ACTIONS = 100


class Thing:
    """A Web Thing"""

    def __init__(self, id_: str, title: str, type_: Union[str, List[str], None] = None,
                 description: str = '', *, context: str = DEFAULT_CONTEXT,
                 maxEvents: int = DEFAULT_MAX_EVENTS, maxActions: int = DEFAULT_MAX_ACTIONS,
                 scheduler: Optional[Scheduler] = None):
        """
        Args:
            id_: Unique identifier (usually a URI)
            title: Human readable name
            type_: Semantic @type(s)
            description: Human readable description
            maxEvents: Retained events; oldest evicted first
            maxActions: Retained finished actions; oldest pruned first
            scheduler: Execution context for action strategies (default: shared)
        """
        if type_ is None:
            type_ = []
        elif isinstance(type_, str):
            type_ = [type_]

        self.id = id_
        self.title = title
        self.type = list(type_)
        self.description = description
        self.context = context
        self.maxEvents = maxEvents
        self.maxActions = maxActions
        self.scheduler = scheduler or getScheduler()
        self.log = getLogger()

        self.hrefPrefix = ''
        self.uiHref: Optional[str] = None

        self._lock = threading.RLock()
        self._eventLock = threading.Lock()
        self._properties: Dict[str, Property] = {}
        self._availableActions: Dict[str, Dict[str, Any]] = {}
        self._availableEvents: Dict[str, Dict[str, Any]] = {}
        self._actions: List[Action] = []
        self._events: deque = deque(maxlen=maxEvents)
        self._eventSeq = 0
        self._subscribers: set = set()
        # subscriber -> event names; subscribers absent here receive every event
        self._eventSubscriptions: Dict[Any, set] = {}

    # =========================================================================
    # Identity and description
    # =========================================================================

    def getId(self) -> str:
        return self.id

    def getTitle(self) -> str:
        return self.title

    def getType(self) -> List[str]:
        return list(self.type)

    def getContext(self) -> str:
        return self.context

    def getDescription(self) -> str:
        return self.description

    def getHrefPrefix(self) -> str:
        return self.hrefPrefix

    def getHref(self) -> str:
        return self.hrefPrefix or '/'

    def setHrefPrefix(self, prefix: str):
        """Set the path prefix under which this thing is served (e.g. '/0')"""
        with self._lock:
            self.hrefPrefix = prefix.rstrip('/')
            for prop in self._properties.values():
                prop.setHrefPrefix(self.hrefPrefix)

    def setUiHref(self, href: str):
        self.uiHref = href

    def asThingDescription(self) -> Dict[str, Any]:
        """
        Render the schema-bearing description.

        Deterministic for a given configuration: properties, actions and
        events appear in registration order.
        """
        prefix = self.hrefPrefix
        with self._lock:
            description = {
                'id': self.id,
                'title': self.title,
                '@context': self.context,
                '@type': list(self.type),
                'href': self.getHref(),
                'properties': self.getPropertyDescriptions(),
                'actions': {},
                'events': {},
                'links': [
                    {'rel': 'properties', 'href': f"{prefix}/properties"},
                    {'rel': 'actions', 'href': f"{prefix}/actions"},
                    {'rel': 'events', 'href': f"{prefix}/events"},
                ],
            }

            for name, entry in self._availableActions.items():
                metadata = copy.deepcopy(entry['metadata'])
                metadata.setdefault('links', []).append({'rel': 'action', 'href': f"{prefix}/actions/{name}"})
                description['actions'][name] = metadata

            for name, metadata in self._availableEvents.items():
                metadata = copy.deepcopy(metadata)
                metadata.setdefault('links', []).append({'rel': 'event', 'href': f"{prefix}/events/{name}"})
                description['events'][name] = metadata

        if self.description:
            description['description'] = self.description
        if self.uiHref:
            description['links'].append({'rel': 'alternate', 'mediaType': 'text/html', 'href': self.uiHref})

        return description

    # =========================================================================
    # Properties
    # =========================================================================

    def addProperty(self, prop: Property):
        with self._lock:
            if prop.name in self._properties:
                self.log.warning(f"[Thing] Property {prop.name} replaced on {self.title}")
            prop.setHrefPrefix(self.hrefPrefix)
            self._properties[prop.name] = prop

    def removeProperty(self, prop: Property):
        with self._lock:
            self._properties.pop(prop.name, None)

    def findProperty(self, propertyName: str) -> Optional[Property]:
        with self._lock:
            return self._properties.get(propertyName)

    def hasProperty(self, propertyName: str) -> bool:
        return self.findProperty(propertyName) is not None

    def _requireProperty(self, propertyName: str) -> Property:
        prop = self.findProperty(propertyName)
        if prop is None:
            raise UnknownResourceError(f"Unknown property: {propertyName}")
        return prop

    def getProperty(self, propertyName: str) -> Any:
        return self._requireProperty(propertyName).getValue()

    def getProperties(self) -> Dict[str, Any]:
        with self._lock:
            props = list(self._properties.values())
        return {prop.name: prop.getValue() for prop in props}

    def getPropertyDescriptions(self) -> Dict[str, Any]:
        with self._lock:
            return {name: prop.asPropertyDescription() for name, prop in self._properties.items()}

    def setProperty(self, propertyName: str, value: Any):
        """Validate and commit; raises UnknownResourceError or ValidationError"""
        self._requireProperty(propertyName).setValue(value)

    # =========================================================================
    # Actions
    # =========================================================================

    def addAvailableAction(self, name: str, metadata: Optional[Dict[str, Any]],
                           strategy: Union[ActionStrategy, Callable, None]):
        """
        Register an action kind.

        Args:
            name: Action name
            metadata: Description; 'input' holds the JSON Schema for inputs
            strategy: ActionStrategy, or a callable strategy(action)
        """
        metadata = copy.deepcopy(metadata) if metadata else {}
        if not isinstance(strategy, ActionStrategy):
            strategy = ActionStrategy(strategy)

        with self._lock:
            self._availableActions[name] = {
                'metadata': metadata,
                'strategy': strategy,
                'validator': buildValidator(metadata.get('input')),
            }

    def requestAction(self, actionName: str, input_: Any = None) -> Action:
        """
        Validate, record and start an action; returns without waiting for it.

        Raises:
            UnknownResourceError: no such action
            ValidationError: input does not satisfy the input schema (nothing recorded)
        """
        with self._lock:
            entry = self._availableActions.get(actionName)
        if entry is None:
            raise UnknownResourceError(f"Unknown action: {actionName}")

        # A missing input is checked like any other value; null fails an object schema
        validate(entry['validator'], input_, what='input')

        action = Action(self, actionName, input_, entry['strategy'])
        with self._lock:
            self._actions.append(action)
            self._pruneActions()

        self.actionNotify(action)
        action.start()
        self.log.info(f"[Thing] Action {actionName} requested on {self.title}", actionId=action.id)
        return action

    def getAction(self, actionName: str, actionId: str) -> Action:
        with self._lock:
            for action in self._actions:
                if action.name == actionName and action.id == actionId:
                    return action
        raise UnknownResourceError(f"Unknown action: {actionName}/{actionId}")

    def getActions(self, actionName: Optional[str] = None) -> List[Action]:
        """Recorded actions, oldest first, optionally filtered by name"""
        with self._lock:
            if actionName is not None and actionName not in self._availableActions:
                raise UnknownResourceError(f"Unknown action: {actionName}")
            return [a for a in self._actions if actionName is None or a.name == actionName]

    def getActionDescriptions(self, actionName: Optional[str] = None) -> List[Dict[str, Any]]:
        return [a.asActionDescription() for a in self.getActions(actionName)]

    def cancelAction(self, actionName: str, actionId: str):
        """
        Request cancellation of a recorded action.

        Raises UnknownResourceError if the id is unknown or the action
        already finished (too late to cancel).
        """
        action = self.getAction(actionName, actionId)
        if not action.cancel():
            raise UnknownResourceError(f"Action already finished: {actionName}/{actionId}")

    def _pruneActions(self):
        # Caller holds self._lock; only finished actions are pruned
        excess = len(self._actions) - self.maxActions
        if excess <= 0:
            return
        keep = []
        for action in self._actions:
            if excess > 0 and action.status.terminal:
                excess -= 1
                continue
            keep.append(action)
        self._actions = keep

    # =========================================================================
    # Events
    # =========================================================================

    def addAvailableEvent(self, name: str, metadata: Optional[Dict[str, Any]] = None):
        with self._lock:
            self._availableEvents[name] = copy.deepcopy(metadata) if metadata else {}

    def addEvent(self, eventName: str, data: Any = None) -> Event:
        """Record an event and push it to subscribers"""
        with self._lock:
            if eventName not in self._availableEvents:
                raise UnknownResourceError(f"Unknown event: {eventName}")

        with self._eventLock:
            with self._lock:
                self._eventSeq += 1
                event = Event(eventName, data, seq=self._eventSeq)
                self._events.append(event)
            self.eventNotify(event)
        return event

    def getEventsSince(self, cursor: Optional[int] = None, eventName: Optional[str] = None) -> List[Event]:
        """Retained events with seq > cursor, oldest first"""
        with self._lock:
            if eventName is not None and eventName not in self._availableEvents:
                raise UnknownResourceError(f"Unknown event: {eventName}")
            return [
                e for e in self._events
                if (cursor is None or e.seq > cursor) and (eventName is None or e.name == eventName)
            ]

    def getEventDescriptions(self, eventName: Optional[str] = None, cursor: Optional[int] = None) -> List[Dict[str, Any]]:
        return [e.asEventDescription() for e in self.getEventsSince(cursor, eventName)]

    # =========================================================================
    # Subscribers
    # =========================================================================

    def subscribe(self, subscriber):
        with self._lock:
            self._subscribers.add(subscriber)

    def unsubscribe(self, subscriber):
        with self._lock:
            self._subscribers.discard(subscriber)
            self._eventSubscriptions.pop(subscriber, None)

    def getSubscribers(self) -> list:
        with self._lock:
            return list(self._subscribers)

    def addEventSubscription(self, subscriber, eventName: str):
        """Limit a subscriber's event pushes to the named events"""
        with self._lock:
            if eventName not in self._availableEvents:
                raise UnknownResourceError(f"Unknown event: {eventName}")
            self._subscribers.add(subscriber)
            self._eventSubscriptions.setdefault(subscriber, set()).add(eventName)

    def removeEventSubscription(self, subscriber, eventName: str):
        with self._lock:
            names = self._eventSubscriptions.get(subscriber)
            if names is not None:
                names.discard(eventName)

    # =========================================================================
    # Notification
    # =========================================================================

    def propertyNotify(self, prop: Property):
        self._broadcast('propertyStatus', {prop.name: prop.getValue()})

    def actionNotify(self, action: Action):
        self._broadcast('actionStatus', action.asActionDescription())

    def eventNotify(self, event: Event):
        self._broadcast('addEvent', event.asEventDescription(), eventName=event.name)

    def _broadcast(self, messageType: str, data: Dict[str, Any], eventName: Optional[str] = None):
        message = orjson.dumps({'messageType': messageType, 'data': data}).decode()

        with self._lock:
            if eventName is None:
                targets = list(self._subscribers)
            else:
                targets = [
                    s for s in self._subscribers
                    if s not in self._eventSubscriptions or eventName in self._eventSubscriptions[s]
                ]

        for subscriber in targets:
            try:
                subscriber.push(message)
            except TransportError:
                self.unsubscribe(subscriber)
            except Exception as e:
                self.log.warning(f"[Thing] Dropping subscriber after push failure: {e}")
                self.unsubscribe(subscriber)
