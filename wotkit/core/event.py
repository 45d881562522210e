"""
Event - immutable, timestamped, named occurrence emitted by a Thing.

Events carry no behavior. The owning Thing assigns `seq`, a per-Thing
monotonically increasing cursor used by getEventsSince().
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


def timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision"""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


@dataclass(frozen=True)
class Event:
    name: str
    data: Any = None
    time: str = field(default_factory=timestamp)
    seq: int = 0

    def asEventDescription(self) -> Dict[str, Any]:
        description = {'timestamp': self.time}
        if self.data is not None:
            description['data'] = self.data
        return {self.name: description}
