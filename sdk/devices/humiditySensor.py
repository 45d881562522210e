"""
Example device: a humidity sensor that updates its reading periodically.

The reading is pushed with Value.notifyOfExternalUpdate(): the device is
authoritative, so the read-only 'level' property is never validated.
"""

import random

from wotkit.core import Property, Thing, Value
from sdk.devices.pollingDevice import PollingDevice


class HumiditySensor(PollingDevice):
    """Simulated GPIO humidity sensor"""

    def __init__(self, thingId: str = 'urn:dev:ops:my-humidity-sensor-1234',
                 title: str = 'My Humidity Sensor', interval: float = 3.0, **thingOptions):
        self.thing = Thing(thingId, title, ['MultiLevelSensor'], 'A web connected humidity sensor',
                           **thingOptions)

        self.thing.addProperty(Property(
            self.thing, 'on', Value(True),
            {'@type': 'BooleanProperty', 'title': 'On/Off', 'type': 'boolean',
             'description': 'Whether the sensor is on', 'readOnly': True}))

        level = Value(0.0)
        self.thing.addProperty(Property(
            self.thing, 'level', level,
            {'@type': 'LevelProperty', 'title': 'Humidity', 'type': 'number',
             'description': 'The current humidity in %', 'minimum': 0, 'maximum': 100,
             'unit': 'percent', 'readOnly': True}))

        super().__init__(level, interval)

    def readFromDevice(self) -> float:
        """Mimic a sensor reading between 0 and 100"""
        return round(abs(70.0 * random.random() * (-0.5 + random.random())), 2)

    def getThing(self) -> Thing:
        return self.thing
