"""
Example device: a dimmable lamp that logs received commands.

Properties: on (boolean), level (0-100)
Action:     fade {level, duration(ms)} - waits out the duration, then sets
            the level and reports an 'overheated' event
Event:      overheated (celsius)
"""

from typing import Optional

from wotkit.core import ActionStrategy, Property, ScheduledStrategy, Thing, Value
from sdk.logging import getLogger


FADE_METADATA = {
    'title': 'Fade',
    '@type': 'FadeAction',
    'description': 'Fade the lamp to a given level',
    'input': {
        'type': 'object',
        'required': ['level', 'duration'],
        'properties': {
            'level': {'type': 'integer', 'minimum': 0, 'maximum': 100, 'unit': 'percent'},
            'duration': {'type': 'integer', 'minimum': 1, 'unit': 'milliseconds'},
        },
    },
}

OVERHEATED_METADATA = {
    'description': 'The lamp has exceeded its safe operating temperature',
    'type': 'number',
    'unit': 'degree celsius',
}

OVERHEAT_TEMPERATURE = 102


class DimmableLight:
    """Builds the lamp Thing and wires its values to the (logged) hardware"""

    def __init__(self, thingId: str = 'urn:dev:ops:my-lamp-1234', title: str = 'My Lamp', **thingOptions):
        self.log = getLogger()
        self.thing = Thing(thingId, title, ['OnOffSwitch', 'Light'], 'A web connected lamp', **thingOptions)

        self.thing.addProperty(Property(
            self.thing, 'on',
            Value(True, lambda v: self.log.info("On-state is now", state=v)),
            {'@type': 'OnOffProperty', 'title': 'On/Off', 'type': 'boolean',
             'description': 'Whether the lamp is turned on'}))

        self.thing.addProperty(Property(
            self.thing, 'level',
            Value(50, lambda v: self.log.info("Light level is now", level=v)),
            {'@type': 'BrightnessProperty', 'title': 'Brightness', 'type': 'integer',
             'description': 'The level of light from 0-100', 'minimum': 0, 'maximum': 100,
             'unit': 'percent'}))

        self.thing.addAvailableAction('fade', FADE_METADATA, self.fadeStrategy())
        self.thing.addAvailableEvent('overheated', OVERHEATED_METADATA)

    @staticmethod
    def fadeStrategy() -> ActionStrategy:
        def finishFade(action):
            action.thing.setProperty('level', action.input['level'])
            action.thing.addEvent('overheated', OVERHEAT_TEMPERATURE)

        return ScheduledStrategy(
            duration=lambda input_: input_['duration'] / 1000,
            continuation=finishFade)

    def getThing(self) -> Thing:
        return self.thing
