"""
Device Tests

Tests:
1. PollingDevice pushes readings through notifyOfExternalUpdate
2. A failing read does not stop the poll thread
3. Example lamp and humidity sensor expose the expected schema
"""

import threading

import pytest

from wotkit.core import ActionStatus, Thing, Property, Value, ValidationError
from sdk.devices import DimmableLight, HumiditySensor, PollingDevice


class ScriptedDevice(PollingDevice):
    """Returns queued readings; raises when a reading is an exception"""

    def __init__(self, value, readings, interval=0.01):
        super().__init__(value, interval)
        self.readings = list(readings)
        self.lock = threading.Lock()

    def readFromDevice(self):
        with self.lock:
            reading = self.readings.pop(0) if len(self.readings) > 1 else self.readings[0]
        if isinstance(reading, Exception):
            raise reading
        return reading


class TestPollingDevice:

    @pytest.fixture
    def thing(self, scheduler):
        return Thing('urn:test:poll', 'Poll', scheduler=scheduler)

    def test_poll_once_commits_reading(self, thing, recorder):
        value = Value(0.0)
        thing.addProperty(Property(thing, 'level', value, {'type': 'number', 'readOnly': True}))
        subscriber = recorder()
        thing.subscribe(subscriber)
        device = ScriptedDevice(value, [12.5, 12.5, 40.0])

        device.pollOnce()
        device.pollOnce()
        device.pollOnce()

        assert device.readCount == 3
        assert value.get() == 40.0
        # Unchanged readings notify nobody
        assert subscriber.ofType('propertyStatus') == [{'level': 12.5}, {'level': 40.0}]

    def test_thread_survives_read_errors(self, waitFor):
        value = Value(0)
        device = ScriptedDevice(value, [RuntimeError('sensor offline'), 1, 2, 3])

        device.start()
        try:
            assert waitFor(lambda: value.get() == 3)
        finally:
            device.stop()

        assert device.readCount >= 3

    def test_stop_is_idempotent(self):
        device = ScriptedDevice(Value(0), [1], interval=0.01)

        device.stop()
        device.start()
        device.start()
        device.stop()
        device.stop()

        assert device._thread is None


class TestExampleDevices:

    def test_lamp_schema(self, scheduler):
        lamp = DimmableLight(scheduler=scheduler).getThing()

        assert lamp.getProperties() == {'on': True, 'level': 50}
        with pytest.raises(ValidationError):
            lamp.setProperty('level', 101)
        with pytest.raises(ValidationError):
            lamp.setProperty('on', 'yes')

    def test_lamp_fade(self, scheduler, recorder, waitFor):
        lamp = DimmableLight(scheduler=scheduler).getThing()
        subscriber = recorder()
        lamp.subscribe(subscriber)

        action = lamp.requestAction('fade', {'level': 80, 'duration': 20})

        assert waitFor(lambda: action.status == ActionStatus.COMPLETED)
        assert lamp.getProperty('level') == 80
        events = lamp.getEventsSince(eventName='overheated')
        assert [e.data for e in events] == [102]

    def test_lamp_thing_options(self, scheduler):
        lamp = DimmableLight('urn:test:lamp', 'Desk Lamp', maxEvents=2, scheduler=scheduler).getThing()

        for _ in range(4):
            lamp.addEvent('overheated', 102)

        assert lamp.getTitle() == 'Desk Lamp'
        assert len(lamp.getEventsSince()) == 2

    def test_humidity_sensor(self, scheduler):
        device = HumiditySensor(scheduler=scheduler, interval=0.01)
        thing = device.getThing()

        reading = device.pollOnce()

        assert 0 <= reading <= 100
        assert thing.getProperty('level') == reading
        with pytest.raises(ValidationError):
            thing.setProperty('level', 50)
        with pytest.raises(ValidationError):
            thing.setProperty('on', False)
