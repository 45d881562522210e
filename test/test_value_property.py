"""
Value and Property Tests

Tests:
1. Equality-gated notification on both Value entry points
2. Observer order and exception isolation
3. Property schema validation (type, range, enum, readOnly)
4. Rejected writes leave the value untouched and push nothing
"""

import pytest

from wotkit.core import (
    Property, Thing, Value, ValidationError, UnsupportedOperationError
)


class TestValue:
    """Reactive cell semantics"""

    def test_same_value_never_notifies(self):
        value = Value(5)
        seen = []
        value.addObserver(seen.append)

        assert value.set(5) is False
        assert value.notifyOfExternalUpdate(5) is False
        assert seen == []

    def test_change_notifies_every_observer_once_in_order(self):
        value = Value(1)
        calls = []
        value.addObserver(lambda v: calls.append(('first', v)))
        value.addObserver(lambda v: calls.append(('second', v)))
        value.addObserver(lambda v: calls.append(('third', v)))

        value.set(2)

        assert calls == [('first', 2), ('second', 2), ('third', 2)]
        assert value.get() == 2

    def test_external_update_shares_notification_path(self):
        value = Value(0.0)
        seen = []
        value.addObserver(seen.append)

        value.notifyOfExternalUpdate(42.5)
        value.notifyOfExternalUpdate(42.5)

        assert seen == [42.5]

    def test_observer_failure_is_isolated(self):
        value = Value('a')
        seen = []

        def broken(v):
            raise RuntimeError('observer failure')

        value.addObserver(broken)
        value.addObserver(seen.append)

        assert value.set('b') is True
        assert value.get() == 'b'
        assert seen == ['b']

    def test_bool_and_int_are_different_values(self):
        value = Value(1)
        seen = []
        value.addObserver(seen.append)

        value.set(True)

        assert seen == [True]

    def test_structural_equality_for_objects(self):
        value = Value({'r': 1, 'g': 2})
        seen = []
        value.addObserver(seen.append)

        value.set({'g': 2, 'r': 1})

        assert seen == []

    def test_forwarder_only_on_requested_writes(self):
        forwarded = []
        value = Value(10, forwarded.append)

        value.set(20)
        value.notifyOfExternalUpdate(30)

        assert forwarded == [20]
        assert value.get() == 30

    def test_forwarder_failure_prevents_commit(self):
        def refuse(v):
            raise IOError('device unreachable')

        value = Value(10, refuse)
        seen = []
        value.addObserver(seen.append)

        with pytest.raises(IOError):
            value.set(20)

        assert value.get() == 10
        assert seen == []

    def test_remove_observer(self):
        value = Value(0)
        seen = []
        value.addObserver(seen.append)
        value.removeObserver(seen.append)

        value.set(1)

        assert seen == []


LEVEL_SCHEMA = {'type': 'number', 'minimum': 0, 'maximum': 100, 'unit': 'percent'}
MODE_SCHEMA = {'type': 'string', 'enum': ['auto', 'manual']}
ON_SCHEMA = {'type': 'boolean'}
COUNT_SCHEMA = {'type': 'integer', 'minimum': 1}


class TestPropertyValidation:
    """Schema-validated writes"""

    @pytest.fixture
    def thing(self, scheduler):
        return Thing('urn:test:thing', 'Test Thing', scheduler=scheduler)

    def _property(self, thing, schema, initial):
        prop = Property(thing, 'prop', Value(initial), schema)
        thing.addProperty(prop)
        return prop

    @pytest.mark.parametrize('schema,initial,value', [
        (LEVEL_SCHEMA, 50, 0),
        (LEVEL_SCHEMA, 50, 100),
        (LEVEL_SCHEMA, 50, 33.3),
        (MODE_SCHEMA, 'auto', 'manual'),
        (ON_SCHEMA, True, False),
        (COUNT_SCHEMA, 1, 7),
    ])
    def test_valid_value_accepted(self, thing, schema, initial, value):
        prop = self._property(thing, schema, initial)

        prop.setValue(value)

        assert prop.getValue() == value

    @pytest.mark.parametrize('schema,initial,value', [
        (LEVEL_SCHEMA, 50, 150),
        (LEVEL_SCHEMA, 50, -1),
        (LEVEL_SCHEMA, 50, 'fifty'),
        (LEVEL_SCHEMA, 50, True),
        (MODE_SCHEMA, 'auto', 'turbo'),
        (ON_SCHEMA, True, 'yes'),
        (COUNT_SCHEMA, 1, 0),
        (COUNT_SCHEMA, 1, 2.5),
    ])
    def test_invalid_value_rejected_without_side_effect(self, thing, recorder, schema, initial, value):
        prop = self._property(thing, schema, initial)
        subscriber = recorder()
        thing.subscribe(subscriber)

        with pytest.raises(ValidationError):
            prop.setValue(value)

        assert prop.getValue() == initial
        assert subscriber.ofType('propertyStatus') == []

    def test_read_only_rejected(self, thing):
        prop = self._property(thing, {'type': 'number', 'readOnly': True}, 1.0)

        with pytest.raises(UnsupportedOperationError):
            prop.setValue(2.0)
        # Unsupported operations are validation failures as well
        with pytest.raises(ValidationError):
            prop.setValue(1.0)

        assert prop.getValue() == 1.0

    def test_read_only_accepts_external_updates(self, thing):
        value = Value(1.0)
        prop = Property(thing, 'reading', value, {'type': 'number', 'readOnly': True})
        thing.addProperty(prop)

        value.notifyOfExternalUpdate(3.5)

        assert prop.getValue() == 3.5

    def test_accepted_write_pushes_property_status(self, thing, recorder):
        prop = self._property(thing, LEVEL_SCHEMA, 50)
        subscriber = recorder()
        thing.subscribe(subscriber)

        prop.setValue(75)
        prop.setValue(75)

        assert subscriber.ofType('propertyStatus') == [{'prop': 75}]

    def test_writes_are_pushed_in_commit_order(self, thing, recorder):
        prop = self._property(thing, LEVEL_SCHEMA, 0)
        subscriber = recorder()
        thing.subscribe(subscriber)

        for level in (10, 20, 30, 20):
            prop.setValue(level)

        assert [m['prop'] for m in subscriber.ofType('propertyStatus')] == [10, 20, 30, 20]

    def test_property_description_has_link(self, thing):
        prop = self._property(thing, LEVEL_SCHEMA, 0)

        description = prop.asPropertyDescription()

        assert description['type'] == 'number'
        assert description['maximum'] == 100
        assert description['links'] == [{'rel': 'property', 'href': '/properties/prop'}]
        # The stored metadata is not mutated by rendering
        assert 'links' not in prop.metadata

    def test_invalid_schema_rejected_at_construction(self, thing):
        with pytest.raises(ValidationError):
            Property(thing, 'bad', Value(0), {'type': 'not-a-type'})
