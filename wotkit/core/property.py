"""
Property - named, schema-described, observable attribute of a Thing.

Writes are validated against the metadata before the underlying Value is
touched; a rejected write has no side effect and fires no notification.
"""

import copy
from typing import Any, Dict, Optional, TYPE_CHECKING

from wotkit.core.errors import UnsupportedOperationError
from wotkit.core.schema import buildValidator, validate
from wotkit.core.value import Value

if TYPE_CHECKING:
    from wotkit.core.thing import Thing


class Property:
    """A Property owned by a Thing, backed by a Value"""

    def __init__(self, thing: 'Thing', name: str, value: Value, metadata: Optional[Dict[str, Any]] = None):
        """
        Args:
            thing: Owning Thing
            name: Property name, unique within the Thing
            value: Backing Value (exclusively owned by this Property)
            metadata: JSON Schema plus descriptive keys
                (type, unit, minimum, maximum, enum, readOnly, title, description, @type)
        """
        self.thing = thing
        self.name = name
        self.value = value
        self.metadata = copy.deepcopy(metadata) if metadata else {}
        self.hrefPrefix = ''
        self.href = f"/properties/{name}"
        self._validator = buildValidator(self.metadata)

        # Forward every committed change to the owning Thing's subscribers
        self.value.addObserver(lambda _: self.thing.propertyNotify(self))

    @property
    def readOnly(self) -> bool:
        return bool(self.metadata.get('readOnly', False))

    def validateValue(self, value: Any):
        """Raise ValidationError if value may not be written"""
        if self.readOnly:
            raise UnsupportedOperationError(f"Read-only property: {self.name}")
        validate(self._validator, value, what=self.name)

    def getValue(self) -> Any:
        return self.value.get()

    def setValue(self, value: Any):
        """Validate then commit a client-requested value"""
        self.validateValue(value)
        self.value.set(value)

    def setHrefPrefix(self, prefix: str):
        self.hrefPrefix = prefix

    def getHref(self) -> str:
        return f"{self.hrefPrefix}{self.href}"

    def asPropertyDescription(self) -> Dict[str, Any]:
        """Metadata plus a link to this property's endpoint"""
        description = copy.deepcopy(self.metadata)
        links = description.setdefault('links', [])
        links.append({'rel': 'property', 'href': self.getHref()})
        return description
