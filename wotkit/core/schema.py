"""
JSON Schema validation for property values and action inputs.

Property metadata and action input schemas are JSON Schema documents
extended with Web Thing vocabulary (unit, readOnly, @type, links). Unknown
keywords are ignored by the validator, so metadata is validated as-is.
"""

from typing import Any, Dict, Optional

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from wotkit.core.errors import ValidationError


# Keys describing a property or action that are not part of the value schema
DESCRIPTIVE_KEYS = ('links', 'href', 'forms')


def buildValidator(schema: Optional[Dict[str, Any]]) -> Optional[Draft7Validator]:
    """
    Build a validator for a schema, or None when there is nothing to check.

    Raises ValidationError if the schema itself is malformed.
    """
    if not schema:
        return None

    valueSchema = {k: v for k, v in schema.items() if k not in DESCRIPTIVE_KEYS}
    # 'readOnly' is enforced by Property, not by the value check
    valueSchema.pop('readOnly', None)

    try:
        Draft7Validator.check_schema(valueSchema)
    except Exception as e:
        raise ValidationError(f"Invalid schema: {getattr(e, 'message', e)}") from e

    return Draft7Validator(valueSchema)


def validate(validator: Optional[Draft7Validator], value: Any, what: str = 'value'):
    """Raise ValidationError describing the most relevant schema violation"""
    if validator is None:
        return

    error = best_match(validator.iter_errors(value))
    if error is not None:
        location = '.'.join(str(p) for p in error.absolute_path)
        where = f"{what}.{location}" if location else what
        raise ValidationError(f"Invalid {where}: {error.message}")
