"""Field extraction: turn records into parameter mappings.

A record is anything with named fields:
- an object implementing the Record protocol (to_parameter_mapping())
- a Mapping with string keys
- a dataclass instance

Extraction produces a fresh dict of field name -> value. Scalars (bool,
int, float, Decimal, str, None) pass through unchanged; enums are replaced
by their value; sequence fields become lists of parameter mappings, one per
element. Anything else raises UnsupportedRecordShapeError.
"""

import dataclasses
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Protocol, runtime_checkable

from ruleforge.errors import UnsupportedRecordShapeError

ParameterMapping = dict[str, Any]

_SCALAR_TYPES = (bool, int, float, Decimal, str)


@runtime_checkable
class Record(Protocol):
    """Capability for types that expose their fields to expressions."""

    def to_parameter_mapping(self) -> Mapping[str, Any]:
        """Return field name -> value. Nested records may be returned as-is."""
        ...


def is_record(value: Any) -> bool:
    """Check whether a value can be extracted as a record."""
    if isinstance(value, (Record, Mapping)):
        return True
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def extract(record: Any) -> ParameterMapping:
    """Extract a record's fields into a parameter mapping.

    Args:
        record: A Record, Mapping or dataclass instance

    Returns:
        A new dict keyed by field name

    Raises:
        UnsupportedRecordShapeError: If the record, or any field within it,
            cannot be represented
    """
    return _extract_record(record, "")


def _record_fields(record: Any, path: str) -> Mapping[Any, Any]:
    if isinstance(record, Record):
        fields = record.to_parameter_mapping()
        if not isinstance(fields, Mapping):
            raise UnsupportedRecordShapeError(
                path, fields, "to_parameter_mapping() must return a mapping"
            )
        return fields

    if isinstance(record, Mapping):
        return record

    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return {f.name: getattr(record, f.name) for f in dataclasses.fields(record)}

    raise UnsupportedRecordShapeError(path, record, "not a record")


def _extract_record(record: Any, path: str) -> ParameterMapping:
    params: ParameterMapping = {}
    for name, value in _record_fields(record, path).items():
        if not isinstance(name, str):
            raise UnsupportedRecordShapeError(path, name, "field names must be strings")
        field_path = f"{path}.{name}" if path else name
        params[name] = _extract_value(value, field_path)
    return params


def _extract_value(value: Any, path: str) -> Any:
    if isinstance(value, Enum):
        value = value.value

    if value is None or isinstance(value, _SCALAR_TYPES):
        return value

    if isinstance(value, (list, tuple)):
        return [
            _extract_record(item, f"{path}[{index}]")
            for index, item in enumerate(value)
        ]

    raise UnsupportedRecordShapeError(path, value)
