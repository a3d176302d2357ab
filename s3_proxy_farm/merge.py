"""
Deep merge of CDK property overrides onto default properties.

CDK props mix plain data (nested dicts and jsii structs such as
``ec2.SubnetSelection``) with live objects such as constructs, ``Duration``
values or ``ec2.InstanceType`` instances. Only plain data is merged key by
key; every other value is treated as atomic so a resource handle is never
rebuilt field by field.
"""

import enum
import logging
from collections.abc import Mapping
from typing import Any, Dict, Optional, Tuple

from .errors import FleetConfigurationError, MergeConflictError, UnsupportedValueError

logger = logging.getLogger(__name__)

_SCALAR_TYPES = (str, bytes, bool, int, float, enum.Enum)


class ValueKind(enum.Enum):
    """Merge classification of a single value."""

    PLAIN_RECORD = "plain record"
    SCALAR = "scalar"
    OPAQUE_HANDLE = "opaque handle"


def is_struct(value: Any) -> bool:
    """True for jsii struct instances, which keep their fields in ``_values``."""
    return not isinstance(value, (Mapping, type)) and isinstance(getattr(value, "_values", None), dict)


def classify(value: Any) -> ValueKind:
    """
    Classify a value for merging.

    Args:
        value: Any value found in a props mapping

    Returns:
        ValueKind of the value

    Raises:
        TypeError: If the value is callable (functions, methods, classes)
    """
    if isinstance(value, Mapping) or is_struct(value):
        return ValueKind.PLAIN_RECORD
    if value is None or isinstance(value, _SCALAR_TYPES):
        return ValueKind.SCALAR
    if callable(value):
        raise TypeError(f"{type(value).__name__} values cannot be merged")
    return ValueKind.OPAQUE_HANDLE


def deep_merge(default: Mapping, override: Optional[Mapping] = None) -> Dict[str, Any]:
    """
    Merge ``override`` onto ``default`` and return a new dictionary.

    Plain records present on both sides are merged recursively. For any other
    pair the override value wins when it is present and not ``None``;
    otherwise the default value is kept. A merged record keeps the struct
    type of the override, else of the default, else it is a dict. Neither
    argument is modified.

    Args:
        default: Default properties
        override: Caller supplied overrides, may omit any key

    Returns:
        A new dictionary holding the merged properties

    Raises:
        FleetConfigurationError: If either argument is not a mapping
        MergeConflictError: If a key is a plain record on one side only
        UnsupportedValueError: If any value is callable
    """
    if not isinstance(default, Mapping):
        raise FleetConfigurationError(
            f"Default properties must be a mapping, got {type(default).__name__}"
        )
    if override is None:
        override = {}
    elif not isinstance(override, Mapping):
        raise FleetConfigurationError(
            f"Override properties must be a mapping, got {type(override).__name__}"
        )

    return _merge_records(default, override, ())


def _merge_records(default: Mapping, override: Mapping, path: Tuple[str, ...]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}

    for key, value in default.items():
        merged[key] = _copy_value(value, path + (str(key),))

    for key, value in override.items():
        key_path = path + (str(key),)
        override_kind = _classify_at(value, key_path)
        if value is None:
            # None means "not set" for CDK Python props
            continue

        if key not in merged or merged[key] is None:
            merged[key] = _copy_value(value, key_path)
            continue

        default_kind = _classify_at(merged[key], key_path)
        if default_kind is ValueKind.PLAIN_RECORD and override_kind is ValueKind.PLAIN_RECORD:
            fields = _merge_records(_fields(merged[key]), _fields(value), key_path)
            merged[key] = _rebuild(value if is_struct(value) else merged[key], fields)
        elif ValueKind.PLAIN_RECORD in (default_kind, override_kind):
            raise MergeConflictError(key_path, default_kind.value, override_kind.value)
        else:
            merged[key] = value

    return merged


def _fields(record: Any) -> Mapping:
    return record._values if is_struct(record) else record


def _rebuild(shape: Any, fields: Dict[str, Any]) -> Any:
    if is_struct(shape):
        return type(shape)(**fields)
    return fields


def _copy_value(value: Any, path: Tuple[str, ...]) -> Any:
    if _classify_at(value, path) is ValueKind.PLAIN_RECORD:
        fields = {key: _copy_value(item, path + (str(key),)) for key, item in _fields(value).items()}
        return _rebuild(value, fields)
    return value


def _classify_at(value: Any, path: Tuple[str, ...]) -> ValueKind:
    try:
        return classify(value)
    except TypeError:
        logger.debug(f"Rejecting callable at {'.'.join(path)}")
        raise UnsupportedValueError(path, value) from None
