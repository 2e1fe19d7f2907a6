"""Instrument and field metadata parsed from REDCap exports."""

from redcap_forms.metadata.field import (
    IGNORED_FIELD_TYPES,
    NONINPUT_FIELD_TYPES,
    REQUIRED_FIELD_TYPES,
    Field,
)
from redcap_forms.metadata.instrument import (
    InstrumentDefinition,
    InstrumentSnapshot,
    collapse_field_names,
)

__all__ = [
    "Field",
    "IGNORED_FIELD_TYPES",
    "InstrumentDefinition",
    "InstrumentSnapshot",
    "NONINPUT_FIELD_TYPES",
    "REQUIRED_FIELD_TYPES",
    "collapse_field_names",
]
