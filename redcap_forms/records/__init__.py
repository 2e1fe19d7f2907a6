"""Record storage for REDCap projects."""

from redcap_forms.records.instrument_record import InstrumentRecord
from redcap_forms.records.record import (
    REDCAP_EVENT_NAME,
    REDCAP_SURVEY_IDENTIFIER,
    REDCAP_TIMESTAMP_FORMAT,
    RecordStore,
)
from redcap_forms.records.storage import ClassicStorage, LongitudinalStorage, Storage

__all__ = [
    "ClassicStorage",
    "InstrumentRecord",
    "LongitudinalStorage",
    "REDCAP_EVENT_NAME",
    "REDCAP_SURVEY_IDENTIFIER",
    "REDCAP_TIMESTAMP_FORMAT",
    "RecordStore",
    "Storage",
]
