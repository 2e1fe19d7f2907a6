"""Completion status of one instrument record, for one event.

REDCap reports a completion code per instrument (``<form>_complete``):
0 incomplete, 1 unverified, 2 complete. That code says nothing about whether
every required field was actually answered, so the status here reconciles
the code with the locally computed field counts.
"""

from enum import IntFlag
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from redcap_forms.records.instrument_record import InstrumentRecord

NOT_COMPLETED_TIMESTAMP = "[not completed]"


class StatusFlag(IntFlag):
    """Bit flags making up a SurveyStatus."""

    UNKNOWN = 0x00
    REDCAP_COMPLETE = 0x01
    REDCAP_UNVERIFIED = 0x02
    REDCAP_SURVEY_INCOMPLETE = 0x04

    NOT_STARTED = 0x10
    COMPLETE = 0x20
    CANT_EDIT = 0x80


def _redcap_flags(code: str | int | None, timestamp: str) -> StatusFlag:
    """Translate REDCap's completion code into status flags.

    Code 0 with a real timestamp means the participant opened the survey
    but did not finish it.
    """
    try:
        value = int(code) if code not in (None, "") else 0
    except (TypeError, ValueError):
        return StatusFlag.UNKNOWN

    if value == 0:
        if timestamp and timestamp != NOT_COMPLETED_TIMESTAMP:
            return StatusFlag.REDCAP_SURVEY_INCOMPLETE
    elif value == 1:
        return StatusFlag.REDCAP_UNVERIFIED
    elif value == 2:
        return StatusFlag.REDCAP_COMPLETE

    return StatusFlag.UNKNOWN


class SurveyStatus:
    """Immutable completion status computed from a loaded InstrumentRecord.

    An unloaded record yields the default status: started, editable, not
    complete. Rebuild the status after the record's data changes.
    """

    def __init__(self, record: "InstrumentRecord", event: str | None = None) -> None:
        flags = StatusFlag.UNKNOWN
        first_instrument: str | None = None
        first_field: str | None = None

        if record.is_loaded():
            instrument = record.instrument
            code = record.get_field_value(f"{instrument.name}_complete", event)
            timestamp = record.get_field_value(f"{instrument.name}_timestamp", event) or ""

            flags |= _redcap_flags(code, timestamp)

            if not flags & StatusFlag.REDCAP_COMPLETE and not flags & StatusFlag.REDCAP_SURVEY_INCOMPLETE:
                flags |= StatusFlag.NOT_STARTED
            elif instrument.is_cat(False):
                # CAT completion is whatever REDCap says it is
                flags |= StatusFlag.COMPLETE

            if not instrument.is_cat(False):
                counts = record.get_completed_field_counts(event)

                if counts.required_count == 0:
                    flags |= StatusFlag.CANT_EDIT | StatusFlag.COMPLETE
                elif (
                    counts.completed_count == counts.required_count
                    and not flags & StatusFlag.REDCAP_SURVEY_INCOMPLETE
                ):
                    flags |= StatusFlag.COMPLETE

                first_instrument = counts.first_incomplete_instrument
                first_field = counts.first_incomplete_field

        self._flags = flags
        self._first_incomplete_instrument = first_instrument
        self._first_incomplete_field = first_field

    @property
    def flags(self) -> StatusFlag:
        return self._flags

    @property
    def first_incomplete_instrument(self) -> str | None:
        return self._first_incomplete_instrument

    @property
    def first_incomplete_field(self) -> str | None:
        return self._first_incomplete_field

    def is_redcap_complete(self) -> bool:
        return bool(self._flags & StatusFlag.REDCAP_COMPLETE)

    def is_redcap_incomplete(self) -> bool:
        return not self._flags & StatusFlag.REDCAP_COMPLETE

    def is_redcap_survey_incomplete(self) -> bool:
        return bool(self._flags & StatusFlag.REDCAP_SURVEY_INCOMPLETE)

    def not_started(self) -> bool:
        return bool(self._flags & StatusFlag.NOT_STARTED)

    def is_complete(self) -> bool:
        return bool(self._flags & StatusFlag.COMPLETE)

    def can_edit(self) -> bool:
        return not self._flags & StatusFlag.CANT_EDIT

    def __str__(self) -> str:
        states = []
        if self.not_started():
            states.append("Not Started")
        if self.is_complete():
            states.append("Complete")
        if self.can_edit():
            states.append("Can Edit")
        return " - ".join(states)

    def __repr__(self) -> str:
        return f"SurveyStatus({self._flags!r})"
