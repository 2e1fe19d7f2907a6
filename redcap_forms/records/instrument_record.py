"""Records scoped to one instrument and its Auto-Continue successors."""

from datetime import datetime
from typing import Any

from redcap_forms.exceptions import AmbiguousEventError
from redcap_forms.metadata.instrument import InstrumentDefinition
from redcap_forms.records.record import REDCAP_EVENT_NAME, REDCAP_TIMESTAMP_FORMAT, RecordStore
from redcap_forms.source.protocol import DataSource, Row
from redcap_forms.status.field_count import CompletedFieldCount
from redcap_forms.status.survey_status import NOT_COMPLETED_TIMESTAMP, SurveyStatus


class InstrumentRecord(RecordStore):
    """A record holding the data of one instrument.

    When the instrument has Auto-Continue successors, the record builds one
    InstrumentRecord per successor. All of them share a single ordered list
    (the chain) and each knows its position in it, so operations over the
    logical form walk forward through the list from their own position.

    Example:
        >>> record = InstrumentRecord(source, instruments["consent_form"], "1001")
        >>> record.get_status().is_complete()
        False
        >>> record.get_cumulative_field_counts()
        CompletedFieldCount(3/5, first_incomplete=history_general.smoker)
    """

    def __init__(
        self,
        data_source: DataSource,
        instrument: InstrumentDefinition,
        record_id: str | int | None = None,
        *,
        chain: list["InstrumentRecord"] | None = None,
    ) -> None:
        """Create the record, and the records of the instrument's successors.

        Args:
            data_source: The REDCap data source.
            instrument: The instrument definition, with its chain attached.
            record_id: Id of an existing record to load into every link.
            chain: The chain this record joins. Only used internally while
                the first record builds its successors.
        """
        self.instrument = instrument
        self._status: SurveyStatus | dict[str, SurveyStatus] = {}

        is_head = chain is None
        self._chain: list[InstrumentRecord] = [] if chain is None else chain
        self._position = len(self._chain)
        self._chain.append(self)

        super().__init__(
            data_source,
            instrument.get_all_field_names(),
            None,
            [instrument.get_name()],
            instrument.get_events(),
        )

        if not is_head:
            return

        for definition in list(instrument.iter_chain())[1:]:
            InstrumentRecord(data_source, definition, chain=self._chain)

        if record_id is not None:
            for link in self._chain:
                RecordStore.load_record_by_id(link, record_id)

        for link in self._chain:
            link._init_survey_status()

    def _following(self) -> list["InstrumentRecord"]:
        """This record and every record after it in the chain."""
        return self._chain[self._position:]

    def _init_survey_status(self) -> None:
        if self.project_uses_events():
            self._status = {event: SurveyStatus(self, event) for event in self.get_events()}
        else:
            self._status = SurveyStatus(self)

    def get_instrument(self) -> InstrumentDefinition:
        return self.instrument

    def get_next_instrument_record(self) -> "InstrumentRecord | None":
        if self._position + 1 < len(self._chain):
            return self._chain[self._position + 1]
        return None

    def get_status(self, event: str | None = None) -> SurveyStatus:
        """Fetch the survey status of this instrument.

        Args:
            event: The event to fetch the status for. Ignored for classic
                projects.

        Raises:
            AmbiguousEventError: On a longitudinal project when no event is
                given or the event is not one of the instrument's events.
        """
        if isinstance(self._status, SurveyStatus):
            return self._status

        if event is None or event not in self._status:
            raise AmbiguousEventError(event, list(self._status))
        return self._status[event]

    def can_edit(self, event: str | None = None) -> bool:
        """True if any instrument from this one onward is editable."""
        return any(link.get_status(event).can_edit() for link in self._following())

    def is_complete(self, check_next: bool = True, event: str | None = None) -> bool:
        """True if this instrument, and optionally every successor, is complete."""
        links = self._following() if check_next else [self]
        return all(link.get_status(event).is_complete() for link in links)

    def not_started(self, check_next: bool = True, event: str | None = None) -> bool:
        """True if this instrument, and optionally every successor, is not started.

        An instrument without input fields always looks not started, so
        successors are checked too before answering.
        """
        links = self._following() if check_next else [self]
        return all(link.get_status(event).not_started() for link in links)

    def get_completed_field_counts(self, event: str | None = None) -> CompletedFieldCount:
        """Field counts for this instrument only.

        A CAT instrument has no fixed set of questions; it counts as one
        required field, completed when the instrument is complete.
        """
        if self.instrument.is_cat(False):
            return CompletedFieldCount(1 if self.is_complete(False, event) else 0, 1)
        return self.init_required_field_counts(event)

    def get_cumulative_field_counts(self, event: str | None = None) -> CompletedFieldCount:
        """Field counts for this instrument and every successor."""
        counts = self.get_completed_field_counts(event)
        for link in self._following()[1:]:
            counts.merge(link.get_completed_field_counts(event))
        return counts

    def init_required_field_counts(self, event: str | None = None) -> CompletedFieldCount:
        """Count the answered required fields of this instrument.

        A required field is unanswered when its value is empty, or for a
        checkbox group, when no option is checked. If fewer fields are
        answered than required and no unanswered field was seen, the first
        required field missing from the record is reported instead.

        Raises:
            AmbiguousEventError: On a longitudinal project when the event is
                missing or not one of the instrument's events.
        """
        required = [
            name for name in self.get_required_form_field_names(event) if name != self.record_id_field
        ]

        if not required or not self.is_loaded():
            return CompletedFieldCount()

        values = self.collapse_checkbox_fields(required, event)

        completed = 0
        first_incomplete: str | None = None
        for name in required:
            if name not in values:
                continue
            value = values[name]
            if value == "" or (isinstance(value, int) and value == 0):
                if first_incomplete is None:
                    first_incomplete = name
            else:
                completed += 1

        if completed != len(required) and first_incomplete is None:
            missing = [name for name in required if name not in values]
            if missing:
                first_incomplete = missing[0]

        return CompletedFieldCount(completed, len(required), self.instrument.get_name(), first_incomplete)

    def get_required_form_field_names(self, event: str | None = None) -> list[str]:
        # Optional fields with branching are never promoted; branching logic is not evaluated.
        return self.instrument.get_required_form_field_names()

    def get_timestamp(self, event: str | None = None) -> datetime | None:
        """When the survey was last submitted.

        A ``[not completed]`` timestamp defers to the next instrument in the
        chain.

        Returns:
            The parsed timestamp, or None if it is empty or unparsable.
        """
        record: InstrumentRecord | None = self
        value = None

        while record is not None:
            value = RecordStore.get_field_value(record, f"{record.instrument.get_name()}_timestamp", event)
            if value != NOT_COMPLETED_TIMESTAMP:
                break
            record = record.get_next_instrument_record()

        if not value:
            return None
        try:
            return datetime.strptime(value, REDCAP_TIMESTAMP_FORMAT)
        except ValueError:
            return None

    def _owner_of(self, field: str) -> "InstrumentRecord | None":
        for link in self._following():
            if field in link.instrument.get_all_field_names():
                return link
        return None

    def get_field_value(self, field: str, event: str | None = None) -> str | None:
        """Fetch a field value from whichever instrument in the chain owns it."""
        owner = self._owner_of(field)
        if owner is None:
            return None
        return RecordStore.get_field_value(owner, field, event)

    def set_field_value(self, field: str, value: str, event: str | None = None) -> None:
        """Set a field value on whichever instrument in the chain owns it."""
        owner = self._owner_of(field)
        if owner is not None:
            RecordStore.set_field_value(owner, field, value, event)

    def get_events(self) -> list[str]:
        return self.instrument.get_events()

    def get_redcap_array(self, event: str | None = None) -> list[Row]:
        """Wire rows for the whole chain.

        Each successor's values are merged into the matching row (same
        event) of this record; values closer to this record win.
        """
        rows = RecordStore.get_redcap_array(self, event)

        for link in self._following()[1:]:
            rows = self._merge_rows(rows, RecordStore.get_redcap_array(link, event))

        return rows

    def _merge_rows(self, rows: list[Row], later_rows: list[Row]) -> list[Row]:
        if not later_rows:
            return rows

        if not self.project_uses_events():
            return [{**later_rows[0], **rows[0]}]

        by_event: dict[Any, Row] = {row.get(REDCAP_EVENT_NAME): row for row in later_rows}
        return [{**by_event.get(row[REDCAP_EVENT_NAME], {}), **row} for row in rows]

    def load_record(self, rows: list[Row], event: str | None = None) -> bool:
        """Load wire rows into this record and every following one."""
        result = RecordStore.load_record(self, rows, event)

        for link in self._following()[1:]:
            RecordStore.load_record(link, rows, event)

        for link in self._following():
            link._init_survey_status()

        return result

    def load_record_by_id(self, record_id: str | int) -> bool:
        """Load a record from the data source into this and every following record."""
        result = RecordStore.load_record_by_id(self, record_id)

        for link in self._following()[1:]:
            RecordStore.load_record_by_id(link, record_id)

        for link in self._following():
            link._init_survey_status()

        return result

    def save(self) -> None:
        """Save this record, then every following record with changes.

        A new record gets its id when this record is saved; the id is
        passed on to the following records.
        """
        RecordStore.save(self)

        for link in self._following()[1:]:
            if link.get_dirty_fields():
                link.set_record_id(self.record_id)
                RecordStore.save(link)

    def __repr__(self) -> str:
        return f"InstrumentRecord({self.instrument.get_name()!r}, record_id={self.record_id!r})"
