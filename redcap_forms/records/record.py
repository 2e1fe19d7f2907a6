"""A participant's record as stored in a REDCap project.

REDCap exchanges records as flat "wire rows": one row per record on a
classic project, one row per event on a longitudinal project. RecordStore
loads those rows into a typed store, tracks which fields have changed,
and turns dirty fields back into rows on save.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from redcap_forms.exceptions import (
    AmbiguousEventError,
    ConfigurationError,
    StateError,
    ValidationError,
)
from redcap_forms.metadata.field import CHECKBOX_OPTION_PATTERN
from redcap_forms.records.storage import ClassicStorage, LongitudinalStorage, Storage
from redcap_forms.source.protocol import DataSource, Row

logger = logging.getLogger(__name__)

REDCAP_EVENT_NAME = "redcap_event_name"
REDCAP_SURVEY_IDENTIFIER = "redcap_survey_identifier"
REDCAP_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

SPECIAL_FIELD_PATTERN = re.compile(
    rf"^({REDCAP_EVENT_NAME}|{REDCAP_SURVEY_IDENTIFIER}|.*_complete|.*_timestamp)$"
)


def _is_wire_value(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


class RecordStore:
    """Field values for a single REDCap record.

    The project-wide sets of valid fields, instruments and events are read
    from the data source when the store is created. The store's working
    scope (``fields``, ``instruments``, ``events``) is filtered against
    them; unknown names are dropped without error.

    A project with no events is "classic" and keeps one value per field.
    A project with events is "longitudinal" and keeps values per event.
    """

    def __init__(
        self,
        data_source: DataSource,
        fields: Iterable[str] = (),
        record_id: str | int | None = None,
        instruments: Iterable[str] = (),
        events: Iterable[str] = (),
    ) -> None:
        """Create a record store, optionally loading a record.

        Args:
            data_source: The REDCap data source.
            fields: Field names to load and save. Empty means all fields.
            record_id: Id of an existing record to load.
            instruments: Instrument names used to scope the export.
            events: Event names used to scope the export and storage.

        Raises:
            ConfigurationError: If the project metadata is empty, so the
                record id field cannot be determined.
        """
        self.data_source = data_source

        metadata = data_source.export_metadata()
        if not metadata:
            raise ConfigurationError("Project metadata is empty; cannot determine record id field")
        self.record_id_field: str = metadata[0]["field_name"]

        self.valid_fields: list[str] = [
            entry["export_field_name"] for entry in data_source.export_field_names()
        ]
        # REDCap never lists the event marker or survey identifier as fields
        self.valid_fields.append(REDCAP_EVENT_NAME)
        self.valid_fields.append(REDCAP_SURVEY_IDENTIFIER)

        self.valid_instruments: list[str] = list(data_source.export_instruments())
        # nor the survey timestamp of each instrument
        for name in self.valid_instruments:
            self.valid_fields.append(f"{name}_timestamp")

        self.valid_events: list[str] = [
            entry["unique_event_name"] for entry in data_source.export_events()
        ]

        self._valid_field_set = set(self.valid_fields)
        self._storage: Storage = (
            LongitudinalStorage() if self.valid_events else ClassicStorage()
        )
        self._record_id: str | None = None

        self.redcap_fields: list[str] = []
        self.redcap_instruments: list[str] = []
        self.redcap_events: list[str] = []

        self.set_fields(fields)
        self.set_instruments(instruments)
        self.set_events(events)

        if record_id is not None:
            self.load_record_by_id(record_id)

    # Loading

    def load_record_by_id(self, record_id: str | int) -> bool:
        """Load a record from the data source.

        Whatever the outcome, the store has no dirty fields afterwards.

        Args:
            record_id: The id of the record to load.

        Returns:
            True if the record was found and at least one value was
            stored, otherwise False.
        """
        self._record_id = str(record_id)
        self._storage.clear()

        # No tracked fields means every field
        fields: list[str] | None = None
        if self.redcap_fields:
            fields = list(self.redcap_fields)
            # The record id field brings the event marker along with it
            if self.record_id_field not in fields:
                fields.append(self.record_id_field)

        rows = self.data_source.export_records(
            [self._record_id],
            fields,
            self.redcap_instruments or None,
            self.redcap_events if self.project_uses_events() and self.redcap_events else None,
        )

        try:
            return bool(rows) and self._load_rows(rows) and self.is_loaded()
        finally:
            self._storage.clear_dirty()

    def load_record(self, rows: list[Row], event: str | None = None) -> bool:
        """Load wire rows into the store.

        Args:
            rows: Rows as returned by export_records for a single record.
            event: Event to store a single row under when the row carries
                no event marker. Ignored for classic projects.

        Returns:
            True if the rows were valid and loaded. Invalid rows leave the
            store untouched.

        Raises:
            StateError: If the rows belong to a different record than the
                one already held.
        """
        return self._load_rows(rows, event)

    def _load_rows(self, rows: list[Row], event: str | None = None) -> bool:
        if not rows or not self.validate_record(rows, event):
            return False

        incoming_id = str(rows[0][self.record_id_field])
        if self._record_id is not None and incoming_id != self._record_id:
            raise StateError(
                "Attempt to load more than one record into a record store",
                {"record_id": self._record_id, "incoming_record_id": incoming_id},
            )

        if self.project_uses_events():
            hint = event if len(rows) == 1 else None
            for row in rows:
                self._store_row(row, row.get(REDCAP_EVENT_NAME) or hint)
        else:
            self._store_row(rows[0], None)

        return True

    def _store_row(self, row: Mapping[str, Any], event: str | None) -> None:
        if self.project_uses_events():
            if not self.is_valid_event(event) or event is None:
                event = self.valid_events[0]
            if event not in self.redcap_events:
                self.redcap_events.append(event)

        for field_name, value in row.items():
            if not self.is_valid_field(field_name) or not _is_wire_value(value):
                continue

            if field_name == self.record_id_field:
                if self._record_id is None:
                    self._record_id = str(value)
            elif field_name != REDCAP_EVENT_NAME:
                RecordStore.set_field_value(self, field_name, str(value), event)

    def validate_record(self, rows: Any, event: str | None = None) -> bool:
        """Check that wire rows describe exactly one record.

        Every problem found is logged at WARNING level.

        Args:
            rows: The candidate rows.
            event: Event hint for a single row; lets a lone longitudinal
                row omit its event marker.

        Returns:
            True if the rows can be loaded.
        """
        try:
            self.check_record(rows, event)
        except ValidationError as exc:
            for violation in exc.details.get("violations", [exc.message]):
                logger.warning("Found issue with REDCap record. %s", violation)
            return False
        return True

    def check_record(self, rows: Any, event: str | None = None) -> None:
        """Check wire rows, collecting every violation.

        Raises:
            ValidationError: If any row breaks the record shape. The
                ``violations`` detail lists each problem found.
        """
        if not isinstance(rows, list):
            raise ValidationError("Expected a list of rows.")

        if self.project_uses_events() and len(rows) > len(self.valid_events):
            raise ValidationError("More entries in record than valid events.")
        if not self.project_uses_events() and len(rows) != 1:
            raise ValidationError("More than one entry in record.")

        violations: list[str] = []
        record_id: str | None = None

        if self.project_uses_events() and event is not None and event not in self.valid_events:
            violations.append(f"Invalid event {event}.")

        for row in rows:
            if not isinstance(row, Mapping):
                violations.append("Expected a list of associative rows.")
                continue

            for field_name, value in row.items():
                if not isinstance(field_name, str) or not _is_wire_value(value):
                    violations.append(f"Field {field_name!r} is not a name mapped to a string or number.")
                elif field_name not in self._valid_field_set and not SPECIAL_FIELD_PATTERN.match(field_name):
                    violations.append(f"Unknown field {field_name}.")
                elif field_name == REDCAP_EVENT_NAME and value not in self.valid_events:
                    violations.append(f"Invalid event {value}.")

            if self.record_id_field not in row:
                violations.append("Record ID field not found in one of the entries.")
                continue

            row_id = str(row[self.record_id_field])
            if record_id is None:
                record_id = row_id
            elif row_id != record_id:
                violations.append("More than one record present.")

            if (
                self.project_uses_events()
                and REDCAP_EVENT_NAME not in row
                and not (event is not None and len(rows) == 1)
            ):
                violations.append("Event name not found in one of the entries.")

        if violations:
            raise ValidationError(
                f"{len(violations)} issue(s) found in record",
                {"violations": violations},
            )

    def is_loaded(self) -> bool:
        return not self._storage.is_empty()

    # Scope

    def get_fields(self) -> list[str]:
        """The record id field followed by the fields being tracked."""
        return [self.record_id_field, *self.redcap_fields]

    def set_fields(self, fields: Iterable[str]) -> None:
        self.redcap_fields = [name for name in fields if name in self._valid_field_set]

    def add_fields(self, fields: Iterable[str]) -> None:
        for name in fields:
            if name in self._valid_field_set and name not in self.redcap_fields:
                self.redcap_fields.append(name)

    def remove_fields(self, fields: Iterable[str]) -> None:
        removed = set(fields)
        self.redcap_fields = [name for name in self.redcap_fields if name not in removed]

    def set_instruments(self, instruments: Iterable[str]) -> None:
        self.redcap_instruments = [name for name in instruments if name in self.valid_instruments]

    def set_events(self, events: Iterable[str]) -> None:
        self.redcap_events = [name for name in events if name in self.valid_events]

    def get_events(self) -> list[str]:
        return self.redcap_events

    @property
    def record_id(self) -> str | None:
        """The record id, or None if nothing was loaded or saved yet."""
        return self._record_id

    def set_record_id(self, record_id: str) -> None:
        self._record_id = record_id

    def get_record_id(self) -> str | None:
        return self._record_id

    # Values

    def get_field_value(self, field: str, event: str | None = None) -> str | None:
        """Fetch the value of a field.

        On a longitudinal project with no event given, the value comes
        from the first tracked event (or the first project event).
        ``event`` is ignored on classic projects.
        """
        if self.is_valid_field(field) and self.is_valid_event(event):
            return self.fetch_field(field, event)
        return None

    def get_most_recent_field_value(self, field: str) -> str | None:
        """Fetch the non-blank value from the latest tracked event."""
        if not self.is_valid_field(field):
            return None

        events: list[str | None] = list(self.redcap_events) if self.project_uses_events() else [None]
        result = None
        for event in events:
            value = self.fetch_field(field, event)
            if value is not None and value != "":
                result = value
        return result

    def set_field_value(self, field: str, value: str, event: str | None = None) -> None:
        """Set the value of a field and mark it dirty.

        Unknown fields and events are ignored. The field joins the tracked
        fields if it was not already one of them.
        """
        if self.is_valid_field(field) and self.is_valid_event(event):
            if field not in self.redcap_fields:
                self.redcap_fields.append(field)
            self.store_field(field, value, event)

    def fetch_field(self, field: str, event: str | None) -> str | None:
        return self._storage.get(field, self._resolve_event(event))

    def store_field(self, field: str, value: str, event: str | None) -> None:
        self._storage.set(field, value, self._resolve_event(event))

    def get_dirty_fields(self, event: str | None = None) -> list[str]:
        """Names of fields changed since the last load or save."""
        return self._storage.dirty_fields(event)

    def _resolve_event(self, event: str | None) -> str | None:
        if not self.project_uses_events():
            return None
        if event is not None:
            return event
        return self.redcap_events[0] if self.redcap_events else self.valid_events[0]

    # Wire rows

    def get_redcap_array(self, event: str | None = None) -> list[Row]:
        """Return the stored values as REDCap wire rows.

        Each row carries the record id, and on longitudinal projects the
        event marker. With an event on a longitudinal project only that
        event's row is returned.
        """
        if not self.is_valid_event(event):
            return []

        rows: list[Row] = []
        for row_event, values in self._storage.rows(event):
            row: Row = {self.record_id_field: self._record_id}
            if self.project_uses_events():
                row[REDCAP_EVENT_NAME] = row_event
            row.update(values)
            rows.append(row)
        return rows

    def collapse_checkbox_fields(
        self,
        fields_of_interest: Iterable[str],
        event: str | None = None,
    ) -> dict[str, Any]:
        """Collapse checkbox option fields into their logical field.

        REDCap exports a checkbox as one 0/1 field per option
        (``race___1``, ``race___2``...). The collapsed value is the sum of
        the options, so any truthy value means at least one box is checked.

        Args:
            fields_of_interest: Logical field names to return.
            event: The event to read. Required on longitudinal projects.

        Returns:
            Field name to value for the fields of interest present in the
            record. Checkbox groups map to an int.

        Raises:
            AmbiguousEventError: On a longitudinal project when the event is
                missing or not one of the record's events.
        """
        interest = set(fields_of_interest)

        if self.project_uses_events():
            self.validate_event(event)
        values = self._storage.event_values(self._resolve_event(event))

        collapsed: dict[str, Any] = {}
        for field_name, value in values.items():
            match = CHECKBOX_OPTION_PATTERN.match(field_name)
            if match:
                base = match.group(1)
                if base in interest:
                    collapsed[base] = collapsed.get(base, 0) + _checkbox_value(value)
            elif field_name in interest:
                collapsed[field_name] = value

        if self.record_id_field in interest:
            collapsed[self.record_id_field] = self._record_id

        return collapsed

    # Saving

    def save(self) -> None:
        """Send dirty fields to the data source.

        A record without an id gets one from the data source first. Dirty
        flags are cleared once the rows are handed over.
        """
        if self._record_id is None:
            self._record_id = str(self.data_source.generate_next_record_name())

        rows: list[Row] = []
        for event, values in self._storage.dirty_rows():
            row: Row = {self.record_id_field: self._record_id}
            if self.project_uses_events():
                row[REDCAP_EVENT_NAME] = event
            row.update(values)
            rows.append(row)

        if not rows:
            # New longitudinal record with nothing set: create it by id alone
            rows.append({self.record_id_field: self._record_id})

        logger.debug("Saving record %s: %d row(s)", self._record_id, len(rows))
        self.data_source.import_records(rows)

        self._storage.clear_dirty()

    # Checks

    def project_uses_events(self) -> bool:
        return bool(self.valid_events)

    def is_valid_field(self, field: str) -> bool:
        return field in self._valid_field_set

    def is_valid_event(self, event: str | None) -> bool:
        """True on classic projects, for None, or for a project event."""
        return not self.project_uses_events() or event is None or event in self.valid_events

    def validate_event(self, event: str | None) -> None:
        """Require a concrete event tracked by this record.

        Raises:
            AmbiguousEventError: If the event is None or not tracked.
        """
        if event is None or event not in self.get_events():
            raise AmbiguousEventError(event, list(self.get_events()))

    def get_record_id_field_name(self) -> str:
        return self.record_id_field


def _checkbox_value(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
