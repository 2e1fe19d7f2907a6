"""A data source backed by REDCap exports saved as JSON files."""

import json
import logging
from pathlib import Path
from typing import Any

from redcap_forms.exceptions import DataSourceError
from redcap_forms.metadata.field import CHECKBOX_OPTION_PATTERN
from redcap_forms.source.protocol import Row

logger = logging.getLogger(__name__)

REDCAP_EVENT_NAME = "redcap_event_name"

# file name -> required
PROJECT_FILES = {
    "project.json": True,
    "field_names.json": True,
    "metadata.json": True,
    "instruments.json": True,
    "event_mappings.json": False,
    "events.json": False,
    "records.json": False,
}


class FileDataSource:
    """Reads a project from a directory of JSON exports.

    Each file holds the decoded response of one API call::

        project.json         exportProjectInfo        (object)
        field_names.json     exportFieldNames         (list of rows)
        metadata.json        exportMetadata           (list of rows)
        instruments.json     exportInstruments        (name -> label)
        event_mappings.json  exportInstrumentEventMappings (optional)
        events.json          exportEvents             (optional, classic if absent)
        records.json         exportRecords            (optional, flat wire rows)

    Imported rows are merged into ``records.json``.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _read(self, name: str, call: str) -> Any:
        path = self.directory / name

        if not path.exists():
            if PROJECT_FILES.get(name, True):
                raise DataSourceError(call, f"File not found: {path}")
            return None

        try:
            with open(path) as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise DataSourceError(call, f"Invalid JSON in {path}: {e}") from e

    def export_project_info(self) -> Row:
        return self._read("project.json", "export_project_info")

    def export_field_names(self) -> list[Row]:
        return self._read("field_names.json", "export_field_names")

    def export_metadata(self) -> list[Row]:
        return self._read("metadata.json", "export_metadata")

    def export_instruments(self) -> dict[str, str]:
        return self._read("instruments.json", "export_instruments")

    def export_instrument_event_mappings(self) -> list[Row]:
        return self._read("event_mappings.json", "export_instrument_event_mappings") or []

    def export_events(self) -> list[Row]:
        return self._read("events.json", "export_events") or []

    def _records(self) -> list[Row]:
        return self._read("records.json", "export_records") or []

    def _record_id_field(self) -> str:
        metadata = self.export_metadata()
        if not metadata:
            raise DataSourceError("export_records", "Project metadata is empty")
        return metadata[0]["field_name"]

    def _instrument_fields(self, instruments: list[str]) -> set[str]:
        forms = {row["field_name"]: row["form_name"] for row in self.export_metadata()}
        names: set[str] = set()

        for row in self.export_field_names():
            if forms.get(row["original_field_name"]) in instruments:
                names.add(row["export_field_name"])
        for instrument in instruments:
            names.add(f"{instrument}_complete")
            names.add(f"{instrument}_timestamp")

        return names

    def export_records(
        self,
        record_ids: list[str],
        fields: list[str] | None = None,
        instruments: list[str] | None = None,
        events: list[str] | None = None,
    ) -> list[Row]:
        """Return the stored rows of the given records.

        With ``fields`` or ``instruments`` the rows are cut down to those
        fields (plus the record id and event marker). A checkbox's logical
        name selects all of its options.
        """
        wanted_ids = {str(record_id) for record_id in record_ids}
        id_field = self._record_id_field()

        allowed: set[str] | None = None
        if fields or instruments:
            allowed = {id_field, REDCAP_EVENT_NAME, *(fields or [])}
            if instruments:
                allowed |= self._instrument_fields(instruments)

        result: list[Row] = []
        for row in self._records():
            if str(row.get(id_field)) not in wanted_ids:
                continue
            if events and row.get(REDCAP_EVENT_NAME) not in events:
                continue

            if allowed is None:
                result.append(dict(row))
            else:
                result.append({key: value for key, value in row.items() if _selected(key, allowed)})

        return result

    def import_records(self, rows: list[Row]) -> dict[str, int]:
        """Merge rows into ``records.json``, keyed by record id and event."""
        id_field = self._record_id_field()
        records = self._records()

        for row in rows:
            key = (str(row[id_field]), row.get(REDCAP_EVENT_NAME))
            for existing in records:
                if (str(existing.get(id_field)), existing.get(REDCAP_EVENT_NAME)) == key:
                    existing.update(row)
                    break
            else:
                records.append(dict(row))

        path = self.directory / "records.json"
        try:
            with open(path, "w") as f:
                json.dump(records, f, indent=2)
        except OSError as e:
            raise DataSourceError("import_records", f"Cannot write {path}: {e}") from e

        logger.debug("Imported %d row(s) into %s", len(rows), path)
        return {"count": len(rows)}

    def generate_next_record_name(self) -> str:
        """One more than the largest numeric record id, starting at 1."""
        id_field = self._record_id_field()
        numeric = [int(row[id_field]) for row in self._records() if str(row.get(id_field, "")).isdigit()]
        return str(max(numeric, default=0) + 1)


def _selected(key: str, allowed: set[str]) -> bool:
    if key in allowed:
        return True
    match = CHECKBOX_OPTION_PATTERN.match(key)
    return match is not None and match.group(1) in allowed
