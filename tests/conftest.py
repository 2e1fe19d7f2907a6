"""Pytest configuration and shared fixtures.

The fixtures describe a small REDCap project with five instruments:

- demographics: text, radio and an 8-option checkbox (``race``)
- consent_form: text, yesno and an optional notes field
- history_general: text, yesno, a descriptive header and a checkbox with
  branching logic (optional)
- singular_checkbox: a single-option checkbox, so no required fields
- promis_anxiety: a CAT (``_tscore`` / ``_std_error`` fields)
- thank_you: a descriptive field only

The same metadata backs a classic project and a longitudinal project with
three events.
"""

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from redcap_forms.exceptions import DataSourceError
from redcap_forms.project import ProjectContext

EVENT_A = "initial_visit_arm_1"
EVENT_B = "annual_visit_1_arm_1"
EVENT_C = "annual_visit_2_arm_1"

PROJECT_INFO = {
    "project_id": 8626,
    "project_title": "testProjectTitle",
    "creation_time": "2016-09-29 11:55:49",
    "surveys_enabled": 1,
    "is_longitudinal": 0,
    "record_autonumbering_enabled": 1,
}

INSTRUMENTS = {
    "demographics": "Demographics",
    "consent_form": "Consent Form",
    "history_general": "History: General",
    "singular_checkbox": "Singular Checkbox",
    "promis_anxiety": "PROMIS Anxiety",
    "thank_you": "Thank You",
}

RACE_OPTIONS = ["1", "2", "3", "4", "5", "777", "888", "999"]


def _field_name(original: str, choice: str = "") -> dict[str, str]:
    return {
        "original_field_name": original,
        "choice_value": choice,
        "export_field_name": f"{original}___{choice}" if choice else original,
    }


FIELD_NAMES = [
    _field_name("record_id"),
    _field_name("email"),
    _field_name("address"),
    _field_name("phone"),
    _field_name("relationship"),
    _field_name("name_short"),
    _field_name("dob"),
    *[_field_name("race", choice) for choice in RACE_OPTIONS],
    _field_name("missing_data_field"),
    _field_name("demographics_complete"),
    _field_name("name_full"),
    _field_name("consent_yn"),
    _field_name("comments"),
    _field_name("consent_form_complete"),
    _field_name("past_illness"),
    _field_name("shunt_yn"),
    *[_field_name("csf_diversion", choice) for choice in ["1", "2", "3", "4"]],
    _field_name("history_general_complete"),
    _field_name("singular_checkbox", "1"),
    _field_name("singular_checkbox_complete"),
    _field_name("anxiety_tscore"),
    _field_name("anxiety_std_error"),
    _field_name("promis_anxiety_complete"),
    _field_name("thank_you_complete"),
]


def _metadata(
    field_name: str,
    form_name: str,
    field_type: str,
    branching_logic: str = "",
    field_note: str = "",
    required_field: str = "",
) -> dict[str, str]:
    return {
        "field_name": field_name,
        "form_name": form_name,
        "field_type": field_type,
        "field_label": field_name.replace("_", " ").title(),
        "branching_logic": branching_logic,
        "field_note": field_note,
        "required_field": required_field,
    }


METADATA = [
    _metadata("record_id", "demographics", "text"),
    _metadata("email", "demographics", "text"),
    _metadata("address", "demographics", "text"),
    _metadata("phone", "demographics", "text"),
    _metadata("relationship", "demographics", "radio"),
    _metadata("name_short", "demographics", "text", field_note="E.g. 'Will' or 'Susan'"),
    _metadata("dob", "demographics", "text"),
    _metadata("race", "demographics", "checkbox"),
    _metadata("missing_data_field", "demographics", "text"),
    _metadata("name_full", "consent_form", "text", field_note="E.g. Jane Mary Smith"),
    _metadata("consent_yn", "consent_form", "yesno"),
    _metadata("comments", "consent_form", "notes"),
    _metadata("history_header", "history_general", "descriptive"),
    _metadata("past_illness", "history_general", "text"),
    _metadata("shunt_yn", "history_general", "yesno"),
    _metadata("csf_diversion", "history_general", "checkbox", branching_logic="[shunt_yn] = '1'"),
    _metadata("singular_checkbox", "singular_checkbox", "checkbox"),
    _metadata("anxiety_tscore", "promis_anxiety", "text"),
    _metadata("anxiety_std_error", "promis_anxiety", "text"),
    _metadata("thank_you_text", "thank_you", "descriptive"),
]

EVENTS = [
    {"event_name": "initial_visit", "arm_num": 1, "unique_event_name": EVENT_A},
    {"event_name": "annual_visit_1", "arm_num": 1, "unique_event_name": EVENT_B},
    {"event_name": "annual_visit_2", "arm_num": 1, "unique_event_name": EVENT_C},
]

EVENT_MAPPINGS = [
    {"arm_num": 1, "unique_event_name": EVENT_A, "form": "demographics"},
    {"arm_num": 1, "unique_event_name": EVENT_A, "form": "consent_form"},
    {"arm_num": 1, "unique_event_name": EVENT_A, "form": "history_general"},
    {"arm_num": 1, "unique_event_name": EVENT_A, "form": "promis_anxiety"},
    {"arm_num": 1, "unique_event_name": EVENT_B, "form": "history_general"},
    {"arm_num": 1, "unique_event_name": EVENT_C, "form": "history_general"},
]


def _race(*checked: str) -> dict[str, str]:
    return {f"race___{choice}": "1" if choice in checked else "0" for choice in RACE_OPTIONS}


def _csf(*checked: str) -> dict[str, str]:
    return {f"csf_diversion___{choice}": "1" if choice in checked else "0" for choice in ["1", "2", "3", "4"]}


DEMOGRAPHICS_DONE = {
    "email": "test@foo.com",
    "address": "123 Main St",
    "phone": "(212) 555-1212",
    "relationship": "1",
    "name_short": "Sally",
    "dob": "2018-04-01",
    **_race("1", "999"),
    "missing_data_field": "n/a",
    "demographics_complete": "2",
    "demographics_timestamp": "2019-06-15 17:45:07",
}

CONSENT_DONE = {
    "name_full": "Robert Smith",
    "consent_yn": "1",
    "comments": "",
    "consent_form_complete": "2",
    "consent_form_timestamp": "2019-06-15 17:50:00",
}

PROMIS_DONE = {
    "anxiety_tscore": "55.1",
    "anxiety_std_error": "3.2",
    "promis_anxiety_complete": "2",
    "promis_anxiety_timestamp": "2019-06-15 18:00:00",
}

CLASSIC_RECORDS = [
    {
        "record_id": "1",
        **DEMOGRAPHICS_DONE,
        **CONSENT_DONE,
        "past_illness": "",
        "shunt_yn": "0",
        **_csf(),
        "history_general_complete": "0",
        "history_general_timestamp": "[not completed]",
        "singular_checkbox___1": "0",
        "singular_checkbox_complete": "2",
        "singular_checkbox_timestamp": "",
        **PROMIS_DONE,
        "thank_you_complete": "2",
        "thank_you_timestamp": "2019-06-15 18:05:00",
    },
    {
        "record_id": "2",
        "email": "",
        "address": "",
        "phone": "",
        "relationship": "0",
        "name_short": "",
        "dob": "",
        **_race(),
        "missing_data_field": "",
        "demographics_complete": "0",
        "demographics_timestamp": "2020-02-01 09:00:00",
        "name_full": "",
        "consent_yn": "",
        "consent_form_complete": "0",
        "consent_form_timestamp": "[not completed]",
        "singular_checkbox_complete": "0",
        "thank_you_complete": "0",
    },
]

LONGITUDINAL_RECORDS = [
    {
        "record_id": "1",
        "redcap_event_name": EVENT_A,
        **DEMOGRAPHICS_DONE,
        **CONSENT_DONE,
        "past_illness": "Mumps",
        "shunt_yn": "1",
        **_csf("1"),
        "history_general_complete": "2",
        "history_general_timestamp": "2019-06-15 17:55:00",
        **PROMIS_DONE,
    },
    {
        "record_id": "1",
        "redcap_event_name": EVENT_B,
        "past_illness": "",
        "shunt_yn": "",
        **_csf(),
        "history_general_complete": "0",
        "history_general_timestamp": "2020-06-01 12:00:00",
    },
]


class FakeDataSource:
    """In-memory DataSource serving the fixture project.

    Calls are recorded in ``calls``, imports in ``imported``. Any call name
    added to ``failing`` raises DataSourceError.
    """

    def __init__(
        self,
        *,
        project_info: dict[str, Any] | None = None,
        field_names: list[dict[str, Any]] | None = None,
        metadata: list[dict[str, Any]] | None = None,
        instruments: dict[str, str] | None = None,
        events: list[dict[str, Any]] | None = None,
        event_mappings: list[dict[str, Any]] | None = None,
        records: list[dict[str, Any]] | None = None,
    ) -> None:
        self.project_info = copy.deepcopy(project_info if project_info is not None else PROJECT_INFO)
        self.field_names = copy.deepcopy(field_names if field_names is not None else FIELD_NAMES)
        self.metadata = copy.deepcopy(metadata if metadata is not None else METADATA)
        self.instruments = dict(instruments if instruments is not None else INSTRUMENTS)
        self.events = copy.deepcopy(events or [])
        self.event_mappings = copy.deepcopy(event_mappings or [])
        self.records = copy.deepcopy(records or [])

        self.calls: list[str] = []
        self.imported: list[list[dict[str, Any]]] = []
        self.failing: set[str] = set()
        self.next_record_id = 100

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise DataSourceError(name, "Simulated failure", status_code=500)

    def export_project_info(self) -> dict[str, Any]:
        self._call("export_project_info")
        return dict(self.project_info)

    def export_field_names(self) -> list[dict[str, Any]]:
        self._call("export_field_names")
        return copy.deepcopy(self.field_names)

    def export_metadata(self) -> list[dict[str, Any]]:
        self._call("export_metadata")
        return copy.deepcopy(self.metadata)

    def export_instruments(self) -> dict[str, str]:
        self._call("export_instruments")
        return dict(self.instruments)

    def export_instrument_event_mappings(self) -> list[dict[str, Any]]:
        self._call("export_instrument_event_mappings")
        return copy.deepcopy(self.event_mappings)

    def export_events(self) -> list[dict[str, Any]]:
        self._call("export_events")
        return copy.deepcopy(self.events)

    def export_records(
        self,
        record_ids: list[str],
        fields: list[str] | None = None,
        instruments: list[str] | None = None,
        events: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        self._call("export_records")
        wanted = {str(record_id) for record_id in record_ids}
        keep = {"record_id", "redcap_event_name", *fields} if fields else None

        result = []
        for row in self.records:
            if row["record_id"] not in wanted:
                continue
            if events and row.get("redcap_event_name") not in events:
                continue
            result.append({k: v for k, v in row.items() if keep is None or k in keep})
        return result

    def import_records(self, rows: list[dict[str, Any]]) -> dict[str, int]:
        self._call("import_records")
        self.imported.append(copy.deepcopy(rows))
        return {"count": len(rows)}

    def generate_next_record_name(self) -> str:
        self._call("generate_next_record_name")
        self.next_record_id += 1
        return str(self.next_record_id)


@pytest.fixture
def classic_source() -> FakeDataSource:
    """A classic (single event) project with two records."""
    return FakeDataSource(records=CLASSIC_RECORDS)


@pytest.fixture
def longitudinal_source() -> FakeDataSource:
    """A longitudinal project with three events and one record."""
    return FakeDataSource(
        project_info={**PROJECT_INFO, "is_longitudinal": 1},
        events=EVENTS,
        event_mappings=EVENT_MAPPINGS,
        records=LONGITUDINAL_RECORDS,
    )


@pytest.fixture
def classic_context(classic_source: FakeDataSource) -> ProjectContext:
    return ProjectContext(classic_source)


@pytest.fixture
def longitudinal_context(longitudinal_source: FakeDataSource) -> ProjectContext:
    return ProjectContext(longitudinal_source)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A directory of JSON exports for the classic project."""
    directory = tmp_path / "project"
    directory.mkdir()

    files = {
        "project.json": PROJECT_INFO,
        "field_names.json": FIELD_NAMES,
        "metadata.json": METADATA,
        "instruments.json": INSTRUMENTS,
        "records.json": CLASSIC_RECORDS,
    }
    for name, data in files.items():
        with open(directory / name, "w") as f:
            json.dump(data, f)

    return directory


@pytest.fixture
def longitudinal_project_dir(tmp_path: Path) -> Path:
    """A directory of JSON exports for the longitudinal project."""
    directory = tmp_path / "longitudinal"
    directory.mkdir()

    files = {
        "project.json": {**PROJECT_INFO, "is_longitudinal": 1},
        "field_names.json": FIELD_NAMES,
        "metadata.json": METADATA,
        "instruments.json": INSTRUMENTS,
        "events.json": EVENTS,
        "event_mappings.json": EVENT_MAPPINGS,
        "records.json": LONGITUDINAL_RECORDS,
    }
    for name, data in files.items():
        with open(directory / name, "w") as f:
            json.dump(data, f)

    return directory


@pytest.fixture
def make_source() -> type[FakeDataSource]:
    """The fake data source class, for tests needing a custom project."""
    return FakeDataSource


@pytest.fixture
def classic_records() -> list[dict[str, Any]]:
    """A copy of the classic project's records."""
    return copy.deepcopy(CLASSIC_RECORDS)
