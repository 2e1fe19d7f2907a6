"""Instrument (form) definitions built from REDCap project metadata."""

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import BaseModel, Field as PydanticField

from redcap_forms.metadata.field import (
    CHECKBOX_OPTION_PATTERN,
    IGNORED_FIELD_TYPES,
    NONINPUT_FIELD_TYPES,
    REQUIRED_FIELD_TYPES,
    Field,
)

logger = logging.getLogger(__name__)


class InstrumentSnapshot(BaseModel):
    """Cacheable representation of an InstrumentDefinition.

    The Auto-Continue link and the diagnostic list of skipped field types
    are deliberately absent. Restore with InstrumentDefinition.from_snapshot
    and re-attach the chain afterwards.
    """

    name: str
    label: str
    is_cat: bool = False
    has_input_fields: bool = False
    required_fields: dict[str, Field] = PydanticField(default_factory=dict)
    optional_fields: dict[str, Field] = PydanticField(default_factory=dict)
    implied_fields: list[str] = PydanticField(default_factory=list)
    events: list[str] = PydanticField(default_factory=list)


def collapse_field_names(field_names: Iterable[str]) -> list[str]:
    """Collapse checkbox option names into their logical field names.

    ``["race___1", "race___2", "email"]`` becomes ``["race", "email"]``.
    Order of first appearance is kept; non-checkbox names pass through.
    """
    result: list[str] = []

    for field_name in field_names:
        match = CHECKBOX_OPTION_PATTERN.match(field_name)
        if match:
            base = match.group(1)
            if base not in result:
                result.append(base)
        else:
            result.append(field_name)

    return result


class InstrumentDefinition:
    """A REDCap instrument: its fields, events and Auto-Continue successor.

    Built once per form from the project's metadata exports and shared
    read-only afterwards. The required/optional split is made at the level
    REDCap exports records (one field per checkbox option); the ``form``
    accessors collapse checkbox options back into one logical field.
    """

    def __init__(
        self,
        name: str,
        label: str,
        field_names: Iterable[dict[str, Any]] = (),
        metadata: Iterable[dict[str, Any]] = (),
        event_mappings: Iterable[dict[str, Any]] = (),
    ) -> None:
        """Build an instrument from REDCap exports.

        Args:
            name: The instrument name (key of exportInstruments).
            label: The instrument label (value of exportInstruments).
            field_names: Rows from exportFieldNames mapping original field
                names to export field names.
            metadata: Rows from exportMetadata.
            event_mappings: Rows from exportInstrumentEventMappings, for
                longitudinal projects.
        """
        self.name = name
        self.label = label
        self.is_cat_instrument = False
        self.has_input_fields = False
        self.required_fields: dict[str, Field] = {}
        self.optional_fields: dict[str, Field] = {}
        self.implied_fields: list[str] = []
        self.events: list[str] = []

        self._next_instrument: InstrumentDefinition | None = None
        self.skipped_types: list[str] = []

        export_names = self._read_export_field_names(field_names)
        self._read_metadata(metadata, export_names)
        self.make_singular_checkboxes_optional()

        self.implied_fields.append(f"{name}_complete")
        self.implied_fields.append(f"{name}_timestamp")

        for entry in event_mappings:
            if entry.get("form") == name:
                self.events.append(entry["unique_event_name"])

    @staticmethod
    def _read_export_field_names(
        field_names: Iterable[dict[str, Any]],
    ) -> dict[str, list[str]]:
        export_names: dict[str, list[str]] = {}
        for entry in field_names:
            export_names.setdefault(entry["original_field_name"], []).append(
                entry["export_field_name"]
            )
        return export_names

    def _read_metadata(
        self,
        metadata: Iterable[dict[str, Any]],
        export_names: dict[str, list[str]],
    ) -> None:
        for row in metadata:
            if row.get("form_name") != self.name:
                continue
            # Descriptive fields appear in the metadata but not in the export list
            for export_name in export_names.get(row.get("field_name", ""), []):
                self.add_field(Field.from_metadata({**row, "field_name": export_name}))

    def add_field(self, field: Field) -> None:
        """Classify and store a field on the instrument.

        Fields of a required type land in required or optional according to
        the field's own flag. Every other type is optional; unrecognized
        types are remembered in ``skipped_types``.
        """
        if field.is_cat:
            self.is_cat_instrument = True

        if field.type in REQUIRED_FIELD_TYPES:
            if field.is_required:
                self.required_fields[field.name] = field
            else:
                self.optional_fields[field.name] = field
            self.has_input_fields = True
        else:
            self.optional_fields[field.name] = field

            if field.type not in NONINPUT_FIELD_TYPES:
                self.has_input_fields = True

            if field.type not in IGNORED_FIELD_TYPES and field.type not in self.skipped_types:
                logger.debug(
                    "Instrument %s: unrecognized field type %r on %s",
                    self.name,
                    field.type,
                    field.name,
                )
                self.skipped_types.append(field.type)

    def make_singular_checkboxes_optional(self) -> None:
        """Move checkbox groups with a single option to the optional fields.

        A lone checkbox is a toggle; leaving it unchecked is a valid answer.
        """
        groups: dict[str | None, list[Field]] = {}
        for field in self.required_fields.values():
            if field.type == "checkbox":
                groups.setdefault(field.checkbox_group_name(), []).append(field)

        for group in groups.values():
            if len(group) == 1:
                field = group[0]
                del self.required_fields[field.name]
                self.optional_fields[field.name] = field

    def get_name(self) -> str:
        return self.name

    def get_label(self) -> str:
        return self.label

    def is_cat(self, check_next: bool = True) -> bool:
        """Whether the instrument is a computer adaptive test.

        Args:
            check_next: Also consider the Auto-Continue chain; any CAT link
                makes the result true.
        """
        if not check_next:
            return self.is_cat_instrument
        return any(definition.is_cat_instrument for definition in self.iter_chain())

    def get_required_record_field_names(self) -> list[str]:
        return list(self.required_fields)

    def get_required_form_field_names(self) -> list[str]:
        return collapse_field_names(self.required_fields)

    def get_required_fields(self) -> dict[str, Field]:
        return self.required_fields

    def get_optional_record_field_names(self) -> list[str]:
        return list(self.optional_fields)

    def get_optional_form_field_names(self) -> list[str]:
        return collapse_field_names(self.optional_fields)

    def get_optional_fields(self) -> dict[str, Field]:
        return self.optional_fields

    def get_all_field_names(self) -> list[str]:
        """Required, optional and implied field names, at record level."""
        return [*self.required_fields, *self.optional_fields, *self.implied_fields]

    def get_all_fields(self) -> dict[str, Field]:
        return {**self.required_fields, **self.optional_fields}

    def has_inputs(self) -> bool:
        return self.has_input_fields

    def get_events(self) -> list[str]:
        return self.events

    # Auto-Continue chain

    def set_next_instrument(self, next_instrument: "InstrumentDefinition | None") -> None:
        self._next_instrument = next_instrument

    def get_next_instrument(self) -> "InstrumentDefinition | None":
        return self._next_instrument

    def has_next_instrument(self) -> bool:
        return self._next_instrument is not None

    def iter_chain(self) -> Iterator["InstrumentDefinition"]:
        """Yield this instrument and each Auto-Continue successor in order."""
        seen: set[int] = set()
        current: InstrumentDefinition | None = self
        while current is not None and id(current) not in seen:
            seen.add(id(current))
            yield current
            current = current._next_instrument

    def chain_names(self) -> list[str]:
        return [definition.name for definition in self.iter_chain()]

    # Cache support

    def to_snapshot(self) -> InstrumentSnapshot:
        return InstrumentSnapshot(
            name=self.name,
            label=self.label,
            is_cat=self.is_cat_instrument,
            has_input_fields=self.has_input_fields,
            required_fields=dict(self.required_fields),
            optional_fields=dict(self.optional_fields),
            implied_fields=list(self.implied_fields),
            events=list(self.events),
        )

    @classmethod
    def from_snapshot(cls, snapshot: InstrumentSnapshot) -> "InstrumentDefinition":
        """Rebuild a definition from a snapshot.

        Every field is re-bound to the instrument's name. The returned
        definition has no next instrument.
        """
        definition = cls(snapshot.name, snapshot.label)
        definition.is_cat_instrument = snapshot.is_cat
        definition.has_input_fields = snapshot.has_input_fields
        definition.required_fields = {
            name: field.with_form_name(snapshot.name)
            for name, field in snapshot.required_fields.items()
        }
        definition.optional_fields = {
            name: field.with_form_name(snapshot.name)
            for name, field in snapshot.optional_fields.items()
        }
        definition.implied_fields = list(snapshot.implied_fields)
        definition.events = list(snapshot.events)
        return definition

    def __repr__(self) -> str:
        return (
            f"InstrumentDefinition(name={self.name!r}, "
            f"required={len(self.required_fields)}, optional={len(self.optional_fields)})"
        )
