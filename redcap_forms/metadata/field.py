"""Classification of a single REDCap field from its metadata row."""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict

from redcap_forms.exceptions import ConfigurationError

REQUIRED_FIELD_TYPES = ("yesno", "truefalse", "radio", "text", "checkbox")
IGNORED_FIELD_TYPES = ("descriptive", "calc", "file", "dropdown", "notes")
NONINPUT_FIELD_TYPES = ("descriptive", "calc", "file")
OPTIONAL_INPUT_FIELD_TYPES = ("notes",)

MINIMUM_METADATA_KEYS = (
    "form_name",
    "field_name",
    "field_type",
    "branching_logic",
    "field_note",
    "required_field",
)

CHECKBOX_OPTION_PATTERN = re.compile(r"^(.*)___\d+$")
CAT_FIELD_PATTERN = re.compile(r"(_tscore|_std_error)")


class Field(BaseModel):
    """A field on a REDCap instrument.

    Fields are built from a row of the project's metadata export. Whether a
    field is required is derived once, at construction:

    - it is explicitly required, or has no branching logic, and
    - its note does not mark it optional, and
    - it is an input type (not descriptive, calc or file).

    Checkbox fields arrive already expanded to their export names
    (``race___1``, ``race___2``...), one Field per option.
    """

    model_config = ConfigDict(frozen=True)

    form_name: str
    name: str
    type: str
    branching: str = ""
    note: str = ""
    is_required: bool = False
    is_optional: bool = True
    is_cat: bool = False

    @classmethod
    def from_metadata(cls, row: dict[str, Any]) -> "Field":
        """Build a Field from a metadata export row.

        Args:
            row: A row from exportMetadata. Must carry at least the keys in
                MINIMUM_METADATA_KEYS.

        Returns:
            The classified Field.

        Raises:
            ConfigurationError: If a required metadata key is missing.
        """
        missing = [key for key in MINIMUM_METADATA_KEYS if key not in row]
        if missing:
            raise ConfigurationError(
                "Row passed is not a valid REDCap field",
                {"missing_keys": missing},
            )

        name = str(row["field_name"])
        field_type = str(row["field_type"])
        branching = str(row["branching_logic"] or "")
        note = str(row["field_note"] or "")

        required = (
            (row["required_field"] == "y" or branching == "")
            and "ptional" not in note
            and field_type not in NONINPUT_FIELD_TYPES
        )

        return cls(
            form_name=str(row["form_name"]),
            name=name,
            type=field_type,
            branching=branching,
            note=note,
            is_required=required,
            is_optional=not required,
            is_cat=CAT_FIELD_PATTERN.search(name) is not None,
        )

    def with_form_name(self, form_name: str) -> "Field":
        """Return a copy of the field bound to another form."""
        return self.model_copy(update={"form_name": form_name})

    def has_branching(self) -> bool:
        return self.branching != ""

    def checkbox_group_name(self) -> str | None:
        """Return the base name of a checkbox option field.

        ``race___3`` on a checkbox field yields ``race``. Any other field,
        including non-checkbox fields with a ``___`` suffix, yields None.
        """
        if self.type != "checkbox":
            return None

        match = CHECKBOX_OPTION_PATTERN.match(self.name)
        return match.group(1) if match else None
