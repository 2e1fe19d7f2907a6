"""Pydantic models for REDCap project info and events."""

import re
from typing import Any

from pydantic import BaseModel

from redcap_forms.exceptions import ConfigurationError

PROJECT_INFO_KEYS = (
    "project_id",
    "project_title",
    "creation_time",
    "surveys_enabled",
    "is_longitudinal",
    "record_autonumbering_enabled",
)


class Project(BaseModel):
    """A REDCap project, as described by exportProjectInfo."""

    project_id: int
    project_title: str
    creation_time: str
    surveys_enabled: bool
    is_longitudinal: bool
    record_autonumbering_enabled: bool

    @classmethod
    def from_info(cls, info: dict[str, Any]) -> "Project":
        """Build a project from its project info row.

        Raises:
            ConfigurationError: If any of the project info keys is missing.
        """
        missing = [key for key in PROJECT_INFO_KEYS if key not in info]
        if missing:
            raise ConfigurationError(
                "Project info is not valid REDCap project data",
                {"missing_keys": missing},
            )

        return cls(
            project_id=int(info["project_id"]),
            project_title=info["project_title"],
            creation_time=info["creation_time"],
            surveys_enabled=info["surveys_enabled"] in (1, "1", True),
            is_longitudinal=info["is_longitudinal"] in (1, "1", True),
            record_autonumbering_enabled=info["record_autonumbering_enabled"] in (1, "1", True),
        )

    @property
    def cache_key(self) -> str:
        """Key identifying this project, safe to use in cache keys."""
        return re.sub(r"[{}()/\\@: ]", "_", f"{self.project_id}-{self.creation_time}")


class Event(BaseModel):
    """A longitudinal event, as described by exportEvents."""

    name: str
    label: str | None = None
    arm_num: int | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Event":
        """Build an event from an exportEvents row.

        Raises:
            ConfigurationError: If the row has no ``unique_event_name``.
        """
        if "unique_event_name" not in row:
            raise ConfigurationError("Row is not a valid REDCap event", {"row": row})

        arm = row.get("arm_num")
        return cls(
            name=row["unique_event_name"],
            label=row.get("event_name"),
            arm_num=int(arm) if arm not in (None, "") else None,
        )
