"""Field value storage for classic and longitudinal projects.

A classic project keeps one set of values per record. A longitudinal
project keeps one set per event. The storage shape is picked once, when the
record is created, and every accessor goes through the variant's methods.
"""

from dataclasses import dataclass, field


@dataclass
class ClassicStorage:
    """Values for a project without events: field -> value."""

    values: dict[str, str] = field(default_factory=dict)
    dirty: dict[str, bool] = field(default_factory=dict)

    def get(self, field_name: str, event: str | None) -> str | None:
        return self.values.get(field_name)

    def set(self, field_name: str, value: str, event: str | None) -> None:
        self.values[field_name] = value
        self.dirty[field_name] = True

    def event_values(self, event: str | None) -> dict[str, str]:
        return self.values

    def rows(self, event: str | None = None) -> list[tuple[str | None, dict[str, str]]]:
        return [(None, dict(self.values))]

    def dirty_rows(self) -> list[tuple[str | None, dict[str, str]]]:
        return [(None, {name: self.values[name] for name in self.dirty})]

    def dirty_fields(self, event: str | None = None) -> list[str]:
        return list(self.dirty)

    def clear_dirty(self) -> None:
        self.dirty.clear()

    def clear(self) -> None:
        self.values.clear()
        self.dirty.clear()

    def is_empty(self) -> bool:
        return not self.values


@dataclass
class LongitudinalStorage:
    """Values for a project with events: event -> field -> value.

    Callers resolve a missing event to a default before calling in; these
    methods always receive a concrete event name.
    """

    values: dict[str, dict[str, str]] = field(default_factory=dict)
    dirty: dict[str, dict[str, bool]] = field(default_factory=dict)

    def get(self, field_name: str, event: str | None) -> str | None:
        return self.values.get(event, {}).get(field_name)

    def set(self, field_name: str, value: str, event: str | None) -> None:
        self.values.setdefault(event, {})[field_name] = value
        self.dirty.setdefault(event, {})[field_name] = True

    def event_values(self, event: str | None) -> dict[str, str]:
        return self.values.get(event, {})

    def has_event(self, event: str) -> bool:
        return event in self.values

    def rows(self, event: str | None = None) -> list[tuple[str | None, dict[str, str]]]:
        if event is None:
            return [(name, dict(fields)) for name, fields in self.values.items()]
        if event in self.values:
            return [(event, dict(self.values[event]))]
        return []

    def dirty_rows(self) -> list[tuple[str | None, dict[str, str]]]:
        return [
            (event, {name: self.values[event][name] for name in fields})
            for event, fields in self.dirty.items()
        ]

    def dirty_fields(self, event: str | None = None) -> list[str]:
        if event is None:
            return [name for fields in self.dirty.values() for name in fields]
        return list(self.dirty.get(event, {}))

    def clear_dirty(self) -> None:
        self.dirty.clear()

    def clear(self) -> None:
        self.values.clear()
        self.dirty.clear()

    def is_empty(self) -> bool:
        return not self.values


Storage = ClassicStorage | LongitudinalStorage
