"""Remote data source protocol.

Defines the REDCap API calls this package consumes. Transport, TLS and
retry policy live in the implementation, not here.
"""

from typing import Any, Protocol, runtime_checkable

Row = dict[str, Any]


@runtime_checkable
class DataSource(Protocol):
    """Protocol for REDCap data sources.

    Rows are the flat associative records REDCap exchanges over its API
    ("php" format, flat type, raw values). Implementations are expected to
    raise DataSourceError on failure; wrap them in SafeDataSource to turn
    failed exports into empty results.
    """

    def export_project_info(self) -> Row:
        """Return the project info row (project_id, project_title...)."""
        ...

    def export_field_names(self) -> list[Row]:
        """Return rows with ``original_field_name`` and ``export_field_name``."""
        ...

    def export_metadata(self) -> list[Row]:
        """Return the data dictionary, one row per field, in form order."""
        ...

    def export_instruments(self) -> dict[str, str]:
        """Return instrument names mapped to their labels."""
        ...

    def export_instrument_event_mappings(self) -> list[Row]:
        """Return rows with ``unique_event_name`` and ``form``."""
        ...

    def export_events(self) -> list[Row]:
        """Return event rows. Empty for classic (non-longitudinal) projects."""
        ...

    def export_records(
        self,
        record_ids: list[str],
        fields: list[str] | None = None,
        instruments: list[str] | None = None,
        events: list[str] | None = None,
    ) -> list[Row]:
        """Return wire rows for the given records, restricted to the scope given.

        Survey fields (``<form>_timestamp``) are always included.
        """
        ...

    def import_records(self, rows: list[Row]) -> Any:
        """Write wire rows. Returns the API acknowledgement."""
        ...

    def generate_next_record_name(self) -> str:
        """Return the next unused record id."""
        ...
