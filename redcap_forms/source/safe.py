"""Data source wrapper that degrades failed exports to empty results."""

import logging
from typing import Any

from redcap_forms.exceptions import DataSourceError
from redcap_forms.source.protocol import DataSource, Row

logger = logging.getLogger(__name__)


class SafeDataSource:
    """Wraps a DataSource so export failures never reach the caller.

    A DataSourceError raised by an export is logged and replaced with the
    empty result for that call. Writes and record id generation are not
    idempotent, so their errors are logged and raised again.

    Example:
        >>> source = SafeDataSource(FileDataSource("projects/study"))
        >>> source.export_events()
        []
    """

    def __init__(self, inner: DataSource) -> None:
        self.inner = inner

    def _log(self, exc: DataSourceError) -> None:
        logger.error(
            "REDCap call %s failed: %s (status code: %s)",
            exc.call,
            exc.message,
            exc.status_code,
        )

    def export_project_info(self) -> Row:
        try:
            return self.inner.export_project_info()
        except DataSourceError as exc:
            self._log(exc)
            return {}

    def export_field_names(self) -> list[Row]:
        try:
            return self.inner.export_field_names()
        except DataSourceError as exc:
            self._log(exc)
            return []

    def export_metadata(self) -> list[Row]:
        try:
            return self.inner.export_metadata()
        except DataSourceError as exc:
            self._log(exc)
            return []

    def export_instruments(self) -> dict[str, str]:
        try:
            return self.inner.export_instruments()
        except DataSourceError as exc:
            self._log(exc)
            return {}

    def export_instrument_event_mappings(self) -> list[Row]:
        try:
            return self.inner.export_instrument_event_mappings()
        except DataSourceError as exc:
            self._log(exc)
            return []

    def export_events(self) -> list[Row]:
        try:
            return self.inner.export_events()
        except DataSourceError as exc:
            self._log(exc)
            return []

    def export_records(
        self,
        record_ids: list[str],
        fields: list[str] | None = None,
        instruments: list[str] | None = None,
        events: list[str] | None = None,
    ) -> list[Row]:
        try:
            return self.inner.export_records(record_ids, fields, instruments, events)
        except DataSourceError as exc:
            self._log(exc)
            return []

    def import_records(self, rows: list[Row]) -> Any:
        try:
            return self.inner.import_records(rows)
        except DataSourceError as exc:
            self._log(exc)
            raise

    def generate_next_record_name(self) -> str:
        try:
            return self.inner.generate_next_record_name()
        except DataSourceError as exc:
            self._log(exc)
            raise
