"""Data source wrapper memoizing the project's metadata exports."""

import hashlib
import json
import logging
import time
from typing import Any, Callable

from redcap_forms.cache import Cache
from redcap_forms.source.protocol import DataSource, Row

logger = logging.getLogger(__name__)

CACHED_CALLS = (
    "export_project_info",
    "export_field_names",
    "export_metadata",
    "export_instruments",
    "export_instrument_event_mappings",
    "export_events",
)


class CachingDataSource:
    """Serves repeated metadata exports from a cache.

    Only calls that return the same answer every time are cached: project
    info, field names, metadata, instruments, event mappings and events.
    Records are always fetched from the inner source.

    Cache keys combine a hash of the server host and API credential with the
    call name and its JSON-encoded arguments, so two sources pointed at the
    same project share cache entries.
    """

    def __init__(self, inner: DataSource, cache: Cache, host: str, credential: str) -> None:
        """
        Args:
            inner: The data source making the actual calls.
            cache: Where results are kept.
            host: The REDCap server host name.
            credential: The API token for the project.
        """
        self.inner = inner
        self.cache = cache
        self._hash = hashlib.sha256(f"{host}-{credential}".encode()).hexdigest()

    @property
    def hash(self) -> str:
        """Hash identifying the project (host plus credential)."""
        return self._hash

    def clear_cache(self) -> None:
        """Drop this project's cached exports.

        Entries of other projects sharing the same cache are kept.
        """
        for call in CACHED_CALLS:
            self.cache.delete(self._key(call))

    def _key(self, call: str, *args: Any) -> str:
        return f"{call}-{json.dumps(args)}-{self._hash}"

    def _cached(self, call: str, func: Callable[..., Any], *args: Any) -> Any:
        key = self._key(call, *args)

        result = self.cache.get(key)
        if result is None:
            start = time.perf_counter()
            result = func(*args)
            logger.debug("Time to call REDCap function %s(): %.3fs", call, time.perf_counter() - start)

            if result is not None:
                self.cache.set(key, result)

        return result

    def export_project_info(self) -> Row:
        return self._cached("export_project_info", self.inner.export_project_info)

    def export_field_names(self) -> list[Row]:
        return self._cached("export_field_names", self.inner.export_field_names)

    def export_metadata(self) -> list[Row]:
        return self._cached("export_metadata", self.inner.export_metadata)

    def export_instruments(self) -> dict[str, str]:
        return self._cached("export_instruments", self.inner.export_instruments)

    def export_instrument_event_mappings(self) -> list[Row]:
        return self._cached("export_instrument_event_mappings", self.inner.export_instrument_event_mappings)

    def export_events(self) -> list[Row]:
        return self._cached("export_events", self.inner.export_events)

    def export_records(
        self,
        record_ids: list[str],
        fields: list[str] | None = None,
        instruments: list[str] | None = None,
        events: list[str] | None = None,
    ) -> list[Row]:
        return self.inner.export_records(record_ids, fields, instruments, events)

    def import_records(self, rows: list[Row]) -> Any:
        return self.inner.import_records(rows)

    def generate_next_record_name(self) -> str:
        return self.inner.generate_next_record_name()
