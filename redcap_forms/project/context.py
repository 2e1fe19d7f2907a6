"""Entry point tying a data source, a cache and settings to one project."""

import logging
import time
from collections.abc import Iterable
from urllib.parse import urlparse

from redcap_forms.cache import Cache, MemoryCache
from redcap_forms.config import Settings
from redcap_forms.exceptions import ConfigurationError
from redcap_forms.metadata.instrument import InstrumentDefinition, InstrumentSnapshot
from redcap_forms.project.models import Event, Project
from redcap_forms.records.instrument_record import InstrumentRecord
from redcap_forms.records.record import RecordStore
from redcap_forms.source.caching import CachingDataSource
from redcap_forms.source.files import FileDataSource
from redcap_forms.source.protocol import DataSource
from redcap_forms.source.safe import SafeDataSource

logger = logging.getLogger(__name__)


class ProjectContext:
    """Builds and hands out the metadata and records of one project.

    Instrument definitions are built once per context. With a cache they
    are also kept as snapshots, so other contexts for the same project
    skip the metadata exports. Auto-Continue chains come from the
    ``auto_continue`` setting and are re-linked after every load.

    Example:
        >>> context = ProjectContext.from_settings(load_settings())
        >>> record = context.instrument_record("consent_form", "1001")
        >>> print(record.get_status())
        Complete - Can Edit
    """

    def __init__(
        self,
        data_source: DataSource,
        cache: Cache | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the context.

        Args:
            data_source: Where project metadata and records come from.
            cache: Optional cache for instrument snapshots.
            settings: Settings providing the Auto-Continue chains.
        """
        self.data_source = data_source
        self.cache = cache
        self.settings = settings or Settings()

        self._project: Project | None = None
        self._instruments: dict[str, InstrumentDefinition] | None = None
        self._events: dict[str, Event] | None = None

    @classmethod
    def from_settings(cls, settings: Settings, cache: Cache | None = None) -> "ProjectContext":
        """Create a context reading the project exported under ``settings.data_dir``.

        Raises:
            ConfigurationError: If no data directory is configured.
        """
        if settings.data_dir is None:
            raise ConfigurationError("No data directory configured (set data_dir)")

        cache = cache or MemoryCache(default_ttl=settings.cache_ttl)
        host = urlparse(settings.api_url).hostname if settings.api_url else None

        # Failures are absorbed outside the cache so they are never stored
        source = SafeDataSource(
            CachingDataSource(
                FileDataSource(settings.data_dir),
                cache,
                host or str(settings.data_dir),
                settings.api_token or "",
            )
        )
        return cls(source, cache, settings)

    def get_project(self) -> Project | None:
        """The project, or None if the data source returned no project info."""
        if self._project is None:
            info = self.data_source.export_project_info()
            if info:
                self._project = Project.from_info(info)
        return self._project

    def get_instruments(self) -> dict[str, InstrumentDefinition]:
        """All instrument definitions of the project, keyed by name."""
        if self._instruments is None:
            self._instruments = self._load_instruments()
            self._link_auto_continue(self._instruments)
        return self._instruments

    def get_instrument(self, name: str) -> InstrumentDefinition | None:
        return self.get_instruments().get(name)

    def get_events(self) -> dict[str, Event]:
        """The project's events keyed by unique name; empty for classic projects."""
        if self._events is None:
            self._events = {}
            for row in self.data_source.export_events():
                event = Event.from_row(row)
                self._events[event.name] = event
        return self._events

    def fetch_record(
        self,
        record_id: str,
        fields: Iterable[str] = (),
        instruments: Iterable[str] = (),
        events: Iterable[str] = (),
    ) -> RecordStore | None:
        """Load a record, or return None if it could not be loaded.

        Empty ``fields``, ``instruments`` or ``events`` mean all of them.
        """
        record = RecordStore(self.data_source, fields, None, instruments, events)

        if not record.load_record_by_id(record_id):
            return None
        return record

    def instrument_record(self, name: str, record_id: str | None = None) -> InstrumentRecord:
        """Create the record of an instrument and its Auto-Continue successors.

        Raises:
            ConfigurationError: If the project has no such instrument.
        """
        instrument = self.get_instrument(name)
        if instrument is None:
            raise ConfigurationError(f"Unknown instrument: {name}")
        return InstrumentRecord(self.data_source, instrument, record_id)

    def _cache_key(self) -> str | None:
        if self.cache is None:
            return None
        project = self.get_project()
        if project is None:
            return None
        return f"redcap-instruments-{project.cache_key}"

    def _load_instruments(self) -> dict[str, InstrumentDefinition]:
        key = self._cache_key()

        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Restoring %d instruments from cache", len(cached))
                return {
                    data["name"]: InstrumentDefinition.from_snapshot(InstrumentSnapshot.model_validate(data))
                    for data in cached
                }

        start = time.perf_counter()
        field_names = self.data_source.export_field_names()
        metadata = self.data_source.export_metadata()
        event_mappings = self.data_source.export_instrument_event_mappings()

        instruments = {
            name: InstrumentDefinition(name, label, field_names, metadata, event_mappings)
            for name, label in self.data_source.export_instruments().items()
        }
        logger.debug("Time to build %d instruments: %.3fs", len(instruments), time.perf_counter() - start)

        if key is not None:
            self.cache.set(key, [definition.to_snapshot().model_dump() for definition in instruments.values()])

        return instruments

    def _link_auto_continue(self, instruments: dict[str, InstrumentDefinition]) -> None:
        for name, next_name in self.settings.auto_continue.items():
            if name not in instruments or next_name not in instruments:
                logger.warning("Ignoring Auto-Continue link %s -> %s: unknown instrument", name, next_name)
                continue
            instruments[name].set_next_instrument(instruments[next_name])
