"""Data sources: the REDCap API calls the package consumes."""

from redcap_forms.source.caching import CachingDataSource
from redcap_forms.source.files import FileDataSource
from redcap_forms.source.protocol import DataSource, Row
from redcap_forms.source.safe import SafeDataSource

__all__ = [
    "CachingDataSource",
    "DataSource",
    "FileDataSource",
    "Row",
    "SafeDataSource",
]
