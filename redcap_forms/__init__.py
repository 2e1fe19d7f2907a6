"""redcap-forms: REDCap instruments, records and survey completion status."""

__version__ = "0.1.0"

from redcap_forms.metadata import Field, InstrumentDefinition
from redcap_forms.project import ProjectContext
from redcap_forms.records import InstrumentRecord, RecordStore
from redcap_forms.status import CompletedFieldCount, SurveyStatus

__all__ = [
    "__version__",
    "CompletedFieldCount",
    "Field",
    "InstrumentDefinition",
    "InstrumentRecord",
    "ProjectContext",
    "RecordStore",
    "SurveyStatus",
]
