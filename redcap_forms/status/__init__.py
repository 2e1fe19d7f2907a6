"""Survey completion status and field counts."""

from redcap_forms.status.field_count import CompletedFieldCount
from redcap_forms.status.survey_status import NOT_COMPLETED_TIMESTAMP, StatusFlag, SurveyStatus

__all__ = [
    "CompletedFieldCount",
    "NOT_COMPLETED_TIMESTAMP",
    "StatusFlag",
    "SurveyStatus",
]
