"""Project metadata and the context that builds instruments and records."""

from redcap_forms.project.context import ProjectContext
from redcap_forms.project.models import Event, Project

__all__ = ["Event", "Project", "ProjectContext"]
