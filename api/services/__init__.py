"""
API Services Layer.

Async service functions taking a ``Database`` handle. Routes call these;
they raise ``core.exceptions`` errors and never build HTTP responses.
"""

# Import order matters: later modules import earlier ones from this package
from api.services import stage_history
from api.services import notifications
from api.services import pipelines
from api.services import auto_rejection
from api.services import jobs
from api.services import candidates
from api.services import bulk
from api.services import interviews
from api.services import sla
from api.services import analytics

__all__ = [
    "stage_history",
    "notifications",
    "pipelines",
    "auto_rejection",
    "jobs",
    "candidates",
    "bulk",
    "interviews",
    "sla",
    "analytics",
]
