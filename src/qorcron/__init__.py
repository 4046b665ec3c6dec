"""qorcron -- identifiable job queue on top of the crontab.

Jobs run as detached processes and are tracked in marker blocks inside the
user's crontab, next to (and without disturbing) unrelated entries.
"""

from qorcron.models import JobDefinition, JobDescriptor, JobRecord, QorJob
from qorcron.store import CronStore

__version__ = "0.1.0"

__all__ = [
    "CronStore",
    "JobDefinition",
    "JobDescriptor",
    "JobRecord",
    "QorJob",
    "__version__",
]
