from activitymgr.models.collaborator import Collaborator
from activitymgr.models.contribution import Contribution
from activitymgr.models.duration import Duration
from activitymgr.models.task import Task

__all__ = [
    "Collaborator",
    "Contribution",
    "Duration",
    "Task",
]
