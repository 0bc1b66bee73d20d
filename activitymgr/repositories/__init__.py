from activitymgr.repositories.collaborators import CollaboratorRepository
from activitymgr.repositories.contributions import ContributionRepository
from activitymgr.repositories.durations import DurationRepository
from activitymgr.repositories.tasks import TaskRepository

__all__ = [
    "CollaboratorRepository",
    "ContributionRepository",
    "DurationRepository",
    "TaskRepository",
]
