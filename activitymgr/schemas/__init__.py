from activitymgr.schemas.contributions import IntervalContributions, TaskContributions
from activitymgr.schemas.filters import (
    CollaboratorOrder,
    TaskSearchCriteria,
    TaskSearchField,
    TaskSearchFilter,
)
from activitymgr.schemas.sums import TaskSums

__all__ = [
    "CollaboratorOrder",
    "IntervalContributions",
    "TaskContributions",
    "TaskSearchCriteria",
    "TaskSearchField",
    "TaskSearchFilter",
    "TaskSums",
]
