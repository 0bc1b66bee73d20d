from datetime import date

from pydantic import BaseModel

from activitymgr.models import Contribution, Task


class TaskContributions(BaseModel):
    """One task's contributions over an interval, one slot per day."""
    task: Task
    task_code_path: str
    contributions: list[Contribution | None]

    model_config = {"arbitrary_types_allowed": True}


class IntervalContributions(BaseModel):
    """A collaborator's contributions over [from_date, to_date], grouped by task."""
    from_date: date
    to_date: date
    task_contributions: list[TaskContributions] = []

    @property
    def days_count(self) -> int:
        return (self.to_date - self.from_date).days + 1
