from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from activitymgr.services.task_path import TaskPath


class Task(SQLModel, table=True):
    """
    Task model, positioned in the forest by (path, number).

    Key fields:
    - path: full path of the parent task ("" for root tasks)
    - number: 1-based rank among siblings, dense (no gaps)
    - budget / initially_consumed / todo: hundredths of a day; must stay 0
      while the task has sub tasks
    """

    __tablename__ = "tasks"
    __table_args__ = (
        UniqueConstraint("path", "number", name="uq_tasks_path_number"),
        UniqueConstraint("path", "code", name="uq_tasks_path_code"),
    )

    id: int | None = Field(default=None, primary_key=True)
    path: str = Field(default="", max_length=255, index=True)
    number: int = Field(default=0)
    code: str = Field(max_length=50)
    name: str = Field(default="", max_length=150)
    budget: int = Field(default=0)
    initially_consumed: int = Field(default=0)
    todo: int = Field(default=0)
    comment: str | None = Field(default=None)

    @property
    def full_path(self) -> str:
        """Path fragment that this task's children carry as their `path`."""
        return TaskPath.full_path_of(self.path, self.number)

    def __repr__(self) -> str:
        return (
            f"Task(id={self.id}, code={self.code!r}, path={self.path!r}, "
            f"number={self.number})"
        )
