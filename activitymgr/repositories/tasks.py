"""
Task repository.

Positional queries rely on the path encoding: children of X are the rows
whose `path` equals X's full path, descendants the rows whose `path`
starts with it.
"""

from sqlalchemy import func
from sqlmodel import select

from activitymgr.models import Task
from activitymgr.repositories.base import BaseRepository
from activitymgr.schemas import TaskSearchCriteria, TaskSearchFilter


class TaskRepository(BaseRepository):

    def get(self, task_id: int) -> Task | None:
        return self.session.get(Task, task_id)

    def get_many(self, task_ids) -> list[Task]:
        ids = list(task_ids)
        if not ids:
            return []
        query = select(Task).where(Task.id.in_(ids))
        return list(self.session.exec(query).all())

    def get_by_path_and_number(self, path: str, number: int) -> Task | None:
        query = select(Task).where(Task.path == path, Task.number == number)
        return self.session.exec(query).first()

    def get_by_path_and_code(self, path: str, code: str) -> Task | None:
        query = select(Task).where(Task.path == path, Task.code == code)
        return self.session.exec(query).first()

    def code_exists(self, path: str, code: str, exclude_id: int | None = None) -> bool:
        query = select(Task.id).where(Task.path == path, Task.code == code)
        if exclude_id is not None:
            query = query.where(Task.id != exclude_id)
        return self.session.exec(query).first() is not None

    def children(self, path: str) -> list[Task]:
        """Direct children of the task whose full path is `path`, by number."""
        query = select(Task).where(Task.path == path).order_by(Task.number)
        return list(self.session.exec(query).all())

    def children_count(self, path: str) -> int:
        query = select(func.count()).select_from(Task).where(Task.path == path)
        return self.session.exec(query).one()

    def max_number(self, path: str) -> int:
        query = select(func.max(Task.number)).where(Task.path == path)
        return self.session.exec(query).one() or 0

    def descendants(self, prefix: str) -> list[Task]:
        query = (
            select(Task)
            .where(Task.path.startswith(prefix))
            .order_by(Task.path, Task.number)
        )
        return list(self.session.exec(query).all())

    def find_all(self) -> list[Task]:
        query = select(Task).order_by(Task.path, Task.number)
        return list(self.session.exec(query).all())

    def search(self, search_filter: TaskSearchFilter) -> list[Task]:
        column = getattr(Task, search_filter.field.value)
        value = search_filter.value
        criteria = search_filter.criteria
        if criteria == TaskSearchCriteria.IS_EQUAL_TO:
            condition = column == value
        elif criteria == TaskSearchCriteria.STARTS_WITH:
            condition = column.startswith(value, autoescape=True)
        elif criteria == TaskSearchCriteria.ENDS_WITH:
            condition = column.endswith(value, autoescape=True)
        else:
            condition = column.contains(value, autoescape=True)
        return list(self.session.exec(select(Task).where(condition)).all())

    def sums(self, prefix: str) -> tuple[int, int, int]:
        """(budget, initially consumed, todo) summed over the rows below `prefix`."""
        query = select(
            func.coalesce(func.sum(Task.budget), 0),
            func.coalesce(func.sum(Task.initially_consumed), 0),
            func.coalesce(func.sum(Task.todo), 0),
        ).where(Task.path.startswith(prefix))
        budget, initially_consumed, todo = self.session.exec(query).one()
        return int(budget), int(initially_consumed), int(todo)
